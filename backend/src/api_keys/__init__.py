"""Organization API key module for AgencyHub"""
