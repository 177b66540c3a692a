"""Provider credential management module for AgencyHub"""
