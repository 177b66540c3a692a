"""Security tests for AgencyHub

This module contains security-focused tests including:
- Authentication bypass attempts
- Tenant escape/isolation attacks
- Secret relocation between organizations
"""
