"""
Authentication module for the hospital records system.

This module provides authentication and authorization functionality including:
- Staff self-registration with role-specific required fields
- Bearer token issuance, verification and refresh
- Profile management and account administration
"""
