"""
Hospital records service: staff accounts, patient records, appointments and analytics.
"""
__version__ = "1.0.0"
