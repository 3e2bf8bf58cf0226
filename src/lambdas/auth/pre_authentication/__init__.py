"""
Pre-Authentication Trigger Package.

This package contains the customer pool trigger that denies sign-in for
blocklisted emails.
"""

__version__ = "1.0.0"
