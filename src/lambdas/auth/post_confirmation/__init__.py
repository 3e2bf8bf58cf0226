"""
Post-Confirmation Trigger Package.

This package contains the customer pool trigger run after a customer
confirms their email.
"""

__version__ = "1.0.0"
