"""Greeting API protected by Azure AD (Entra ID) JWT bearer tokens."""

__version__ = "1.0.0"
