"""Multi-tenant authorization, invitations and post-login routing."""

__version__ = "0.1.0"
