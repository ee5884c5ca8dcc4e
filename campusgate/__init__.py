"""CampusGate: multi-tenant Google sign-in with college email binding."""

__version__ = "0.1.0"
