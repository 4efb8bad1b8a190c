"""Bridge between the yazi file manager and a host text editor."""

__version__ = '0.1.0'
