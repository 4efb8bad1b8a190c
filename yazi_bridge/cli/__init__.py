"""Command-line interface for yazi-bridge."""
