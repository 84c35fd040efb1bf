"""Packaged data files (module catalog)."""
