"""Packaged data files (SQL schema)."""
