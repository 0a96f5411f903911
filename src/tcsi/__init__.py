"""TCSI pre-submission validation and auto-fix engine."""

__version__ = "0.1.0"
