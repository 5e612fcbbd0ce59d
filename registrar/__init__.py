"""Automated registration for approved, free family events."""

__version__ = "1.0.0"
