"""Shared helpers: logging, errors and formatting."""
