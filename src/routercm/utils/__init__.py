"""Utility modules: logging and exceptions."""
