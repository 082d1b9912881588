"""Middleware package for the Party AI service."""

from party_ai.middleware.error_handler import setup_error_handlers

__all__ = [
    "setup_error_handlers",
]
