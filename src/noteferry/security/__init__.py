"""
Input validation for NoteFerry.
"""

from .validation import URLValidationError, URLValidator, is_safe_url, sanitize_url, validate_url

__all__ = [
    "URLValidationError",
    "URLValidator",
    "is_safe_url",
    "sanitize_url",
    "validate_url",
]
