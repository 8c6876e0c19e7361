from .text import clean_text, strip_patterns, truncate

__all__ = ["clean_text", "strip_patterns", "truncate"]
