from .formatter import OutputFormat, format_output, is_linkable_image, to_flomo_url, to_notes_url

__all__ = ["OutputFormat", "format_output", "is_linkable_image", "to_flomo_url", "to_notes_url"]
