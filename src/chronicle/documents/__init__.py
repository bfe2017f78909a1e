"""Document surfaces the orchestration layer reads from and appends to."""

from .surface import DocumentSurface, TextDocument

__all__ = ["DocumentSurface", "TextDocument"]
