"""Storage of recording files and metadata."""

from .file_manager import FileManager

__all__ = ["FileManager"]
