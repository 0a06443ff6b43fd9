"""Discovery helpers that feed source files into a file index."""

from .discovery import DirectoryScanner

__all__ = ["DirectoryScanner"]
