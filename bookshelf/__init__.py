"""Bookshelf: authors and books catalog API with tag-invalidated page caching."""

__version__ = "1.0.0"
