"""
Catalog package for the Bookshelf API.

Authors and books are served from the same pattern: a resource service
backed by the entity store, with paginated listings kept in a tag-aware
cache and invalidated on every write to either collection.
"""

from .router import authors_router, books_router  # noqa: F401
