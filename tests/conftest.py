"""
Shared fixtures for the Bookshelf test suite.
"""

import pytest
from fastapi.testclient import TestClient

from bookshelf.cache import TagAwareCache
from bookshelf.catalog.schemas import CatalogSerializer
from bookshelf.catalog.service import AuthorService, BookService
from bookshelf.catalog.validation import Validator
from bookshelf.config import Settings
from bookshelf.main import create_app
from bookshelf.storage import CatalogStore


ADMIN = {"Authorization": "Bearer admin-token"}
USER = {"Authorization": "Bearer user-token"}


class FakeClock:
    """Manually advanced time source for cache expiry tests."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def settings():
    return Settings(
        log_level="WARNING",
        data_file=None,
        api_tokens={"admin-token": "ROLE_ADMIN", "user-token": "ROLE_USER"},
    )


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def store():
    return CatalogStore()


@pytest.fixture
def cache():
    return TagAwareCache()


@pytest.fixture
def serializer(store):
    return CatalogSerializer(store, "getBooks")


@pytest.fixture
def author_service(store, cache, serializer):
    return AuthorService(store, cache, serializer, Validator(), default_limit=10)


@pytest.fixture
def book_service(store, cache, serializer):
    return BookService(store, cache, serializer, Validator(), default_limit=3)


@pytest.fixture
def location_for():
    return lambda new_id: f"http://testserver/api/items/{new_id}"
