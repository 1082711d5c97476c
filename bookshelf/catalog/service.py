"""
Resource services for authors and books.

``ResourceService`` holds the pattern shared by both collections:

* list pages go through the tag-aware cache, keyed by
  ``<collection>-<page>-<limit>`` and tagged with the collection tag;
* single records are read straight from the store;
* writes validate first, then invalidate the tags, then persist.

``AuthorService`` and ``BookService`` only fill in the collection
specifics. Books additionally resolve the ``idAuthor`` field of the raw
request body to an author.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Callable, Generic, Iterable, Mapping, Optional, Tuple, Type, TypeVar

from ..cache import TagAwareCache
from ..errors import NotFound, ValidationFailed
from ..models import Author, Book, Entity
from ..storage import CatalogStore, Repository
from .schemas import CatalogSerializer
from .validation import Validator


logger = logging.getLogger(__name__)

AUTHORS_TAG = "authorsCache"
BOOKS_TAG = "booksCache"

EntityT = TypeVar("EntityT", bound=Entity)

_ID_PATTERN = re.compile(r"-?[0-9]+")


def parse_id(value: Any) -> Optional[int]:
    """Return ``value`` as an integer id, or None when it is not one.

    Accepts ints and strings of ASCII digits with an optional minus sign.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and _ID_PATTERN.fullmatch(value.strip()):
        return int(value.strip())
    return None


class ResourceService(Generic[EntityT]):
    """Cached listing and validated writes for one entity collection.

    Parameters
    ----------
    store : CatalogStore
        Backing store for both collections.
    cache : TagAwareCache
        Shared page cache.
    serializer : CatalogSerializer
        Renders entities with the configured field-selection group.
    validator : Validator
        Field constraint checker.
    default_limit : int
        Page size used when the caller does not send ``limit``.
    """

    model: Type[EntityT]
    collection: str
    label: str
    tag: str
    # Tags of every collection whose cached pages embed this resource.
    invalidates: Tuple[str, ...] = ()

    def __init__(
        self,
        store: CatalogStore,
        cache: TagAwareCache,
        serializer: CatalogSerializer,
        validator: Validator,
        default_limit: int,
    ):
        if default_limit < 1:
            raise ValueError("default_limit must be >= 1")
        self.store = store
        self.cache = cache
        self.serializer = serializer
        self.validator = validator
        self.default_limit = default_limit

    @property
    def repository(self) -> Repository[EntityT]:
        raise NotImplementedError

    def cache_key(self, page: int, limit: int) -> str:
        return f"{self.collection}-{page}-{limit}"

    def list(self, page: int = 1, limit: Optional[int] = None) -> str:
        if limit is None:
            limit = self.default_limit
        if page < 1 or limit < 1:
            raise ValueError("page and limit must be >= 1")

        def load() -> Tuple[str, Iterable[str]]:
            items = self.repository.find_page((page - 1) * limit, limit)
            return self.serializer.serialize(items), {self.tag}

        return self.cache.get(self.cache_key(page, limit), load)

    def get_by_id(self, entity_id: Any) -> str:
        return self.serializer.serialize(self._find(entity_id))

    def create(self, payload: Mapping[str, Any], location_for: Callable[[int], str]) -> Tuple[str, str]:
        """Validate and persist a new record.

        Returns the serialized record and the URL it can be fetched from.
        Nothing is invalidated or written when validation fails.
        """
        entity = self.serializer.deserialize(payload, self.model)
        entity = self.prepare(entity, payload)
        self._check(entity)
        self._invalidate()
        saved = self.store.save(entity)
        logger.info("Created %s %s", self.label.lower(), saved.id)
        return self.serializer.serialize(saved), location_for(saved.id)

    def update(self, entity_id: Any, payload: Mapping[str, Any]) -> None:
        existing = self._find(entity_id)
        entity = self.serializer.deserialize(payload, self.model, existing=existing)
        entity = self.prepare(entity, payload)
        self._check(entity)
        self._invalidate()
        self.store.save(entity)
        logger.info("Updated %s %s", self.label.lower(), entity_id)

    def delete(self, entity_id: Any) -> None:
        entity = self._find(entity_id)
        self._invalidate()
        self.store.delete(entity)
        logger.info("Deleted %s %s", self.label.lower(), entity_id)

    def prepare(self, entity: EntityT, payload: Mapping[str, Any]) -> EntityT:
        """Hook for fields read from the raw payload; no-op by default."""
        return entity

    def _find(self, entity_id: Any) -> EntityT:
        # Path ids arrive as strings; anything that is not an integer is unknown.
        parsed = parse_id(entity_id)
        entity = self.repository.find_by_id(parsed) if parsed is not None else None
        if entity is None:
            raise NotFound(self.label)
        return entity

    def _check(self, entity: EntityT) -> None:
        violations = self.validator.validate(entity)
        if violations:
            raise ValidationFailed(violations)

    def _invalidate(self) -> None:
        self.cache.invalidate_tags({self.tag, *self.invalidates})


class AuthorService(ResourceService[Author]):
    model = Author
    collection = "authors"
    label = "Author"
    tag = AUTHORS_TAG
    invalidates = (BOOKS_TAG,)

    @property
    def repository(self) -> Repository[Author]:
        return self.store.authors


class BookService(ResourceService[Book]):
    model = Book
    collection = "books"
    label = "Book"
    tag = BOOKS_TAG
    invalidates = (AUTHORS_TAG,)

    @property
    def repository(self) -> Repository[Book]:
        return self.store.books

    def prepare(self, entity: Book, payload: Mapping[str, Any]) -> Book:
        # An unknown or missing idAuthor leaves the book without an author.
        id_author = parse_id(payload.get("idAuthor", -1))
        author = None
        if id_author is not None:
            author = self.store.authors.find_by_id(id_author)
        entity.author_id = author.id if author is not None else None
        return entity
