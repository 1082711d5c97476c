"""
JSON serialization for catalog entities.

Output is driven by named field-selection groups. A group lists, per
entity type, which wire fields appear in the output. Relation fields
(``books`` on an author, ``author`` on a book) are expanded one level:
a nested entity is rendered with the same group but never follows the
relation back to its parent, so an author's books do not repeat the
author and a book's author does not list its books.

Deserialization goes the other way: a raw JSON object is checked against
the payload schema of the resource and turned into a new entity, or
merged onto an existing one when only some fields were sent.
"""

from __future__ import annotations

import json
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Sequence, Tuple, Type, Union

from pydantic import BaseModel, ValidationError

from ..errors import ValidationFailed, Violation
from ..models import Author, AuthorPayload, Book, BookPayload, Entity
from ..storage import CatalogStore


GROUPS: Dict[str, Dict[str, FrozenSet[str]]] = {
    "getBooks": {
        "Author": frozenset({"id", "firstName", "lastName", "books"}),
        "Book": frozenset({"id", "title", "coverText", "author"}),
    },
}

# Wire field -> entity type it points at.
RELATIONS: Dict[str, Dict[str, str]] = {
    "Author": {"books": "Book"},
    "Book": {"author": "Author"},
}

PAYLOADS: Dict[Type[Entity], Type[BaseModel]] = {
    Author: AuthorPayload,
    Book: BookPayload,
}


def violations_from_error(exc: ValidationError) -> List[Violation]:
    violations = []
    for error in exc.errors():
        path = ".".join(str(part) for part in error.get("loc", ())) or "payload"
        violations.append(Violation(property_path=path, message=error.get("msg", "Invalid value.")))
    return violations


class CatalogSerializer:
    """Turns entities into JSON for one field-selection group.

    Parameters
    ----------
    store : CatalogStore
        Used to resolve relations while normalizing.
    group : str
        Name of the field-selection group, a key of ``GROUPS``.
    """

    def __init__(self, store: CatalogStore, group: str = "getBooks"):
        if group not in GROUPS:
            raise ValueError(f"Unknown serialization group: {group}")
        self.store = store
        self.group = group

    # -- output ----------------------------------------------------------

    def serialize(self, data: Union[Entity, Sequence[Entity], None]) -> str:
        return json.dumps(self.normalize(data), ensure_ascii=False)

    def normalize(self, data: Union[Entity, Sequence[Entity], None]) -> Any:
        if data is None:
            return None
        if isinstance(data, Entity):
            return self._normalize_entity(data, ())
        return [self._normalize_entity(item, ()) for item in data]

    def _normalize_entity(self, entity: Entity, path: Tuple[str, ...]) -> Dict[str, Any]:
        kind = type(entity).__name__
        fields = GROUPS[self.group].get(kind, frozenset())
        relations = RELATIONS.get(kind, {})
        wire = entity.model_dump(by_alias=True)
        out: Dict[str, Any] = {}
        for name, value in wire.items():
            if name in fields:
                out[name] = value
        nested_path = path + (kind,)
        for name, target in relations.items():
            if name not in fields or target in path:
                continue
            related = self._related(entity, name)
            if isinstance(related, list):
                out[name] = [self._normalize_entity(r, nested_path) for r in related]
            else:
                out[name] = self._normalize_entity(related, nested_path) if related else None
        return out

    def _related(self, entity: Entity, name: str) -> Union[Entity, List[Entity], None]:
        if isinstance(entity, Author) and name == "books":
            return self.store.books_by_author(entity.id)
        if isinstance(entity, Book) and name == "author":
            if entity.author_id is None:
                return None
            return self.store.authors.find_by_id(entity.author_id)
        return None

    # -- input -----------------------------------------------------------

    def deserialize(
        self,
        payload: Mapping[str, Any],
        model: Type[Entity],
        existing: Optional[Entity] = None,
    ) -> Entity:
        """Build an entity from a raw JSON object.

        When ``existing`` is given, only the fields present in ``payload``
        overwrite it; the others keep their current values. Values of the
        wrong type raise ``ValidationFailed``.
        """
        schema = PAYLOADS[model]
        try:
            parsed = schema.model_validate(dict(payload))
        except ValidationError as exc:
            raise ValidationFailed(violations_from_error(exc))
        fields = parsed.model_dump(exclude_unset=True)
        if existing is None:
            return model(**fields)
        return existing.model_copy(update=fields)
