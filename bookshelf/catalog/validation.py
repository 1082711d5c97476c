"""
Field constraints for catalog entities.

Constraints are declared as pydantic models mirroring each entity. The
validator runs an entity through its constraint model and collects every
failure as a ``Violation`` instead of raising.
"""

from typing import Dict, List, Optional, Type

from pydantic import BaseModel, ConfigDict, StringConstraints, ValidationError
from typing_extensions import Annotated

from ..errors import Violation
from ..models import Author, Book, Entity


Required = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)]
LongText = Annotated[str, StringConstraints(max_length=5000)]

NOT_BLANK = "This value should not be blank."


class AuthorConstraints(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    first_name: Required
    last_name: Required


class BookConstraints(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: Required
    cover_text: Optional[LongText] = None


CONSTRAINTS: Dict[Type[Entity], Type[BaseModel]] = {
    Author: AuthorConstraints,
    Book: BookConstraints,
}

# Wire names used in violation paths.
PROPERTY_PATHS = {
    "first_name": "firstName",
    "last_name": "lastName",
    "cover_text": "coverText",
}


def _message(error: dict) -> str:
    kind = error.get("type")
    if kind in ("missing", "string_type", "string_too_short"):
        return NOT_BLANK
    if kind == "string_too_long":
        limit = (error.get("ctx") or {}).get("max_length")
        return f"This value is too long. It should have {limit} characters or less."
    return error.get("msg", "This value is not valid.")


class Validator:
    def validate(self, entity: Entity) -> List[Violation]:
        """Return the constraint violations of ``entity``, empty when valid."""
        constraints = CONSTRAINTS.get(type(entity))
        if constraints is None:
            return []
        try:
            constraints.model_validate(entity.model_dump())
        except ValidationError as exc:
            violations = []
            for error in exc.errors():
                field = str(error["loc"][0]) if error.get("loc") else ""
                violations.append(
                    Violation(
                        property_path=PROPERTY_PATHS.get(field, field),
                        message=_message(error),
                    )
                )
            return violations
        return []
