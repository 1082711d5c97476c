"""
HTTP-typed failures raised by the catalog services.

Every error here is a FastAPI ``HTTPException`` so the outermost handler
in ``main`` can keep its status code when rendering the JSON envelope.
"""

from typing import List

from fastapi import HTTPException
from pydantic import BaseModel, Field


class Violation(BaseModel):
    """One failed constraint on one entity field."""

    property_path: str = Field(alias="propertyPath")
    message: str

    model_config = {"populate_by_name": True}


class NotFound(HTTPException):
    def __init__(self, resource: str = "Resource"):
        super().__init__(status_code=404, detail=f"{resource} not found")


class Forbidden(HTTPException):
    def __init__(self, message: str = "You don't have access to this resource."):
        super().__init__(status_code=403, detail=message)


class ValidationFailed(HTTPException):
    """Raised when an entity breaks one or more field constraints.

    The violations are kept on the exception so the error handler can
    list them in the response body.
    """

    def __init__(self, violations: List[Violation]):
        super().__init__(status_code=400, detail="Validation Failed")
        self.violations = list(violations)

    def as_dicts(self) -> List[dict]:
        return [v.model_dump(by_alias=True) for v in self.violations]
