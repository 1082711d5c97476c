"""
Route definitions for the catalogue API.

Endpoints under /api/authors and /api/books:
- GET    /            : paginated list (cached per page/limit)
- GET    /{id}        : one record (never cached)
- POST   /            : create, admin only, 201 + Location
- PUT    /{id}        : update, admin only, 204
- DELETE /{id}        : delete, admin only, 204

Responses are pre-serialized JSON strings, so they are returned as raw
``Response`` objects rather than through ``response_model``.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, Request, Response

from ..errors import ValidationFailed, Violation
from ..security import require_admin
from .service import AuthorService, BookService


JSON = "application/json"
MAX_LIMIT = 100

authors_router = APIRouter(prefix="/api/authors", tags=["authors"])
books_router = APIRouter(prefix="/api/books", tags=["books"])


def get_author_service(request: Request) -> AuthorService:
    return request.app.state.author_service


def get_book_service(request: Request) -> BookService:
    return request.app.state.book_service


async def read_payload(request: Request) -> Dict[str, Any]:
    """Parse the request body as a JSON object.

    Runs as a dependency so that the admin guard, declared on the route,
    is evaluated before the body is touched.
    """
    try:
        payload = await request.json()
    except ValueError:
        raise ValidationFailed([Violation(property_path="payload", message="Malformed JSON body.")])
    if not isinstance(payload, dict):
        raise ValidationFailed([Violation(property_path="payload", message="Expected a JSON object.")])
    return payload


# ---------------------------------------------------------------------------
# Authors


@authors_router.get("", name="authors")
def list_authors(
    page: int = Query(default=1, ge=1, description="Current page (1-indexed)"),
    limit: Optional[int] = Query(default=None, ge=1, le=MAX_LIMIT, description="Page size"),
    service: AuthorService = Depends(get_author_service),
) -> Response:
    return Response(content=service.list(page, limit), media_type=JSON)


@authors_router.get("/{author_id}", name="detailAuthor")
def get_author(author_id: str, service: AuthorService = Depends(get_author_service)) -> Response:
    return Response(content=service.get_by_id(author_id), media_type=JSON)


@authors_router.post("", name="createAuthor", dependencies=[Depends(require_admin)])
def create_author(
    request: Request,
    payload: Dict[str, Any] = Depends(read_payload),
    service: AuthorService = Depends(get_author_service),
) -> Response:
    body, location = service.create(
        payload, lambda new_id: str(request.url_for("detailAuthor", author_id=new_id))
    )
    return Response(content=body, status_code=201, media_type=JSON, headers={"Location": location})


@authors_router.put("/{author_id}", name="updateAuthor", dependencies=[Depends(require_admin)])
def update_author(
    author_id: str,
    payload: Dict[str, Any] = Depends(read_payload),
    service: AuthorService = Depends(get_author_service),
) -> Response:
    service.update(author_id, payload)
    return Response(status_code=204)


@authors_router.delete("/{author_id}", name="deleteAuthor", dependencies=[Depends(require_admin)])
def delete_author(author_id: str, service: AuthorService = Depends(get_author_service)) -> Response:
    service.delete(author_id)
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Books


@books_router.get("", name="books")
def list_books(
    page: int = Query(default=1, ge=1, description="Current page (1-indexed)"),
    limit: Optional[int] = Query(default=None, ge=1, le=MAX_LIMIT, description="Page size"),
    service: BookService = Depends(get_book_service),
) -> Response:
    return Response(content=service.list(page, limit), media_type=JSON)


@books_router.get("/{book_id}", name="detailBook")
def get_book(book_id: str, service: BookService = Depends(get_book_service)) -> Response:
    return Response(content=service.get_by_id(book_id), media_type=JSON)


@books_router.post("", name="createBook", dependencies=[Depends(require_admin)])
def create_book(
    request: Request,
    payload: Dict[str, Any] = Depends(read_payload),
    service: BookService = Depends(get_book_service),
) -> Response:
    body, location = service.create(
        payload, lambda new_id: str(request.url_for("detailBook", book_id=new_id))
    )
    return Response(content=body, status_code=201, media_type=JSON, headers={"Location": location})


@books_router.put("/{book_id}", name="updateBook", dependencies=[Depends(require_admin)])
def update_book(
    book_id: str,
    payload: Dict[str, Any] = Depends(read_payload),
    service: BookService = Depends(get_book_service),
) -> Response:
    service.update(book_id, payload)
    return Response(status_code=204)


@books_router.delete("/{book_id}", name="deleteBook", dependencies=[Depends(require_admin)])
def delete_book(book_id: str, service: BookService = Depends(get_book_service)) -> Response:
    service.delete(book_id)
    return Response(status_code=204)
