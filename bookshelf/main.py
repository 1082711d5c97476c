# bookshelf/main.py
import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__
from .cache import TagAwareCache
from .catalog import authors_router, books_router
from .catalog.schemas import CatalogSerializer
from .catalog.service import AuthorService, BookService
from .catalog.validation import Validator
from .config import Settings, get_settings
from .errors import ValidationFailed
from .storage import CatalogStore


logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    logging.getLogger("bookshelf").setLevel(level.upper())


def _envelope(status: int, message: str, headers=None, **extra) -> JSONResponse:
    return JSONResponse(
        status_code=status,
        content={"status": status, "message": message, **extra},
        headers=headers,
    )


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ValidationFailed)
    async def validation_failed_handler(request: Request, exc: ValidationFailed):
        return _envelope(exc.status_code, exc.detail, violations=exc.as_dicts())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        violations = [
            {
                "propertyPath": ".".join(str(p) for p in err.get("loc", ())),
                "message": err.get("msg", ""),
            }
            for err in exc.errors()
        ]
        return _envelope(400, "Validation Failed", violations=violations)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return _envelope(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _envelope(500, str(exc) or "Internal Server Error")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title=settings.app_name,
        description=(
            "Catalog of authors and books. Paginated listings are cached "
            "and invalidated by collection tag on every write."
        ),
        version=__version__,
    )

    store = CatalogStore(settings.data_file)
    cache = TagAwareCache(
        default_ttl=settings.cache_default_ttl,
        max_entries=settings.cache_max_entries,
    )
    serializer = CatalogSerializer(store, settings.serialization_group)
    validator = Validator()

    app.state.settings = settings
    app.state.store = store
    app.state.cache = cache
    app.state.author_service = AuthorService(
        store, cache, serializer, validator, settings.authors_default_limit
    )
    app.state.book_service = BookService(
        store, cache, serializer, validator, settings.books_default_limit
    )

    register_exception_handlers(app)
    app.include_router(authors_router)
    app.include_router(books_router)

    @app.get("/")
    def health_check():
        return {"status": "ok", "message": f"{settings.app_name} live", "cache": cache.stats()}

    return app


app = create_app()
