import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .errors import IdeaboxError, ValidationFailed
from .gateway import get_gateway
from .logging_setup import configure_logging
from .rpc import build_router
from .settings import get_settings
from .routers import ideas as ideas_router  # noqa: F401  (registers the server functions)

logger = logging.getLogger(__name__)

openapi_tags = [
    {"name": "health", "description": "Service health and status endpoints."},
    {
        "name": "ideas",
        "description": "Server functions for submitting, listing and developing ideas.",
    },
]

_settings = get_settings()
configure_logging(_settings.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await get_gateway().close()


app = FastAPI(
    title="Ideabox Backend",
    description="Backend API service for ideas with embedded or remote storage.",
    version="0.1.0",
    openapi_tags=openapi_tags,
    lifespan=lifespan,
)

# Configure CORS based on settings (.env -> CORS_ALLOW_ORIGINS), with '*' fallback
allow_all = (_settings.cors_allow_origins == ["*"]) or (len(_settings.cors_allow_origins) == 0)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if allow_all else _settings.cors_allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(IdeaboxError)
async def ideabox_error_handler(request: Request, exc: IdeaboxError) -> JSONResponse:
    """
    Return the structured failure body for any server function failure.

    Response format:
        {"error": "<kind>", "reason": "<diagnostic>", "detail": {...} | null}
    """
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_payload()))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Report malformed parameter lists as ValidationFailed, with the pydantic
    error list as detail.
    """
    failure = ValidationFailed("Request validation failed", {"errors": jsonable_encoder(exc.errors())})
    return JSONResponse(status_code=failure.status_code, content=failure.to_payload())


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Keep unexpected failures structured; the exception text stays in the log."""
    logger.exception("Unhandled error on %s", request.url.path)
    return JSONResponse(
        status_code=500,
        content={"error": "InternalError", "reason": "unexpected server error", "detail": None},
    )


# PUBLIC_INTERFACE
@app.get("/", summary="Health Check", tags=["health"])
def health_check():
    """
    Health check endpoint.

    Returns:
        A JSON object indicating service health and the configured backend kind.
    """
    return {"message": "Healthy", "backend": get_settings().storage_backend}


app.include_router(build_router("ideas"))
