"""
Server functions: async callables that run only on the server but can be
called from a client as if they were local.

A server function is declared with @server_function(path). Calling it
directly works only inside a server execution context; build_router() mounts
every registered function as a POST route whose JSON body carries the
parameters by name, and enters that context for each request. Failures are
raised as IdeaboxError subclasses and turned into JSON by the app's
exception handlers.
"""
import functools
import inspect
import logging
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Iterator, List, Optional, Type, get_type_hints

from fastapi import APIRouter, status
from pydantic import BaseModel, create_model

from .errors import ServerOnly
from .schemas import Failure

logger = logging.getLogger(__name__)

_server_context: ContextVar[bool] = ContextVar("ideabox_server_context", default=False)

ServerFn = Callable[..., Awaitable[Any]]


# PUBLIC_INTERFACE
@contextmanager
def server_context() -> Iterator[None]:
    """Mark the current task as running with server capability."""
    token = _server_context.set(True)
    try:
        yield
    finally:
        _server_context.reset(token)


def in_server_context() -> bool:
    return _server_context.get()


@dataclass(frozen=True)
class ServerFunction:
    name: str
    path: str
    func: ServerFn
    request_model: Optional[Type[BaseModel]]
    response_model: Any
    summary: str


_registry: Dict[str, ServerFunction] = {}


def _request_model(func: ServerFn) -> Optional[Type[BaseModel]]:
    """Derive a pydantic body model from the function signature, or None for no parameters."""
    hints = get_type_hints(func)
    fields: Dict[str, Any] = {}
    for name, param in inspect.signature(func).parameters.items():
        default = ... if param.default is inspect.Parameter.empty else param.default
        fields[name] = (hints.get(name, Any), default)
    if not fields:
        return None
    model_name = "".join(part.capitalize() for part in func.__name__.split("_")) + "Request"
    return create_model(model_name, **fields)


# PUBLIC_INTERFACE
def server_function(path: str, response_model: Any = None) -> Callable[[ServerFn], ServerFn]:
    """
    Register an async function as a server function reachable at path.

    The returned wrapper raises ServerOnly, without running the body, when
    called outside a server execution context.
    """

    def decorate(func: ServerFn) -> ServerFn:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            if not in_server_context():
                logger.error("Server function %s called outside a server context", func.__name__)
                raise ServerOnly(f"{func.__name__} is a server-only function")
            return await func(*args, **kwargs)

        _registry[func.__name__] = ServerFunction(
            name=func.__name__,
            path=path,
            func=wrapper,
            request_model=_request_model(func),
            response_model=response_model,
            summary=(inspect.getdoc(func) or func.__name__).splitlines()[0],
        )
        return wrapper

    return decorate


def registered() -> List[ServerFunction]:
    return list(_registry.values())


def _endpoint(fn: ServerFunction) -> Callable[..., Awaitable[Any]]:
    if fn.request_model is None:

        async def endpoint() -> Any:
            with server_context():
                return await fn.func()

        endpoint.__signature__ = inspect.Signature([])  # type: ignore[attr-defined]
    else:
        model = fn.request_model

        async def endpoint(payload: BaseModel) -> Any:  # type: ignore[misc]
            with server_context():
                return await fn.func(**{name: getattr(payload, name) for name in model.model_fields})

        endpoint.__signature__ = inspect.Signature(  # type: ignore[attr-defined]
            [inspect.Parameter("payload", inspect.Parameter.POSITIONAL_OR_KEYWORD, annotation=model)]
        )
    endpoint.__name__ = fn.name
    return endpoint


# PUBLIC_INTERFACE
def build_router(tag: str) -> APIRouter:
    """Create an APIRouter with one POST route per registered server function."""
    router = APIRouter(tags=[tag])
    failure_responses: Dict[Any, Dict[str, Any]] = {
        code: {"model": Failure}
        for code in (
            status.HTTP_400_BAD_REQUEST,
            status.HTTP_404_NOT_FOUND,
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            status.HTTP_502_BAD_GATEWAY,
            status.HTTP_503_SERVICE_UNAVAILABLE,
        )
    }
    for fn in registered():
        router.add_api_route(
            fn.path,
            _endpoint(fn),
            methods=["POST"],
            response_model=fn.response_model,
            response_model_exclude_none=True,
            summary=fn.summary,
            responses=failure_responses,
        )
    return router
