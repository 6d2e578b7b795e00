"""
Failure taxonomy shared by the server functions, the storage layer and the
client stubs.

Every failure that may cross the HTTP boundary is an IdeaboxError. The wire form
is produced by to_payload() and turned back into the same exception type on the
client side by error_from_payload(); clients branch on the "error" kind only,
the "reason" text is diagnostic.
"""
from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Type


class IdeaboxError(Exception):
    """Base class for structured failures."""

    kind: str = "Error"
    status_code: int = 500

    def __init__(self, reason: str = "", detail: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(reason)
        self.reason = reason
        self.detail = detail

    def to_payload(self) -> Dict[str, Any]:
        return {"error": self.kind, "reason": self.reason, "detail": self.detail}


class ValidationFailed(IdeaboxError):
    """A field value is not acceptable. User-correctable, never retried."""

    kind = "ValidationFailed"
    status_code = 422

    @property
    def field(self) -> Optional[str]:
        return (self.detail or {}).get("field")


class InvalidIdentity(IdeaboxError):
    """An identity string does not have the '<table>:<key>' shape."""

    kind = "InvalidIdentity"
    status_code = 400


class NotFound(IdeaboxError):
    kind = "NotFound"
    status_code = 404


class ServerOnly(IdeaboxError):
    """A server function was invoked outside a server execution context."""

    kind = "ServerOnly"
    status_code = 500


class StorageError(IdeaboxError):
    """
    Storage backend failure. Serialized as StorageFailed; detail["cause"]
    tells the subclasses apart.
    """

    kind = "StorageFailed"
    cause = "unknown"
    retryable = False

    def to_payload(self) -> Dict[str, Any]:
        detail = dict(self.detail or {})
        detail.update({"cause": self.cause, "retryable": self.retryable})
        return {"error": self.kind, "reason": self.reason, "detail": detail}


class StorageUnavailable(StorageError):
    """Backend unreachable or timed out. The caller may retry the whole call."""

    status_code = 503
    cause = "unavailable"
    retryable = True


class StorageRejected(StorageError):
    """Backend reported a semantic failure (constraint violation, malformed record)."""

    status_code = 502
    cause = "rejected"


class RpcTransportError(IdeaboxError):
    """Client side only: the server could not be reached or its reply was not understood."""

    kind = "TransportError"
    status_code = 502


_KINDS: Dict[str, Type[IdeaboxError]] = {
    cls.kind: cls for cls in (ValidationFailed, InvalidIdentity, NotFound, ServerOnly)
}
_STORAGE_CAUSES: Dict[str, Type[StorageError]] = {
    StorageUnavailable.cause: StorageUnavailable,
    StorageRejected.cause: StorageRejected,
}


# PUBLIC_INTERFACE
def error_from_payload(payload: Mapping[str, Any]) -> IdeaboxError:
    """
    Rebuild the typed exception described by a failure payload.

    Unknown kinds become RpcTransportError so that a newer server never makes
    an older client misinterpret a failure.
    """
    kind = payload.get("error")
    reason = str(payload.get("reason") or "")
    detail = payload.get("detail")
    if not isinstance(detail, dict):
        detail = None

    if kind == StorageError.kind:
        cause = (detail or {}).get("cause")
        cls: Type[IdeaboxError] = _STORAGE_CAUSES.get(cause, StorageError)
        if detail is not None:
            detail = {k: v for k, v in detail.items() if k not in {"cause", "retryable"}} or None
        return cls(reason, detail)

    cls = _KINDS.get(kind)  # type: ignore[arg-type]
    if cls is None:
        return RpcTransportError(f"unrecognized failure kind {kind!r}: {reason}")
    return cls(reason, detail)
