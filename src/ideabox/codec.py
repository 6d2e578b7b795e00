"""
Translation between the wire Idea and the storage IdeaRecord.

This is the one place that knows identities come in two native shapes: a
RecordId from the embedded backends and a 'table:key' string from the remote
engine. Both leave here as the canonical string.
"""
from __future__ import annotations

from typing import Union

from pydantic import ValidationError

from .errors import InvalidIdentity, StorageRejected
from .models import Document, IdeaRecord, RecordId
from .schemas import Idea

_SEPARATOR = ":"


# PUBLIC_INTERFACE
def parse_identity(text: str) -> RecordId:
    """
    Parse '<table>:<key>' into a RecordId.

    Raises:
        InvalidIdentity unless there is exactly one separator with a
        non-empty part on each side.
    """
    parts = text.split(_SEPARATOR)
    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise InvalidIdentity(f"Invalid ID format: {text!r}", {"id": text})
    return RecordId(table=parts[0], key=parts[1])


def _coerce_identity(value: Union[RecordId, str]) -> RecordId:
    if isinstance(value, RecordId):
        return value
    return parse_identity(str(value))


# PUBLIC_INTERFACE
def encode(idea: Idea) -> IdeaRecord:
    """Convert a wire Idea into an IdeaRecord. Raises InvalidIdentity for a malformed id."""
    return {
        "id": parse_identity(idea.id) if idea.id is not None else None,
        "title": idea.title,
        "description": idea.description,
        "tags": list(idea.tags),
        "what_must_be_true": list(idea.what_must_be_true),
        "development_notes": idea.development_notes,
    }


# PUBLIC_INTERFACE
def decode(record: Union[IdeaRecord, Document]) -> Idea:
    """
    Convert a stored record into a wire Idea.

    Fields missing from older documents take their read defaults; nothing else
    is coerced.

    Raises:
        InvalidIdentity for an unreadable id, StorageRejected for a document
        missing required fields or holding values of the wrong type.
    """
    identity = record.get("id")
    try:
        return Idea(
            id=str(_coerce_identity(identity)) if identity is not None else None,
            title=record["title"],
            description=record["description"],
            tags=list(record["tags"]),
            what_must_be_true=list(record.get("what_must_be_true", [])),
            development_notes=record.get("development_notes", ""),
        )
    except (KeyError, TypeError, ValidationError) as e:
        raise StorageRejected(f"malformed record {identity}: {e!r}", {"id": str(identity)}) from e


def content_of(record: Union[IdeaRecord, Document]) -> Document:
    """Return the record fields without the identity, ready to hand to a backend."""
    return {name: value for name, value in record.items() if name != "id"}
