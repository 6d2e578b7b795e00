from __future__ import annotations

import logging
from typing import List

from ..codec import decode, encode, parse_identity
from ..errors import InvalidIdentity, NotFound, StorageRejected, ValidationFailed
from ..gateway import get_db
from ..models import IDEAS_TABLE, RecordId
from ..rpc import server_function
from ..schemas import Idea
from ..validation import TooShort, parse_tags, validate_title

logger = logging.getLogger(__name__)


def _check_title(title: str) -> None:
    violation = validate_title(title)
    if violation is None:
        return
    if isinstance(violation, TooShort):
        raise ValidationFailed(
            f"title must be at least {violation.min} characters",
            {"field": "title", "bound": "too_short", "limit": violation.min},
        )
    raise ValidationFailed(
        f"title must be at most {violation.max} characters",
        {"field": "title", "bound": "too_long", "limit": violation.max},
    )


def _idea_id(raw_id: str) -> RecordId:
    rid = parse_identity(raw_id)
    if rid.table != IDEAS_TABLE:
        raise InvalidIdentity(f"ID does not refer to an idea: {raw_id!r}", {"id": raw_id})
    return rid


# PUBLIC_INTERFACE
@server_function("/api/ideas/submit", response_model=Idea)
async def submit_idea(
    title: str,
    description: str,
    tags_raw: str,
    conditions: List[str],
    notes: str,
) -> Idea:
    """
    Submit a new idea.

    Tags arrive as one comma-separated string and are split here. Returns the
    stored idea with its assigned id.
    """
    _check_title(title)
    idea = Idea(
        title=title,
        description=description,
        tags=parse_tags(tags_raw),
        what_must_be_true=conditions,
        development_notes=notes,
    )
    db = await get_db()
    created = await db.create(IDEAS_TABLE, encode(idea))
    stored = decode(created)
    logger.info("Created idea %s", stored.id)
    return stored


# PUBLIC_INTERFACE
@server_function("/api/ideas/list", response_model=List[Idea])
async def list_ideas() -> List[Idea]:
    """
    List all ideas.

    Order is whatever the backend returns. Records with an unreadable id or
    missing fields are skipped and logged rather than failing the whole listing.
    """
    db = await get_db()
    ideas: List[Idea] = []
    for record in await db.list(IDEAS_TABLE):
        try:
            ideas.append(decode(record))
        except (InvalidIdentity, StorageRejected) as e:
            logger.warning("Skipping corrupt idea record: %s", e.reason)
    return ideas


# PUBLIC_INTERFACE
@server_function("/api/ideas/get", response_model=Idea)
async def get_idea(id: str) -> Idea:
    """Get a single idea by id."""
    rid = _idea_id(id)
    db = await get_db()
    record = await db.get(rid.table, rid.key)
    if record is None:
        raise NotFound(f"Idea not found: {id}", {"id": id})
    return decode(record)


# PUBLIC_INTERFACE
@server_function("/api/ideas/update", response_model=Idea)
async def update_idea(
    id: str,
    title: str,
    description: str,
    tags: List[str],
    what_must_be_true: List[str],
    development_notes: str,
) -> Idea:
    """Replace every field of an existing idea."""
    rid = _idea_id(id)
    _check_title(title)
    idea = Idea(
        id=str(rid),
        title=title,
        description=description,
        tags=tags,
        what_must_be_true=what_must_be_true,
        development_notes=development_notes,
    )
    db = await get_db()
    updated = await db.update(rid.table, rid.key, encode(idea))
    return decode(updated)


# PUBLIC_INTERFACE
@server_function("/api/ideas/delete")
async def delete_idea(id: str) -> None:
    """Delete an idea by id."""
    rid = _idea_id(id)
    db = await get_db()
    await db.delete(rid.table, rid.key)
    logger.info("Deleted idea %s", rid)
