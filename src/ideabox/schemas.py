from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


# PUBLIC_INTERFACE
class Idea(BaseModel):
    """
    Client-facing Idea as carried over the wire.

    id is absent until the idea has been persisted. Fields added after the
    first release (what_must_be_true, development_notes) default when missing
    so that older payloads still parse.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "ideas:7k2m9q4x1b8v3n6c5z0a",
                "title": "Build a widget",
                "description": "A widget that does one thing well",
                "tags": ["hardware", "weekend"],
                "what_must_be_true": ["Parts cost under $20"],
                "development_notes": "",
            }
        }
    )

    id: Optional[str] = Field(default=None, description="Identity in '<table>:<key>' form, absent until persisted")
    title: str = Field(..., description="Short title for the idea")
    description: str = Field(..., description="Longer description of the idea")
    tags: List[str] = Field(..., description="Ordered tags; duplicates are kept")
    what_must_be_true: List[str] = Field(
        default_factory=list, description="Acceptance conditions that must hold for the idea to work"
    )
    development_notes: str = Field(default="", description="Free-form development notes")


# PUBLIC_INTERFACE
class Failure(BaseModel):
    """
    Body returned by a server function for any failure.

    error is one of ValidationFailed, StorageFailed, InvalidIdentity, NotFound
    or ServerOnly; reason is for diagnostics only.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "error": "ValidationFailed",
                "reason": "title must be at least 3 characters",
                "detail": {"field": "title", "bound": "too_short", "limit": 3},
            }
        }
    )

    error: str = Field(..., description="Failure kind")
    reason: str = Field(default="", description="Human-readable diagnostic")
    detail: Optional[dict] = Field(default=None, description="Kind-specific structured detail")
