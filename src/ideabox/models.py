from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, TypedDict

IDEAS_TABLE = "ideas"

# A stored document as backends hand it out: the fields plus an "id" holding a
# RecordId (embedded backends) or the remote engine's "table:key" string.
Document = Dict[str, Any]


# PUBLIC_INTERFACE
@dataclass(frozen=True)
class RecordId:
    """
    Backend-native composite reference to a stored record.

    The canonical string form is '<table>:<key>'.
    """

    table: str
    key: str

    def __str__(self) -> str:
        return f"{self.table}:{self.key}"


# PUBLIC_INTERFACE
class IdeaRecord(TypedDict):
    """
    Storage-side shape of an Idea.

    Fields:
    - id: composite record reference, None until the backend assigns one
    - title: short title (3..100 chars, checked before encoding)
    - description: free text
    - tags: ordered tags, duplicates allowed
    - what_must_be_true: ordered acceptance conditions
    - development_notes: free text, may be empty
    """

    id: Optional[RecordId]
    title: str
    description: str
    tags: List[str]
    what_must_be_true: List[str]
    development_notes: str
