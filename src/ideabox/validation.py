"""
Field validation and derived representations for ideas.

Everything here is pure and synchronous; nothing touches storage.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Union

TITLE_MIN_LENGTH = 3
TITLE_MAX_LENGTH = 100
TAG_DELIMITER = ","


@dataclass(frozen=True)
class TooShort:
    min: int


@dataclass(frozen=True)
class TooLong:
    max: int


TitleViolation = Union[TooShort, TooLong]


# PUBLIC_INTERFACE
def validate_title(title: str) -> Optional[TitleViolation]:
    """
    Check the title length in characters, as given (no trimming).

    Returns:
        None when 3 <= len(title) <= 100, otherwise the violated bound.
    """
    if len(title) < TITLE_MIN_LENGTH:
        return TooShort(min=TITLE_MIN_LENGTH)
    if len(title) > TITLE_MAX_LENGTH:
        return TooLong(max=TITLE_MAX_LENGTH)
    return None


# PUBLIC_INTERFACE
def parse_tags(raw: str, delimiter: str = TAG_DELIMITER) -> List[str]:
    """
    Split a delimited string into tags.

    Pieces are trimmed and empty pieces dropped. Order of first occurrence is
    kept; there is no case folding and no deduplication.
    """
    return [piece.strip() for piece in raw.split(delimiter) if piece.strip()]
