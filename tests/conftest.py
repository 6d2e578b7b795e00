import os

import pytest

# Default to the in-process embedded store so tests need no filesystem or network
os.environ.setdefault("STORAGE_BACKEND", "embedded")
os.environ.setdefault("EMBEDDED_DB_PATH", ":memory:")

from ideabox.gateway import get_gateway  # noqa: E402


@pytest.fixture(autouse=True)
def fresh_gateway():
    """Every test starts with an uninitialized process gateway."""
    get_gateway().reset()
    yield
    get_gateway().reset()


@pytest.fixture
def idea_fields():
    return {
        "title": "Build a widget",
        "description": "desc",
        "tags_raw": "a, b",
        "conditions": ["c1"],
        "notes": "",
    }
