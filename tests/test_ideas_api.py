import pytest
from fastapi.testclient import TestClient

from ideabox.errors import ServerOnly, StorageRejected, StorageUnavailable
from ideabox.gateway import StorageHandle
from ideabox.main import app
from ideabox.repositories import InMemoryBackend
from ideabox.routers import ideas
from ideabox.rpc import server_context
from ideabox.settings import EmbeddedStorage

client = TestClient(app)


def submit(**overrides):
    payload = {
        "title": "Build a widget",
        "description": "desc",
        "tags_raw": "a, b",
        "conditions": ["c1"],
        "notes": "",
    }
    payload.update(overrides)
    return client.post("/api/ideas/submit", json=payload)


def assert_idea_shape(idea: dict):
    for key in ["id", "title", "description", "tags", "what_must_be_true", "development_notes"]:
        assert key in idea
    assert isinstance(idea["id"], str)
    table, key = idea["id"].split(":")
    assert table == "ideas" and key


class FakeStorage:
    """Counts storage resolutions and hands out a handle whose backend fails on demand."""

    def __init__(self, backend=None):
        self.calls = 0
        self.handle = StorageHandle(backend or InMemoryBackend(), EmbeddedStorage(":memory:", "ns", "db"))

    async def __call__(self):
        self.calls += 1
        return self.handle


class UnreachableBackend(InMemoryBackend):
    async def create(self, table, content):
        raise StorageUnavailable("connection refused by 10.0.0.5:8000")

    async def list(self, table):
        raise StorageUnavailable("connection refused by 10.0.0.5:8000")


class RejectingBackend(InMemoryBackend):
    async def create(self, table, content):
        raise StorageRejected("Found field 'title' but it is not allowed")


class CorruptListBackend(InMemoryBackend):
    async def list(self, table):
        good = {"id": "ideas:good", "title": "Good", "description": "d", "tags": []}
        bad = {"id": "no-separator", "title": "Bad", "description": "d", "tags": []}
        return [bad, good]


class MissingFieldListBackend(InMemoryBackend):
    async def list(self, table):
        good = {"id": "ideas:good", "title": "Good", "description": "d", "tags": []}
        untitled = {"id": "ideas:bad", "description": "d", "tags": []}
        return [untitled, good]


class BrokenListBackend(InMemoryBackend):
    async def list(self, table):
        raise RuntimeError("driver state corrupted")


class TestHealth:
    def test_health_check(self):
        res = client.get("/")
        assert res.status_code == 200
        data = res.json()
        assert data["message"] == "Healthy"
        assert data["backend"] in ("embedded", "remote")


class TestSubmitAndList:
    def test_reference_scenario(self):
        res = submit()
        assert res.status_code == 200
        idea = res.json()
        assert_idea_shape(idea)
        assert idea["tags"] == ["a", "b"]
        assert idea["what_must_be_true"] == ["c1"]
        assert idea["development_notes"] == ""

        res_list = client.post("/api/ideas/list")
        assert res_list.status_code == 200
        listed = res_list.json()
        assert listed == [idea]

    def test_submitted_idea_is_listed_by_identity(self):
        ids = {submit(title=f"Idea number {i}").json()["id"] for i in range(3)}
        listed = {item["id"] for item in client.post("/api/ideas/list").json()}
        assert ids <= listed

    def test_list_empty(self):
        res = client.post("/api/ideas/list")
        assert res.status_code == 200
        assert res.json() == []

    def test_tags_keep_order_and_duplicates(self):
        idea = submit(tags_raw=" z, a ,, z ").json()
        assert idea["tags"] == ["z", "a", "z"]

    def test_empty_tags(self):
        idea = submit(tags_raw="").json()
        assert idea["tags"] == []

    def test_corrupt_record_is_skipped(self, monkeypatch):
        monkeypatch.setattr(ideas, "get_db", FakeStorage(CorruptListBackend()))
        res = client.post("/api/ideas/list")
        assert res.status_code == 200
        assert [item["id"] for item in res.json()] == ["ideas:good"]

    def test_record_missing_fields_is_skipped(self, monkeypatch):
        monkeypatch.setattr(ideas, "get_db", FakeStorage(MissingFieldListBackend()))
        res = client.post("/api/ideas/list")
        assert res.status_code == 200
        assert [item["id"] for item in res.json()] == ["ideas:good"]


class TestValidationFailures:
    def test_title_too_short(self):
        res = submit(title="ab")
        assert res.status_code == 422
        body = res.json()
        assert body["error"] == "ValidationFailed"
        assert body["detail"] == {"field": "title", "bound": "too_short", "limit": 3}

    def test_title_too_long(self):
        res = submit(title="x" * 101)
        assert res.status_code == 422
        assert res.json()["detail"] == {"field": "title", "bound": "too_long", "limit": 100}

    def test_invalid_title_touches_no_storage(self, monkeypatch):
        storage = FakeStorage()
        monkeypatch.setattr(ideas, "get_db", storage)
        submit(title="no")
        assert storage.calls == 0

    def test_missing_parameter(self):
        res = client.post("/api/ideas/submit", json={"title": "Only a title"})
        assert res.status_code == 422
        body = res.json()
        assert body["error"] == "ValidationFailed"
        assert body["reason"] == "Request validation failed"
        assert isinstance(body["detail"]["errors"], list)

    def test_wrong_parameter_type(self):
        res = submit(conditions="not a list")
        assert res.status_code == 422
        assert res.json()["error"] == "ValidationFailed"


class TestStorageFailures:
    def test_unavailable(self, monkeypatch):
        monkeypatch.setattr(ideas, "get_db", FakeStorage(UnreachableBackend()))
        res = submit()
        assert res.status_code == 503
        body = res.json()
        assert body["error"] == "StorageFailed"
        assert body["detail"]["cause"] == "unavailable"
        assert body["detail"]["retryable"] is True

    def test_unavailable_on_list(self, monkeypatch):
        monkeypatch.setattr(ideas, "get_db", FakeStorage(UnreachableBackend()))
        res = client.post("/api/ideas/list")
        assert res.status_code == 503
        assert res.json()["error"] == "StorageFailed"

    def test_rejected(self, monkeypatch):
        monkeypatch.setattr(ideas, "get_db", FakeStorage(RejectingBackend()))
        res = submit()
        assert res.status_code == 502
        body = res.json()
        assert body["error"] == "StorageFailed"
        assert body["detail"] == {"cause": "rejected", "retryable": False}

    def test_unexpected_error_is_structured(self, monkeypatch):
        monkeypatch.setattr(ideas, "get_db", FakeStorage(BrokenListBackend()))
        with TestClient(app, raise_server_exceptions=False) as quiet_client:
            res = quiet_client.post("/api/ideas/list")
        assert res.status_code == 500
        body = res.json()
        assert body["error"] == "InternalError"
        assert "driver state" not in body["reason"]


class TestGetUpdateDelete:
    def test_get(self):
        created = submit().json()
        res = client.post("/api/ideas/get", json={"id": created["id"]})
        assert res.status_code == 200
        assert res.json() == created

    def test_get_not_found(self):
        res = client.post("/api/ideas/get", json={"id": "ideas:doesnotexist"})
        assert res.status_code == 404
        assert res.json()["error"] == "NotFound"

    @pytest.mark.parametrize("bad_id", ["garbage", "ideas:a:b", "users:abc"])
    def test_get_invalid_identity(self, bad_id):
        res = client.post("/api/ideas/get", json={"id": bad_id})
        assert res.status_code == 400
        assert res.json()["error"] == "InvalidIdentity"

    def test_update_development_fields(self):
        created = submit().json()
        res = client.post(
            "/api/ideas/update",
            json={
                "id": created["id"],
                "title": created["title"],
                "description": created["description"],
                "tags": created["tags"],
                "what_must_be_true": ["Must have tests", "Must be fast"],
                "development_notes": "This is a note",
            },
        )
        assert res.status_code == 200
        updated = res.json()
        assert updated["id"] == created["id"]
        assert updated["what_must_be_true"] == ["Must have tests", "Must be fast"]
        assert updated["development_notes"] == "This is a note"

        fetched = client.post("/api/ideas/get", json={"id": created["id"]}).json()
        assert fetched == updated

    def test_update_validates_title(self):
        created = submit().json()
        res = client.post(
            "/api/ideas/update",
            json={
                "id": created["id"],
                "title": "",
                "description": "",
                "tags": [],
                "what_must_be_true": [],
                "development_notes": "",
            },
        )
        assert res.status_code == 422
        assert res.json()["detail"]["bound"] == "too_short"

    def test_update_not_found(self):
        res = client.post(
            "/api/ideas/update",
            json={
                "id": "ideas:ghost",
                "title": "Ghost idea",
                "description": "",
                "tags": [],
                "what_must_be_true": [],
                "development_notes": "",
            },
        )
        assert res.status_code == 404
        assert res.json()["error"] == "NotFound"

    def test_delete(self):
        created = submit().json()
        res = client.post("/api/ideas/delete", json={"id": created["id"]})
        assert res.status_code == 200
        assert res.json() is None

        assert client.post("/api/ideas/get", json={"id": created["id"]}).status_code == 404
        res_again = client.post("/api/ideas/delete", json={"id": created["id"]})
        assert res_again.status_code == 404
        assert res_again.json()["error"] == "NotFound"


class TestServerContext:
    @pytest.mark.asyncio
    async def test_direct_call_outside_server_context(self, monkeypatch):
        storage = FakeStorage()
        monkeypatch.setattr(ideas, "get_db", storage)

        with pytest.raises(ServerOnly):
            await ideas.submit_idea("Build a widget", "desc", "a, b", ["c1"], "")
        with pytest.raises(ServerOnly):
            await ideas.list_ideas()
        with pytest.raises(ServerOnly):
            await ideas.delete_idea("ideas:abc")

        assert storage.calls == 0

    @pytest.mark.asyncio
    async def test_direct_call_inside_server_context(self, monkeypatch):
        storage = FakeStorage()
        monkeypatch.setattr(ideas, "get_db", storage)

        with server_context():
            created = await ideas.submit_idea("Build a widget", "desc", "a, b", ["c1"], "")
            listed = await ideas.list_ideas()

        assert created.id is not None
        assert created.tags == ["a", "b"]
        assert listed == [created]
        assert storage.calls == 2

    @pytest.mark.asyncio
    async def test_every_call_resolves_storage_again(self, monkeypatch):
        storage = FakeStorage()
        monkeypatch.setattr(ideas, "get_db", storage)
        with server_context():
            for _ in range(3):
                await ideas.list_ideas()
        assert storage.calls == 3
