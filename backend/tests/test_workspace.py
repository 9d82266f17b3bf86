"""
Workspace snapshot tests

Normalization, stored-envelope parsing, row conversion, the in-memory
store and its routes.

Run:
    pytest tests/test_workspace.py -v
"""

import json
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from workspace import (
    FieldState,
    MemoryWorkspaceStore,
    dump_stored_state,
    get_workspace_store,
    normalize_state,
    parse_stored_state,
)
from workspace.rows import from_rows, parse_millis, to_rows

T0 = 1_700_000_000_000  # 2023-11-14T22:13:20Z
NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)


def make_state(fields, images):
    return FieldState.model_validate({"fields": fields, "images": images})


def sample_state():
    return make_state(
        fields=[
            {"id": "f1", "name": "Moodboard", "imageIds": ["a", "b"], "createdAt": T0},
            {"id": "f2", "name": "Refs", "imageIds": ["c"], "createdAt": T0 + 1000},
        ],
        images=[
            {"id": "a", "fieldId": "f1", "src": "https://x/a.png", "createdAt": T0, "note": "first"},
            {"id": "b", "fieldId": "f1", "src": "https://x/b.png", "createdAt": T0 + 1},
            {"id": "c", "fieldId": "f2", "src": "https://x/c.png", "createdAt": T0 + 2, "note": "  "},
        ],
    )


# ============================================
# Normalization
# ============================================

class TestNormalizeState:

    def test_drops_orphan_images_and_dangling_ids(self):
        state = make_state(
            fields=[{"id": "f1", "name": "One", "imageIds": ["a", "ghost", "orphan"], "createdAt": T0}],
            images=[
                {"id": "a", "fieldId": "f1", "src": "s", "createdAt": T0},
                {"id": "orphan", "fieldId": "gone", "src": "s", "createdAt": T0},
            ],
        )

        result = normalize_state(state, now_ms=T0, new_id=lambda: "new")

        assert [img.id for img in result.images] == ["a"]
        assert result.fields[0].image_ids == ["a"]

    def test_empty_board_gets_default_field(self):
        result = normalize_state(FieldState(), now_ms=T0, new_id=lambda: "fresh")

        assert len(result.fields) == 1
        assert result.fields[0].id == "fresh"
        assert result.fields[0].name == "Field 1"
        assert result.fields[0].created_at == T0

    def test_blank_name_becomes_untitled(self):
        state = make_state(
            fields=[{"id": "f1", "name": "   ", "imageIds": [], "createdAt": T0}],
            images=[],
        )

        result = normalize_state(state, now_ms=T0, new_id=lambda: "x")
        assert result.fields[0].name == "Untitled field"


# ============================================
# Stored envelope
# ============================================

class TestStoredState:

    def test_round_trip(self):
        state = sample_state()
        assert parse_stored_state(dump_stored_state(state)) == state

    def test_envelope_uses_camel_case(self):
        payload = json.loads(dump_stored_state(sample_state()))

        assert payload["schema"] == "field_v1"
        assert payload["version"] == 1
        assert payload["state"]["fields"][0]["imageIds"] == ["a", "b"]
        assert payload["state"]["images"][0]["fieldId"] == "f1"

    def test_legacy_envelope_without_schema(self):
        payload = {"version": 1, "state": sample_state().to_json_dict()}
        assert parse_stored_state(json.dumps(payload)) == sample_state()

    @pytest.mark.parametrize("raw", [
        "not json",
        "[]",
        json.dumps({"schema": "field_v2", "version": 1, "state": {"fields": [], "images": []}}),
        json.dumps({"schema": "field_v1", "version": 2, "state": {"fields": [], "images": []}}),
        json.dumps({"schema": 1, "version": 1, "state": {"fields": [], "images": []}}),
        json.dumps({"schema": "field_v1", "state": {"fields": [], "images": []}}),
        json.dumps({"schema": "field_v1", "version": 1, "state": {"fields": [{"id": 1}]}}),
        json.dumps({"schema": "field_v1", "version": True, "state": {"fields": [], "images": []}}),
        json.dumps({"schema": "field_v1", "version": "1", "state": {"fields": [], "images": []}}),
        json.dumps({"schema": "field_v1", "version": 1, "state": {
            "fields": [{"id": "f1", "name": "A", "imageIds": [], "createdAt": "123"}],
            "images": [],
        }}),
        json.dumps({"schema": "field_v1", "version": 1, "state": {
            "fields": [{"id": "f1", "name": "A", "imageIds": [], "createdAt": True}],
            "images": [],
        }}),
    ])
    def test_invalid_payloads_return_none(self, raw):
        assert parse_stored_state(raw) is None


# ============================================
# Row conversion
# ============================================

class TestRows:

    def test_to_rows_positions_and_notes(self):
        field_rows, item_rows = to_rows("user-1", sample_state(), NOW)

        assert [r.id for r in field_rows] == ["f1", "f2"]
        assert [(r.id, r.field_id, r.position) for r in item_rows] == [
            ("a", "f1", 0),
            ("b", "f1", 1),
            ("c", "f2", 0),
        ]
        assert item_rows[0].note == "first"
        assert item_rows[1].note is None
        assert item_rows[2].note is None  # whitespace-only
        assert all(r.user_id == "user-1" for r in field_rows + item_rows)
        assert field_rows[0].updated_at == NOW.isoformat()

    def test_to_rows_skips_mismatched_and_duplicate_images(self):
        state = make_state(
            fields=[
                {"id": "f1", "name": "One", "imageIds": ["a", "a", "b"], "createdAt": T0},
                {"id": "f2", "name": "Two", "imageIds": ["a"], "createdAt": T0},
            ],
            images=[
                {"id": "a", "fieldId": "f1", "src": "s", "createdAt": T0},
                {"id": "b", "fieldId": "f2", "src": "s", "createdAt": T0},
            ],
        )

        _, item_rows = to_rows("u", state, NOW)

        assert [(r.id, r.field_id) for r in item_rows] == [("a", "f1")]

    def test_from_rows_rebuilds_snapshot(self):
        field_rows, item_rows = to_rows("user-1", sample_state(), NOW)

        rebuilt = from_rows(reversed(field_rows), reversed(item_rows))

        assert [f.id for f in rebuilt.fields] == ["f1", "f2"]
        assert rebuilt.fields[0].image_ids == ["a", "b"]
        assert rebuilt.fields[0].created_at == T0
        assert [img.note for img in rebuilt.images] == ["first", "", ""]

    def test_from_rows_drops_items_of_unknown_fields(self):
        field_rows, item_rows = to_rows("u", sample_state(), NOW)

        rebuilt = from_rows([field_rows[0]], item_rows)

        assert [f.id for f in rebuilt.fields] == ["f1"]
        assert {img.id for img in rebuilt.images} == {"a", "b"}

    def test_from_rows_without_fields(self):
        assert from_rows([], []) is None

    def test_parse_millis(self):
        assert parse_millis("2023-11-14T22:13:20Z") == T0
        assert parse_millis("2023-11-14T22:13:20+00:00") == T0
        assert parse_millis(T0) == T0
        assert parse_millis("garbage", now=NOW) == int(NOW.timestamp() * 1000)


# ============================================
# Memory store
# ============================================

class TestMemoryWorkspaceStore:

    def test_load_unknown_user(self):
        assert MemoryWorkspaceStore().load("nobody") is None

    def test_save_then_load(self):
        store = MemoryWorkspaceStore()
        store.save("u1", sample_state(), now=NOW)

        loaded = store.load("u1")

        assert [f.id for f in loaded.fields] == ["f1", "f2"]
        assert loaded.fields[0].image_ids == ["a", "b"]

    def test_save_prunes_removed_rows(self):
        store = MemoryWorkspaceStore()
        store.save("u1", sample_state(), now=NOW)

        smaller = make_state(
            fields=[{"id": "f1", "name": "Moodboard", "imageIds": ["b"], "createdAt": T0}],
            images=[{"id": "b", "fieldId": "f1", "src": "https://x/b.png", "createdAt": T0 + 1}],
        )
        store.save("u1", smaller, now=NOW)

        loaded = store.load("u1")
        assert [f.id for f in loaded.fields] == ["f1"]
        assert [img.id for img in loaded.images] == ["b"]

    def test_users_are_isolated(self):
        store = MemoryWorkspaceStore()
        store.save("u1", sample_state(), now=NOW)

        assert store.load("u2") is None

    def test_evicts_least_recently_saved_user(self):
        store = MemoryWorkspaceStore(max_users=2)
        store.save("u1", sample_state(), now=NOW)
        store.save("u2", sample_state(), now=NOW)
        store.save("u1", sample_state(), now=NOW)
        store.save("u3", sample_state(), now=NOW)

        assert store.load("u2") is None
        assert store.load("u1") is not None
        assert store.load("u3") is not None


# ============================================
# Routes
# ============================================

@pytest.fixture
def workspace_client(app):
    store = MemoryWorkspaceStore()
    app.dependency_overrides[get_workspace_store] = lambda: store
    return TestClient(app)


class TestWorkspaceRoutes:

    def test_get_missing(self, workspace_client):
        response = workspace_client.get("/api/workspace/nobody")
        assert response.status_code == 404

    def test_put_then_get(self, workspace_client):
        body = sample_state().to_json_dict()

        saved = workspace_client.put("/api/workspace/u1", json=body)
        assert saved.status_code == 200
        assert saved.json() == {"success": True, "fields": 2, "images": 3}

        loaded = workspace_client.get("/api/workspace/u1")
        assert loaded.status_code == 200
        state = loaded.json()["state"]
        assert [f["id"] for f in state["fields"]] == ["f1", "f2"]
        assert state["fields"][0]["imageIds"] == ["a", "b"]

    def test_put_normalizes(self, workspace_client):
        body = {"fields": [], "images": []}

        saved = workspace_client.put("/api/workspace/u1", json=body)

        assert saved.json()["fields"] == 1
        state = workspace_client.get("/api/workspace/u1").json()["state"]
        assert state["fields"][0]["name"] == "Field 1"

    def test_put_invalid_body(self, workspace_client):
        response = workspace_client.put("/api/workspace/u1", json={"fields": [{"id": 3}]})
        assert response.status_code == 422

    def test_delete_not_exposed(self, workspace_client):
        workspace_client.put("/api/workspace/u1", json=sample_state().to_json_dict())

        assert workspace_client.delete("/api/workspace/u1").status_code == 405
        assert workspace_client.get("/api/workspace/u1").status_code == 200
