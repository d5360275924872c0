"""Tests for the HTTP surface."""

from __future__ import annotations

from datetime import datetime

import pytest
from fastapi.testclient import TestClient

from habitlog.context import build_context
from habitlog.main import create_app
from habitlog.settings import Settings

from conftest import FakeRemote


@pytest.fixture()
def context(tmp_path):
    settings = Settings(_env_file=None, DATABASE_URL=f"sqlite:///{tmp_path / 'api.db'}")
    return build_context(settings, drive=FakeRemote())


@pytest.fixture()
def client(context):
    return TestClient(create_app(context))


def test_health(client):
    assert client.get("/health").json() == {"ok": True}


def test_entry_lifecycle(client, context):
    created = client.post(
        "/v1/entries",
        json={"date": "2026-10-19T14:30:00", "category": "reward", "notes": " snack "},
    )
    assert created.status_code == 200
    body = created.json()
    assert body["category"]["name"] == "REWARD"
    assert body["notes"] == "snack"

    patched = client.patch(f"/v1/entries/{body['id']}", json={"notes": "fruit"})
    assert patched.json()["notes"] == "fruit"
    assert patched.json()["id"] == body["id"]
    assert context.store.get_entry(body["id"]).notes == "fruit"

    listing = client.get("/v1/entries").json()["items"]
    assert [item["id"] for item in listing] == [body["id"]]

    assert client.delete(f"/v1/entries/{body['id']}").json() == {"ok": True}
    assert context.store.entries == []


def test_entry_with_unknown_category_is_rejected(client):
    response = client.post("/v1/entries", json={"category": "nope"})
    assert response.status_code == 400


def test_patch_unknown_entry_is_404(client):
    assert client.patch("/v1/entries/missing", json={"notes": "x"}).status_code == 404


def test_custom_fields_through_api(client, context):
    client.post("/v1/columns", json={"name": "Hungry", "type": "boolean"})
    response = client.post(
        "/v1/entries",
        json={
            "date": "2025-06-12T14:30:00",
            "category": "REWARD",
            "notes": "Had a snack",
            "custom_fields": {"Hungry": {"kind": "boolean", "boolean": True}},
        },
    )
    assert response.status_code == 200
    csv_text = client.get("/v1/export.csv").text
    assert csv_text == "Date,Time,Reason,Notes,Hungry\n2025-06-12,14:30:00,REWARD,Had a snack,Yes\n"


def test_builtin_category_cannot_be_deleted(client, context):
    builtin = context.store.categories[0]
    client.delete(f"/v1/categories/{builtin.id}")
    assert builtin in context.store.categories

    custom = client.post("/v1/categories", json={"name": "  Boredom  "}).json()
    assert custom["name"] == "Boredom"
    assert custom["is_custom"] is True
    client.delete(f"/v1/categories/{custom['id']}")
    assert [c.name for c in context.store.categories] == ["RELAX", "REWARD", "FOCUS", "HUMAN NEED"]


def test_empty_names_are_rejected(client):
    assert client.post("/v1/categories", json={"name": "   "}).status_code == 400
    assert client.post("/v1/columns", json={"name": ""}).status_code == 400


def test_settings_and_clear(client, context):
    client.put("/v1/settings/habit-name", json={"name": "Snacking"})
    assert client.get("/v1/settings").json()["habit_name"] == "Snacking"
    context.store.add_category("Boredom")
    client.post("/v1/settings/clear")
    assert context.store.habit_name == ""
    assert len(context.store.categories) == 4


def test_metrics_endpoints(client, context):
    today = datetime.now().replace(microsecond=0)
    client.post("/v1/entries", json={"date": today.isoformat(), "category": "FOCUS"})

    summary = client.get("/v1/metrics/summary").json()
    assert summary["events_this_week"] == 1
    assert len(summary["weekly_events"]) in (53, 54)

    assert client.get("/v1/metrics/trailing", params={"days": 1}).json()["count"] == 1
    assert client.get("/v1/metrics/trailing", params={"days": 0}).json()["count"] == 0
    assert client.get("/v1/metrics/buckets", params={"unit": "month"}).json()["items"][-1]["count"] == 1
    assert client.get("/v1/metrics/buckets", params={"unit": "day"}).status_code == 400

    breakdown = client.get(
        "/v1/metrics/categories",
        params={"start": "2000-01-01T00:00:00", "end": "2100-01-01T00:00:00"},
    ).json()
    assert breakdown["items"] == [{"label": "FOCUS", "count": 1}]


def test_sync_status_and_callback(client, context):
    assert client.get("/v1/sync/status").json()["state"] == "disconnected"
    assert client.post("/v1/sync/pull").json()["ok"] is False

    response = client.get("/v1/oauth/google/callback", params={"error": "access_denied"})
    assert response.json()["ok"] is False
    assert response.json()["status"]["error"] is None

    response = client.get("/v1/oauth/google/callback", params={"code": "abc"})
    assert response.json()["ok"] is True
    assert response.json()["status"]["state"] == "idle"
    assert response.json()["status"]["document_id"] == "doc-1"


def test_connect_requires_configuration(client):
    assert client.get("/v1/oauth/google/connect").status_code == 400


def test_backend_token_is_enforced(tmp_path):
    settings = Settings(
        _env_file=None,
        DATABASE_URL=f"sqlite:///{tmp_path / 'secure.db'}",
        BACKEND_SESSION_SECRET="s3cret",
    )
    client = TestClient(create_app(build_context(settings, drive=FakeRemote())))
    assert client.get("/v1/entries").status_code == 401
    assert client.get("/v1/entries", headers={"X-Backend-Token": "s3cret"}).status_code == 200


def test_offset_query_datetimes_are_compared_as_local_time(client, context):
    client.post("/v1/entries", json={"date": "2026-06-15T12:00:00", "category": "RELAX"})

    breakdown = client.get(
        "/v1/metrics/categories",
        params={"start": "2026-01-01T00:00:00Z", "end": "2027-01-01T00:00:00+02:00"},
    )
    assert breakdown.status_code == 200
    assert breakdown.json()["items"] == [{"label": "RELAX", "count": 1}]

    buckets = client.get(
        "/v1/metrics/buckets",
        params={"unit": "month", "start": "2026-01-15T00:00:00Z", "end": "2026-12-15T00:00:00Z"},
    )
    assert buckets.status_code == 200
    assert sum(item["count"] for item in buckets.json()["items"]) == 1

    week = client.get("/v1/entries", params={"week": "2026-06-17T12:00:00Z"})
    assert week.status_code == 200
    assert len(week.json()["items"]) == 1


def test_names_with_commas_are_rejected(client, context):
    assert client.post("/v1/categories", json={"name": "Snack, late"}).status_code == 400
    assert client.post("/v1/columns", json={"name": "Mood, late"}).status_code == 400
    assert all(category.name != "Snack, late" for category in context.store.categories)
    assert context.store.custom_columns == []
