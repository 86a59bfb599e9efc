"""Tests for the preferences debug HTTP API."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from mates_prefs.core.errors import BackendRejected, NotReady
from mates_prefs.http.prefs import create_prefs_router


def _make_mock_api():
    api = MagicMock()
    api.get_from_room = AsyncMock(return_value={"color": "#ff0000"})
    api.set_in_room = AsyncMock(return_value=None)
    api.set_color = AsyncMock(return_value=None)
    api.get_account_color = AsyncMock(return_value="#7c3aed")
    api.set_account_color = AsyncMock(return_value=None)
    api.publish_color = AsyncMock(return_value=True)
    return api


@pytest.fixture
def client():
    app = FastAPI()
    api = _make_mock_api()
    app.include_router(create_prefs_router(api))
    return TestClient(app), api


def test_get_room_prefs(client):
    http, api = client
    resp = http.get("/v1/rooms/!abc:x/prefs/@alice:x")
    assert resp.status_code == 200
    assert resp.json() == {"color": "#ff0000"}
    api.get_from_room.assert_awaited_once_with("!abc:x", "@alice:x")


def test_put_room_prefs_merges_object(client):
    http, api = client
    resp = http.put("/v1/rooms/!abc:x/prefs/@alice:x", json={"nickname": "Al"})
    assert resp.status_code == 204
    api.set_in_room.assert_awaited_once_with("!abc:x", "@alice:x", {"nickname": "Al"})


def test_put_room_prefs_rejects_non_object(client):
    http, api = client
    resp = http.put("/v1/rooms/!abc:x/prefs/@alice:x", json=["color"])
    assert resp.status_code == 400
    api.set_in_room.assert_not_awaited()


def test_put_room_color(client):
    http, api = client
    resp = http.put("/v1/rooms/!abc:x/prefs/@alice:x/color", json={"color": "#123"})
    assert resp.status_code == 204
    api.set_color.assert_awaited_once_with("@alice:x", "#123", "!abc:x")


def test_put_color_without_room(client):
    http, api = client
    resp = http.put("/v1/color", json={"user_id": "@alice:x", "color": "#123"})
    assert resp.status_code == 204
    api.set_color.assert_awaited_once_with("@alice:x", "#123", None)


def test_put_color_requires_user(client):
    http, _ = client
    assert http.put("/v1/color", json={"color": "#123"}).status_code == 400


def test_account_color_endpoints(client):
    http, api = client
    assert http.get("/v1/account/color").json() == {"color": "#7c3aed"}

    assert http.put("/v1/account/color", json={"color": "#000"}).status_code == 204
    api.set_account_color.assert_awaited_once_with("#000")

    resp = http.post("/v1/account/color/publish", json={"color": "#000"})
    assert resp.json() == {"published": True}


def test_backend_rejection_maps_to_502(client):
    http, api = client
    api.set_in_room.side_effect = BackendRejected(
        "forbidden", status=403, errcode="M_FORBIDDEN"
    )
    resp = http.put("/v1/rooms/!abc:x/prefs/@alice:x", json={"color": "#fff"})
    assert resp.status_code == 502
    assert resp.json()["errcode"] == "M_FORBIDDEN"
    assert resp.json()["status"] == 403


def test_not_ready_maps_to_503(client):
    http, api = client
    api.get_from_room.side_effect = NotReady("closed")
    assert http.get("/v1/rooms/!abc:x/prefs/@alice:x").status_code == 503
