"""
Preferences debug API — the facade over HTTP for a debugging console.

Endpoints:
    GET  /v1/rooms/{room_id}/prefs/{user_id}        → Blob for a user in a room
    PUT  /v1/rooms/{room_id}/prefs/{user_id}        → Merge a JSON object into it
    PUT  /v1/rooms/{room_id}/prefs/{user_id}/color  → Set just the color
    PUT  /v1/color                                  → set_color (current space fallback)
    GET  /v1/account/color                          → My global color
    PUT  /v1/account/color                          → Set my global color
    POST /v1/account/color/publish                  → Copy a color into the current space
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse

from mates_prefs.core.errors import BackendRejected, NotReady

if TYPE_CHECKING:
    from mates_prefs.facade import PreferencesAPI

logger = logging.getLogger(__name__)


async def _call(op: Callable[[], Awaitable[Any]]) -> tuple[Any, JSONResponse | None]:
    try:
        return await op(), None
    except BackendRejected as e:
        logger.warning("Homeserver rejected request: %s", e, extra={"status": e.status})
        return None, JSONResponse(e.to_dict(), status_code=502)
    except NotReady as e:
        return None, JSONResponse({"error": str(e)}, status_code=503)


async def _json_object(request: Request) -> dict | None:
    try:
        body = await request.json()
    except ValueError:
        return None
    return body if isinstance(body, dict) else None


def _bad_request(message: str) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=400)


def create_prefs_router(api: "PreferencesAPI") -> APIRouter:
    """Create the preferences router bound to one facade."""

    router = APIRouter(prefix="/v1", tags=["prefs"])

    @router.get("/rooms/{room_id}/prefs/{user_id}")
    async def get_room_prefs(room_id: str, user_id: str) -> Response:
        blob, error = await _call(lambda: api.get_from_room(room_id, user_id))
        return error or JSONResponse(blob)

    @router.put("/rooms/{room_id}/prefs/{user_id}")
    async def put_room_prefs(room_id: str, user_id: str, request: Request) -> Response:
        body = await _json_object(request)
        if body is None:
            return _bad_request("Body must be a JSON object")
        _, error = await _call(lambda: api.set_in_room(room_id, user_id, body))
        return error or Response(status_code=204)

    @router.put("/rooms/{room_id}/prefs/{user_id}/color")
    async def put_room_color(room_id: str, user_id: str, request: Request) -> Response:
        body = await _json_object(request)
        if body is None or "color" not in body:
            return _bad_request("Body must be {\"color\": ...}")
        _, error = await _call(lambda: api.set_color(user_id, body["color"], room_id))
        return error or Response(status_code=204)

    @router.put("/color")
    async def put_color(request: Request) -> Response:
        body = await _json_object(request)
        if body is None or "color" not in body or not body.get("user_id"):
            return _bad_request("Body must be {\"user_id\": ..., \"color\": ...}")
        _, error = await _call(
            lambda: api.set_color(body["user_id"], body["color"], body.get("room_id"))
        )
        return error or Response(status_code=204)

    # ─── Account color ────────────────────────────────────────

    @router.get("/account/color")
    async def get_account_color() -> Response:
        color, error = await _call(api.get_account_color)
        return error or JSONResponse({"color": color})

    @router.put("/account/color")
    async def put_account_color(request: Request) -> Response:
        body = await _json_object(request)
        if body is None or "color" not in body:
            return _bad_request("Body must be {\"color\": ...}")
        _, error = await _call(lambda: api.set_account_color(body["color"]))
        return error or Response(status_code=204)

    @router.post("/account/color/publish")
    async def publish_account_color(request: Request) -> Response:
        body = await _json_object(request)
        if body is None or "color" not in body:
            return _bad_request("Body must be {\"color\": ...}")
        published, error = await _call(lambda: api.publish_color(body["color"]))
        return error or JSONResponse({"published": published})

    return router
