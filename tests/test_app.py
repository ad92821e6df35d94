"""
ASGI host (app.py) end to end.

Controllers are compiled into a Waymark app with a private registry and
driven through the in-process TestClient (and once through httpx's ASGI
transport).
"""

from typing import Annotated, Optional

import httpx
import pytest
from pydantic import BaseModel

from waymark import (
    Waymark,
    WaymarkConfig,
    Controller,
    Get, Post, Put, Delete,
    Body, Param, Query, Headers, Res,
    ValidateBody,
    ApiResponse,
    ApiOkResponse,
    UseMiddleware,
    HTTPFault,
    ControllerNotRegisteredFault,
    Response,
    success_message,
    error_envelope,
)
from waymark.testing import TestClient


class ItemIn(BaseModel):
    name: str
    price: float


async def stamp(request, response, call_next):
    await call_next(request, response)
    response.set_header("X-Stamped", "yes")


def build_app(registry, config: Optional[WaymarkConfig] = None, **kwargs) -> Waymark:
    @Controller("/items", registry=registry)
    class ItemsController:

        def __init__(self):
            self.items = {"1": {"id": "1", "name": "bolt"}}

        @Get("")
        def list_items(self, page: Annotated[Optional[str], Query("page")] = None):
            return {"items": list(self.items.values()), "page": page}

        @Get("/:id")
        async def get_item(self, id: Annotated[str, Param("id")]):
            item = self.items.get(id)
            if item is None:
                raise HTTPFault(f"Item {id} not found", code="ITEM_NOT_FOUND", status=404)
            return item

        @Post("")
        @ValidateBody(ItemIn)
        async def create(self, payload=Body()):
            return payload

        @Put("/:id")
        @ApiResponse(202, "Accepted")
        def replace(self, id=Param("id"), name=Body("name")):
            return {"id": id, "name": name}

        @Delete("/:id")
        def remove(self, id=Param("id")):
            self.items.pop(id, None)
            return success_message("Deleted")

        @Get("/agent")
        def agent(self, agent=Headers("user-agent")):
            return agent

        @Post("/reject")
        def reject(self):
            return error_envelope("Rejected", "REJECTED")

    @Controller("/misc", registry=registry)
    class MiscController:

        @Get("/boom")
        def boom(self):
            raise RuntimeError("kaput")

        @Get("/manual")
        def manual(self, res=Res()):
            res.send("manual", status=203, media_type="text/plain")

        @Get("/silent")
        def silent(self):
            return None

        @Get("/custom")
        def custom(self):
            return Response.text("plain", status=418)

        @Get("/stamped")
        @UseMiddleware(stamp)
        def stamped(self):
            return "ok"

    app = Waymark(config or WaymarkConfig(), registry=registry, **kwargs)
    app.register_controller(ItemsController(), prefix="/api")
    app.register_controller(MiscController())
    return app


# ============================================================================
# Happy paths
# ============================================================================

class TestRoutes:

    @pytest.mark.asyncio
    async def test_get_wraps_result(self, registry):
        app = build_app(registry)
        async with TestClient(app) as client:
            resp = await client.get("/api/items", query_string="page=2")

        assert resp.status_code == 200
        assert resp.header("content-type") == "application/json; charset=utf-8"
        assert resp.json() == {
            "success": True,
            "data": {"items": [{"id": "1", "name": "bolt"}], "page": "2"},
        }

    @pytest.mark.asyncio
    async def test_documented_ok_route(self, registry):
        @Controller("/api/test", registry=registry)
        class CatalogController:
            @Get("/items")
            @ApiOkResponse("Returns items")
            def get_items(self):
                return [{"id": 1}, {"id": 2}]

        app = Waymark(WaymarkConfig(), registry=registry)
        app.register_controller(CatalogController())
        async with TestClient(app) as client:
            resp = await client.get("/api/test/items")

        assert resp.status_code == 200
        assert resp.json() == {"success": True, "data": [{"id": 1}, {"id": 2}]}

    @pytest.mark.asyncio
    async def test_keyword_only_query(self, registry):
        @Controller("/search", registry=registry)
        class SearchController:
            @Get("")
            def search(self, *, q=Query("q"), limit=Query("limit", transform=int)):
                return {"q": q, "limit": limit}

        app = Waymark(WaymarkConfig(), registry=registry)
        app.register_controller(SearchController())
        async with TestClient(app) as client:
            resp = await client.get("/search", query_string="q=bolt&limit=5")

        assert resp.status_code == 200
        assert resp.json()["data"] == {"q": "bolt", "limit": 5}

    @pytest.mark.asyncio
    async def test_route_param(self, registry):
        app = build_app(registry)
        async with TestClient(app) as client:
            resp = await client.get("/api/items/1")
        assert resp.json() == {"success": True, "data": {"id": "1", "name": "bolt"}}

    @pytest.mark.asyncio
    async def test_post_defaults_to_201(self, registry):
        app = build_app(registry)
        async with TestClient(app) as client:
            resp = await client.post("/api/items", json={"name": "nut", "price": 0.5})
        assert resp.status_code == 201
        assert resp.json() == {"success": True, "data": {"name": "nut", "price": 0.5}}

    @pytest.mark.asyncio
    async def test_declared_status(self, registry):
        app = build_app(registry)
        async with TestClient(app) as client:
            resp = await client.put("/api/items/1", json={"name": "washer"})
        assert resp.status_code == 202
        assert resp.json()["data"] == {"id": "1", "name": "washer"}

    @pytest.mark.asyncio
    async def test_envelope_passthrough(self, registry):
        app = build_app(registry)
        async with TestClient(app) as client:
            deleted = await client.delete("/api/items/1")
            rejected = await client.post("/api/items/reject")

        assert deleted.status_code == 200
        assert deleted.json() == {"success": True, "message": "Deleted"}
        assert rejected.status_code == 400
        assert rejected.json() == {"success": False, "error": "Rejected", "code": "REJECTED"}

    @pytest.mark.asyncio
    async def test_header_param(self, registry):
        app = build_app(registry)
        async with TestClient(app) as client:
            resp = await client.get("/api/items/agent", headers={"User-Agent": "probe/1.0"})
        assert resp.json()["data"] == "probe/1.0"

    @pytest.mark.asyncio
    async def test_handler_writes_response_itself(self, registry):
        app = build_app(registry)
        async with TestClient(app) as client:
            resp = await client.get("/misc/manual")
        assert resp.status_code == 203
        assert resp.text == "manual"

    @pytest.mark.asyncio
    async def test_returned_response_is_adopted(self, registry):
        app = build_app(registry)
        async with TestClient(app) as client:
            resp = await client.get("/misc/custom")
        assert resp.status_code == 418
        assert resp.text == "plain"

    @pytest.mark.asyncio
    async def test_none_result_flushes_empty_200(self, registry):
        app = build_app(registry)
        async with TestClient(app) as client:
            resp = await client.get("/misc/silent")
        assert resp.status_code == 200
        assert resp.body == b""

    @pytest.mark.asyncio
    async def test_head_has_no_body(self, registry):
        app = build_app(registry)
        async with TestClient(app) as client:
            resp = await client.head("/api/items")
        assert resp.status_code == 200
        assert resp.body == b""
        assert int(resp.header("content-length")) > 0

    @pytest.mark.asyncio
    async def test_through_httpx(self, registry):
        app = build_app(registry)
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            resp = await client.get("/api/items/1")
        assert resp.status_code == 200
        assert resp.json()["data"]["name"] == "bolt"


# ============================================================================
# Errors
# ============================================================================

class TestErrorAnswers:

    @pytest.mark.asyncio
    async def test_unknown_route_is_404(self, registry):
        app = build_app(registry)
        async with TestClient(app) as client:
            resp = await client.get("/nowhere")
        assert resp.status_code == 404
        assert resp.json() == {
            "success": False,
            "error": "Not Found",
            "message": "Route /nowhere not found",
        }

    @pytest.mark.asyncio
    async def test_wrong_method_is_405(self, registry):
        app = build_app(registry)
        async with TestClient(app) as client:
            resp = await client.patch("/api/items/1")
        assert resp.status_code == 405
        body = resp.json()
        assert body["code"] == "METHOD_NOT_ALLOWED"
        assert body["details"] == {"allowed": ["GET", "PUT", "DELETE"]}

    @pytest.mark.asyncio
    async def test_handler_fault(self, registry):
        app = build_app(registry)
        async with TestClient(app) as client:
            resp = await client.get("/api/items/99")
        assert resp.status_code == 404
        assert resp.json() == {"success": False, "error": "Item 99 not found", "code": "ITEM_NOT_FOUND"}

    @pytest.mark.asyncio
    async def test_validation_failure(self, registry):
        app = build_app(registry)
        async with TestClient(app) as client:
            resp = await client.post("/api/items", json={"name": "nut"})
        assert resp.status_code == 400
        body = resp.json()
        assert body["error"] == "Validation failed"
        assert body["code"] == "VALIDATION_ERROR"
        assert body["details"][0]["loc"] == ["price"]

    @pytest.mark.asyncio
    async def test_invalid_json(self, registry):
        app = build_app(registry)
        async with TestClient(app) as client:
            resp = await client.post(
                "/api/items",
                body=b"{not json",
                headers={"Content-Type": "application/json"},
            )
        assert resp.status_code == 400
        assert resp.json()["code"] == "INVALID_JSON"

    @pytest.mark.asyncio
    async def test_form_body_not_utf8(self, registry):
        app = build_app(registry)
        async with TestClient(app) as client:
            resp = await client.post(
                "/api/items",
                body=b"a=\xff\xfe",
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )
        assert resp.status_code == 400
        assert resp.json()["code"] == "BAD_REQUEST"

    @pytest.mark.asyncio
    async def test_body_too_large(self, registry):
        app = build_app(registry, WaymarkConfig(max_body_size=16))
        async with TestClient(app) as client:
            resp = await client.post("/api/items", json={"name": "x" * 64, "price": 1})
        assert resp.status_code == 413
        assert resp.json()["code"] == "PAYLOAD_TOO_LARGE"

    @pytest.mark.asyncio
    async def test_unhandled_error_hidden(self, registry):
        app = build_app(registry)
        async with TestClient(app) as client:
            resp = await client.get("/misc/boom")
        assert resp.status_code == 500
        assert resp.json() == {"success": False, "error": "Internal server error"}

    @pytest.mark.asyncio
    async def test_unhandled_error_in_debug(self, registry):
        app = build_app(registry, WaymarkConfig(debug=True))
        async with TestClient(app) as client:
            resp = await client.get("/misc/boom")
        body = resp.json()
        assert body["message"] == "kaput"
        assert "RuntimeError" in body["stack"]

    @pytest.mark.asyncio
    async def test_custom_async_error_handler(self, registry):
        seen = []

        async def on_error(exc, request, response):
            seen.append(exc)
            response.send_json({"handled": str(exc)}, 599)

        app = build_app(registry, error_handler=on_error)
        async with TestClient(app) as client:
            resp = await client.get("/misc/boom")

        assert len(seen) == 1
        assert resp.status_code == 599
        assert resp.json() == {"handled": "kaput"}

    def test_unregistered_controller(self, registry):
        class Loose:
            pass

        app = Waymark(registry=registry)
        with pytest.raises(ControllerNotRegisteredFault):
            app.register_controller(Loose())


# ============================================================================
# Middleware
# ============================================================================

class TestMiddleware:

    @pytest.mark.asyncio
    async def test_request_id_generated(self, registry):
        app = build_app(registry)
        async with TestClient(app) as client:
            resp = await client.get("/api/items")
        assert len(resp.header("x-request-id")) == 32

    @pytest.mark.asyncio
    async def test_request_id_echoed(self, registry):
        app = build_app(registry)
        async with TestClient(app) as client:
            resp = await client.get("/api/items", headers={"X-Request-ID": "req-42"})
        assert resp.header("x-request-id") == "req-42"

    @pytest.mark.asyncio
    async def test_default_middleware_disabled(self, registry):
        app = build_app(registry, default_middleware=False)
        async with TestClient(app) as client:
            resp = await client.get("/api/items")
        assert resp.header("x-request-id") is None

    @pytest.mark.asyncio
    async def test_route_middleware(self, registry):
        app = build_app(registry)
        async with TestClient(app) as client:
            stamped = await client.get("/misc/stamped")
            plain = await client.get("/api/items")
        assert stamped.header("x-stamped") == "yes"
        assert plain.header("x-stamped") is None

    @pytest.mark.asyncio
    async def test_global_middleware_can_short_circuit(self, registry):
        async def maintenance(request, response, call_next):
            response.send_json(error_envelope("Down for maintenance").to_dict(), 503)

        app = build_app(registry)
        app.use(maintenance, priority=5)
        async with TestClient(app) as client:
            resp = await client.get("/api/items")
        assert resp.status_code == 503

    def test_route_table(self, registry):
        app = build_app(registry)
        table = {(r["method"], r["path"]): r for r in app.routes()}
        assert table[("GET", "/api/items/:id")]["name"] == "ItemsController.get_item"
        assert table[("GET", "/misc/stamped")]["middleware"] == ["stamp"]


# ============================================================================
# Lifecycle
# ============================================================================

class TestLifecycle:

    @pytest.mark.asyncio
    async def test_startup_seals_registry(self, registry):
        app = build_app(registry)
        assert not registry.sealed
        async with TestClient(app):
            assert registry.sealed

    @pytest.mark.asyncio
    async def test_sealing_can_be_disabled(self, registry):
        app = build_app(registry, WaymarkConfig(seal_registry=False))
        async with TestClient(app):
            assert not registry.sealed

    @pytest.mark.asyncio
    async def test_hooks_run_in_order(self, registry):
        calls = []
        app = build_app(registry)

        @app.on_startup
        async def open_pool():
            calls.append("open")

        @app.on_shutdown
        def close_pool():
            calls.append("close")

        async with TestClient(app):
            calls.append("serve")

        assert calls == ["open", "serve", "close"]

    @pytest.mark.asyncio
    async def test_lifespan_protocol(self, registry):
        app = build_app(registry)
        messages = [{"type": "lifespan.startup"}, {"type": "lifespan.shutdown"}]
        sent = []

        async def receive():
            return messages.pop(0)

        async def send(message):
            sent.append(message["type"])

        await app({"type": "lifespan"}, receive, send)
        assert sent == ["lifespan.startup.complete", "lifespan.shutdown.complete"]
        assert registry.sealed

    @pytest.mark.asyncio
    async def test_lifespan_startup_failure(self, registry):
        app = build_app(registry)

        @app.on_startup
        def broken():
            raise RuntimeError("no database")

        sent = []

        async def receive():
            return {"type": "lifespan.startup"}

        async def send(message):
            sent.append(message)

        with pytest.raises(RuntimeError):
            await app({"type": "lifespan"}, receive, send)
        assert sent[0]["type"] == "lifespan.startup.failed"
        assert sent[0]["message"] == "no database"
