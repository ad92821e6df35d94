"""
Middleware stack (middleware.py).
"""

import logging

import pytest

from waymark.middleware import MiddlewareStack, RequestIdMiddleware, RequestLoggerMiddleware
from waymark.response import Response
from tests.conftest import make_request


def recorder(calls, label):
    async def middleware(request, response, call_next):
        calls.append(f"{label}:in")
        await call_next(request, response)
        calls.append(f"{label}:out")
    middleware.__name__ = label
    return middleware


class TestMiddlewareStack:

    @pytest.mark.asyncio
    async def test_scope_then_priority_order(self):
        calls = []
        stack = MiddlewareStack()
        stack.add(recorder(calls, "route"), scope="route:Items.get")
        stack.add(recorder(calls, "late"), priority=90)
        stack.add(recorder(calls, "early"), priority=10)

        async def handler(request, response):
            calls.append("handler")

        await stack.build_handler(handler)(make_request(), Response())
        assert calls == [
            "early:in", "late:in", "route:in",
            "handler",
            "route:out", "late:out", "early:out",
        ]

    @pytest.mark.asyncio
    async def test_equal_priority_keeps_insertion_order(self):
        calls = []
        stack = MiddlewareStack()
        stack.add(recorder(calls, "a"))
        stack.add(recorder(calls, "b"))

        async def handler(request, response):
            pass

        await stack.build_handler(handler)(make_request(), Response())
        assert calls == ["a:in", "b:in", "b:out", "a:out"]

    def test_names(self):
        stack = MiddlewareStack()
        stack.add(RequestIdMiddleware())
        stack.add(recorder([], "custom"), name="renamed")
        assert [d.name for d in stack.middlewares] == ["RequestIdMiddleware", "renamed"]
        assert len(stack) == 2


class TestBuiltins:

    @pytest.mark.asyncio
    async def test_request_id(self):
        seen = {}

        async def handler(request, response):
            seen["id"] = request.state["request_id"]

        response = Response()
        await RequestIdMiddleware("X-Correlation-ID")(
            make_request(headers=[("x-correlation-id", "abc")]), response, handler,
        )
        assert seen["id"] == "abc"
        assert response.headers["x-correlation-id"] == "abc"

    @pytest.mark.asyncio
    async def test_request_logger(self, caplog):
        async def handler(request, response):
            response.send_json({}, 204)

        with caplog.at_level(logging.DEBUG, logger="waymark.middleware"):
            await RequestLoggerMiddleware()(make_request("GET", "/ping"), Response(), handler)

        messages = [r.getMessage() for r in caplog.records]
        assert "Request: GET /ping" in messages
        assert any(m.startswith("GET /ping - 204") for m in messages)
