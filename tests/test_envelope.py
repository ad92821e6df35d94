"""
Response envelope (envelope.py) and Response writer (response.py).
"""

import dataclasses
import enum
import json

import pytest

from waymark.envelope import (
    Envelope,
    ResponseHelper,
    error_envelope,
    success_data,
    success_message,
)
from waymark.response import Response, ResponseCommittedFault, dump_json


class TestEnvelopeHelpers:

    def test_success_data(self):
        assert success_data({"id": 1}).to_dict() == {"success": True, "data": {"id": 1}}

    def test_success_data_keeps_falsy_payloads(self):
        assert success_data([]).to_dict() == {"success": True, "data": []}
        assert success_data(0).to_dict() == {"success": True, "data": 0}
        assert success_data(None).to_dict() == {"success": True, "data": None}

    def test_success_message(self):
        assert success_message("Saved").to_dict() == {"success": True, "message": "Saved"}

    def test_error_minimal(self):
        assert error_envelope("Boom").to_dict() == {"success": False, "error": "Boom"}

    def test_error_with_code_and_details(self):
        body = error_envelope("Invalid", "VALIDATION_ERROR", [{"field": "name"}]).to_dict()
        assert body == {
            "success": False,
            "error": "Invalid",
            "code": "VALIDATION_ERROR",
            "details": [{"field": "name"}],
        }

    def test_error_omits_falsy_code_and_details(self):
        assert error_envelope("X", "", []).to_dict() == {"success": False, "error": "X"}

    def test_envelope_is_frozen(self):
        env = success_message("x")
        with pytest.raises(dataclasses.FrozenInstanceError):
            env.success = False

    def test_wire_names(self):
        body = Envelope(success=False, error="e", code="C", details={"a": 1}, message="m").to_dict()
        assert set(body) == {"success", "error", "code", "details", "message"}


class TestResponseHelper:

    def test_success_data(self):
        response = Response()
        ResponseHelper(response).success_data({"id": 3}, 201)
        assert response.status == 201
        assert json.loads(response.body) == {"success": True, "data": {"id": 3}}

    def test_success_message(self):
        response = Response()
        ResponseHelper(response).success_message("Queued", 202)
        assert json.loads(response.body) == {"success": True, "message": "Queued"}

    def test_error_defaults_to_500(self):
        response = Response()
        ResponseHelper(response).error("Down")
        assert response.status == 500
        assert json.loads(response.body) == {"success": False, "error": "Down"}


class TestResponse:

    def test_send_commits(self):
        response = Response()
        assert not response.committed
        response.send("hi", status=202, media_type="text/plain")
        assert response.committed
        assert response.status == 202
        assert response.body == b"hi"

    def test_second_write_rejected(self):
        response = Response()
        response.send_json({"a": 1})
        with pytest.raises(ResponseCommittedFault):
            response.send_json({"a": 2})

    def test_adopt(self):
        response = Response()
        response.adopt(Response.json({"x": 1}, status=203, headers={"X-Extra": "1"}))
        assert response.committed
        assert response.status == 203
        assert response.headers["x-extra"] == "1"
        assert json.loads(response.body) == {"x": 1}

    def test_set_header_rejects_newlines(self):
        with pytest.raises(ValueError):
            Response().set_header("X-Bad", "a\r\nb")

    def test_dump_json_handles_common_types(self):
        class Color(enum.Enum):
            RED = "red"

        @dataclasses.dataclass
        class Point:
            x: int
            y: int

        payload = {"color": Color.RED, "point": Point(1, 2), "tags": {"a"}}
        assert json.loads(dump_json(payload)) == {"color": "red", "point": {"x": 1, "y": 2}, "tags": ["a"]}

    @pytest.mark.asyncio
    async def test_send_asgi(self):
        events = []

        async def send(event):
            events.append(event)

        response = Response()
        response.send_json({"ok": True})
        await response.send_asgi(send)

        start, body = events
        assert start["status"] == 200
        headers = dict(start["headers"])
        assert headers[b"content-type"] == b"application/json; charset=utf-8"
        assert headers[b"content-length"] == str(len(body["body"])).encode()
        assert json.loads(body["body"]) == {"ok": True}

    @pytest.mark.asyncio
    async def test_send_asgi_head_omits_body(self):
        events = []

        async def send(event):
            events.append(event)

        response = Response()
        response.send_json({"ok": True})
        await response.send_asgi(send, head=True)
        assert events[1]["body"] == b""
        assert dict(events[0]["headers"])[b"content-length"] != b"0"
