"""
Shared test fixtures and helpers for the Waymark test suite.
"""

import json
import pytest
from typing import Any, List, Optional

from waymark.controller.registry import MetadataRegistry, default_registry
from waymark.request import Request
from waymark.response import Response
from waymark.testing import make_scope, make_receive


# ============================================================================
# Request Helpers
# ============================================================================


def make_request(
    method: str = "GET",
    path: str = "/",
    query_string: str = "",
    headers: Optional[List[tuple]] = None,
    body: bytes = b"",
    **kwargs,
) -> Request:
    """Build a full Request object for testing."""
    scope = make_scope(method, path, query_string=query_string, headers=headers)
    return Request(scope, make_receive(body), **kwargs)


async def make_loaded_request(
    method: str = "POST",
    path: str = "/",
    *,
    json_body: Any = None,
    path_params: Optional[dict] = None,
    **kwargs,
) -> Request:
    """Build a Request whose body was already read and parsed."""
    headers = list(kwargs.pop("headers", None) or [])
    body = kwargs.pop("body", b"")
    if json_body is not None:
        body = json.dumps(json_body).encode("utf-8")
        headers.append(("content-type", "application/json"))
    request = make_request(method, path, headers=headers, body=body, **kwargs)
    await request.load()
    if path_params:
        request.path_params = dict(path_params)
    return request


def response_json(response: Response) -> Any:
    return json.loads(response.body)


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def registry() -> MetadataRegistry:
    """A fresh, unsealed registry per test."""
    return MetadataRegistry()


@pytest.fixture(autouse=True)
def _reset_default_registry():
    """Tests that touch the shared registry never leak into each other."""
    yield
    default_registry.reset()
