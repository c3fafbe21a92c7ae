"""Shared fixtures: a recording httpx.MockTransport and client/dispatcher builders."""

import json
from typing import Any, Callable, Optional

import httpx
import pytest

from wecom_robot import Settings, ToolDispatcher, WeComClient

KEY = "test-key-0123456789abcdef"

OK = {"errcode": 0, "errmsg": "ok"}
UPLOAD_OK = {"errcode": 0, "errmsg": "ok", "type": "file", "media_id": "MEDIA-1", "created_at": "1380000000"}


def default_responder(request: httpx.Request) -> httpx.Response:
    if request.url.path.endswith("/upload_media"):
        return httpx.Response(200, json=UPLOAD_OK)
    return httpx.Response(200, json=OK)


class Recorder:
    """MockTransport handler that records every request it sees."""

    def __init__(self, responder: Optional[Callable[[httpx.Request], httpx.Response]] = None):
        self.requests: list[httpx.Request] = []
        self._responder = responder or default_responder

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._responder(request)

    @property
    def sends(self) -> list[dict[str, Any]]:
        return [json.loads(r.content) for r in self.requests if r.url.path.endswith("/send")]


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture
def make_client(recorder: Recorder) -> Callable[..., WeComClient]:
    def _make(key: str = KEY, **kwargs: Any) -> WeComClient:
        return WeComClient(key, transport=httpx.MockTransport(recorder), **kwargs)
    return _make


@pytest.fixture
def make_dispatcher(recorder: Recorder) -> Callable[..., ToolDispatcher]:
    def _make(webhook_key: Optional[str] = KEY) -> ToolDispatcher:
        settings = Settings(webhook_key=webhook_key)
        return ToolDispatcher(
            settings,
            client_factory=lambda key: WeComClient.from_settings(key, settings, transport=httpx.MockTransport(recorder)),
        )
    return _make
