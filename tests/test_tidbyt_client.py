"""Tests for TidbytClient against a local aiohttp server standing in for the Tidbyt API."""

import asyncio
import base64

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from tidbyt_worker.errors import PushError
from tidbyt_worker.tidbyt_client import TidbytClient


class MockTidbytApi:
    """Records push requests and answers with a configurable status."""

    def __init__(self, status: int = 200, body: str = "{}", delay: float = 0.0):
        self.status = status
        self.body = body
        self.delay = delay
        self.requests: list[dict] = []
        self.app = web.Application()
        self.app.router.add_post("/v0/devices/{device_id}/push", self.handle_push)

    async def handle_push(self, request: web.Request) -> web.Response:
        self.requests.append({
            "device_id": request.match_info["device_id"],
            "path": request.raw_path,
            "authorization": request.headers.get("Authorization"),
            "json": await request.json(),
        })
        if self.delay:
            await asyncio.sleep(self.delay)
        return web.Response(status=self.status, text=self.body)


def make_client(server: TestServer, **overrides) -> TidbytClient:
    kwargs = {
        "api_key": "secret-key",
        "device_id": "device-1",
        "installation_id": "effekt-donation-alert",
        "background": True,
        "base_url": str(server.make_url("/")),
        "timeout_ms": 5000,
    }
    kwargs.update(overrides)
    return TidbytClient(**kwargs)


class TestPayload:

    def test_background_requires_installation_id(self):
        client = TidbytClient("k", "d", installation_id="", background=True)

        payload = client.build_payload(b"img")

        assert payload["background"] is False
        assert "installationID" not in payload
        assert base64.b64decode(payload["image"]) == b"img"

    def test_device_id_is_path_escaped(self):
        client = TidbytClient("k", "my device/1", base_url="https://api.tidbyt.com/")
        assert client.push_url == "https://api.tidbyt.com/v0/devices/my%20device%2F1/push"


class TestPush:

    @pytest.mark.asyncio
    async def test_push_sends_image_and_auth(self):
        api = MockTidbytApi()
        async with TestServer(api.app) as server:
            client = make_client(server)
            await client.push(b"\x00webp-bytes")

        assert len(api.requests) == 1
        req = api.requests[0]
        assert req["device_id"] == "device-1"
        assert req["authorization"] == "Bearer secret-key"
        assert base64.b64decode(req["json"]["image"]) == b"\x00webp-bytes"
        assert req["json"]["installationID"] == "effekt-donation-alert"
        assert req["json"]["background"] is True

    @pytest.mark.asyncio
    async def test_error_status_raises_push_error(self):
        api = MockTidbytApi(status=429, body="rate limited")
        async with TestServer(api.app) as server:
            client = make_client(server)
            with pytest.raises(PushError) as excinfo:
                await client.push(b"img")

        assert excinfo.value.status == 429
        assert excinfo.value.body == "rate limited"

    @pytest.mark.asyncio
    async def test_timeout_propagates(self):
        api = MockTidbytApi(delay=1.0)
        async with TestServer(api.app) as server:
            client = make_client(server, timeout_ms=100)
            with pytest.raises(asyncio.TimeoutError):
                await client.push(b"img")
