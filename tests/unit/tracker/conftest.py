"""Fake HTTP tracker for tracker client tests."""

from __future__ import annotations

import asyncio

import pytest_asyncio
from aiohttp import web

from peerrelay.core.bencode import encode


class FakeTracker:
    """In-process tracker whose replies are set by each test."""

    def __init__(self) -> None:
        self.announce_body: bytes = encode({b"interval": 1800, b"peers": b""})
        self.announce_status = 200
        self.scrape_body: bytes = encode({b"files": {}})
        self.delay = 0.0
        self.announce_queries: list[str] = []
        self.scrape_queries: list[str] = []
        self.base_url = ""
        self._runner: web.AppRunner | None = None

    @property
    def announce_url(self) -> str:
        return f"{self.base_url}/announce"

    async def _announce(self, request: web.Request) -> web.Response:
        self.announce_queries.append(request.rel_url.raw_query_string)
        if self.delay:
            await asyncio.sleep(self.delay)
        return web.Response(body=self.announce_body, status=self.announce_status)

    async def _scrape(self, request: web.Request) -> web.Response:
        self.scrape_queries.append(request.rel_url.raw_query_string)
        return web.Response(body=self.scrape_body)

    async def start(self) -> None:
        app = web.Application()
        app.router.add_get("/announce", self._announce)
        app.router.add_get("/scrape", self._scrape)
        self._runner = web.AppRunner(app)
        await self._runner.setup()
        site = web.TCPSite(self._runner, "127.0.0.1", 0)
        await site.start()
        port = self._runner.addresses[0][1]
        self.base_url = f"http://127.0.0.1:{port}"

    async def stop(self) -> None:
        if self._runner is not None:
            await self._runner.cleanup()


@pytest_asyncio.fixture
async def fake_tracker():
    """A running fake tracker."""
    tracker = FakeTracker()
    await tracker.start()
    yield tracker
    await tracker.stop()
