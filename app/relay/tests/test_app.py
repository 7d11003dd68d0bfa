"""Tests for the app factory and health endpoint."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest
from aiohttp.test_utils import TestClient, TestServer
from botbuilder.core import BotFrameworkAdapter

from app.relay import __version__
from app.relay.server.app import AppFactory, create_adapter


class TestCreateAdapter:
    def test_adapter_has_error_handler(self) -> None:
        adapter = create_adapter()
        assert isinstance(adapter, BotFrameworkAdapter)
        assert adapter.on_turn_error is not None


class TestAppFactory:
    @pytest.mark.asyncio
    async def test_health_without_session(self, directline_factory, fake_adapter) -> None:
        factory = AppFactory(client=directline_factory(), adapter=fake_adapter)
        async with TestClient(TestServer(factory.build())) as client:
            resp = await client.get("/health")
            assert resp.status == 200
            data = await resp.json()
        assert data == {"status": "ok", "version": __version__, "relay": {"session": None}}

    @pytest.mark.asyncio
    async def test_health_reports_session(
        self, directline_factory, fake_adapter, token_factory, wait_until,
    ) -> None:
        dl = directline_factory(blocking=True)
        factory = AppFactory(client=dl, adapter=fake_adapter)
        async with TestClient(TestServer(factory.build())) as client:
            factory.bot.start_session(token_factory("B1", "C4"))
            await wait_until(lambda: dl.fetch_log)
            data = await (await client.get("/health")).json()
        assert data["relay"]["session"] == {"state": "polling", "conversation_id": "C4", "watermark": None}

    @pytest.mark.asyncio
    async def test_bot_is_wired_to_adapter(self, directline_factory, fake_adapter) -> None:
        factory = AppFactory(client=directline_factory(), adapter=fake_adapter)
        assert factory.bot.adapter is fake_adapter
        assert factory.build()["bot"] is factory.bot

    @pytest.mark.asyncio
    async def test_cleanup_closes_session_and_client(
        self, directline_factory, fake_adapter, token_factory, wait_until,
    ) -> None:
        dl = directline_factory(blocking=True)
        dl.close = AsyncMock()
        factory = AppFactory(client=dl, adapter=fake_adapter)
        async with TestClient(TestServer(factory.build())):
            session = factory.bot.start_session(token_factory())
            await wait_until(lambda: dl.fetch_log)
        assert session.closed
        dl.close.assert_awaited_once()
