"""Bot Framework endpoint -- POST /api/messages."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

from aiohttp import web
from botbuilder.schema import Activity

from ..config.settings import cfg

if TYPE_CHECKING:
    from botbuilder.core import BotFrameworkAdapter

    from ..messaging.bot import RelayBot

logger = logging.getLogger(__name__)


class BotEndpoint:
    """Hands incoming Bot Framework activities to the relay bot."""

    def __init__(self, adapter: BotFrameworkAdapter, bot: RelayBot) -> None:
        self.adapter = adapter
        self._bot = bot

    def register(self, router: web.UrlDispatcher) -> None:
        router.add_post("/api/messages", self.handle)
        router.add_get("/api/messages", self._get_messages)

    async def _get_messages(self, _req: web.Request) -> web.Response:
        """GET /api/messages -- simple health probe for the bot endpoint."""
        return web.json_response({
            "status": "ok",
            "endpoint": "/api/messages",
            "method": "POST required",
            "bot_configured": bool(cfg.bot_app_id),
        })

    async def handle(self, req: web.Request) -> web.Response:
        if not cfg.bot_app_id or not cfg.bot_app_password:
            logger.warning(
                "[bot] Rejected: bot credentials not configured (app_id=%s, password=%s)",
                bool(cfg.bot_app_id), bool(cfg.bot_app_password),
            )
            return web.json_response(
                {"status": "error", "message": "Bot credentials not configured"},
                status=503,
            )

        try:
            body = json.loads(await req.read())
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            logger.error("[bot] Failed to parse JSON body: %s", exc)
            return web.json_response(
                {"status": "error", "message": f"Invalid JSON: {exc}"},
                status=400,
            )
        if not isinstance(body, dict):
            return web.json_response(
                {"status": "error", "message": "Activity must be a JSON object"},
                status=400,
            )

        activity_type = body.get("type", "?")
        channel = body.get("channelId", "?")
        # Message text may carry a Direct Line token; log routing fields only.
        logger.info("[bot] Activity: type=%s channel=%s", activity_type, channel)

        auth_header = req.headers.get("Authorization", "")
        try:
            activity = Activity().deserialize(body)
            response = await self.adapter.process_activity(activity, auth_header, self._bot.on_turn)
        except PermissionError as exc:
            logger.warning("[bot] Authentication failed (401): %s", exc)
            return web.Response(status=401, text=str(exc))
        except Exception as exc:
            logger.exception(
                "[bot] Error processing activity: %s (type=%s channel=%s)",
                exc, activity_type, channel,
            )
            return web.json_response(
                {"status": "error", "message": f"Processing failed: {exc}"},
                status=500,
            )

        if response:
            return web.Response(
                status=response.status,
                body=response.body,
                content_type="application/json",
            )
        return web.Response(status=200)
