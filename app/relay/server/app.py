"""Relay web server -- app factory and entry point."""

from __future__ import annotations

import logging

from aiohttp import web
from aiohttp.abc import AbstractAccessLogger
from botbuilder.core import BotFrameworkAdapter, BotFrameworkAdapterSettings, TurnContext
from botbuilder.schema import Activity, ActivityTypes

from .. import __version__
from ..config.settings import cfg
from ..directline.client import DirectLineClient
from ..messaging.bot import RelayBot
from .bot_endpoint import BotEndpoint

logger = logging.getLogger(__name__)

_QUIET_PATHS = frozenset({"/health"})


# ---------------------------------------------------------------------------
# Access logger
# ---------------------------------------------------------------------------


class QuietAccessLogger(AbstractAccessLogger):
    """Demotes polling-endpoint log entries to DEBUG."""

    def log(self, request: web.BaseRequest, response: web.StreamResponse, time: float) -> None:
        level = logging.DEBUG if request.path in _QUIET_PATHS else logging.INFO
        self.logger.log(
            level,
            "%s %s %s %s %.3fs",
            request.remote,
            request.method,
            request.path,
            response.status,
            time,
        )


# ---------------------------------------------------------------------------
# Bot Framework adapter
# ---------------------------------------------------------------------------


def create_adapter() -> BotFrameworkAdapter:
    settings = BotFrameworkAdapterSettings(
        app_id=cfg.bot_app_id or None,
        app_password=cfg.bot_app_password or None,
        channel_auth_tenant=cfg.bot_app_tenant_id or None,
    )
    adapter = BotFrameworkAdapter(settings)

    async def on_error(context: TurnContext, error: Exception) -> None:
        logger.error("Bot turn error: %s", error, exc_info=True)
        try:
            await context.send_activity(
                Activity(type=ActivityTypes.message, text="An error occurred.")
            )
        except Exception as exc:
            logger.warning("Failed to report turn error: %s", exc)

    adapter.on_turn_error = on_error
    return adapter


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------


async def create_app() -> web.Application:
    return AppFactory().build()


class AppFactory:
    """Builds the aiohttp application with the relay bot wired in."""

    def __init__(
        self,
        client: DirectLineClient | None = None,
        adapter: BotFrameworkAdapter | None = None,
    ) -> None:
        self._client = client or DirectLineClient(
            cfg.direct_line_endpoint, timeout=cfg.http_timeout,
        )
        self._adapter = adapter or create_adapter()
        self._bot = RelayBot(
            self._client,
            app_id=cfg.bot_app_id,
            timings=cfg.relay_timings,
            default_token=cfg.relay_direct_line_token,
        )
        self._bot.adapter = self._adapter
        self._bot_ep = BotEndpoint(self._adapter, self._bot)

    @property
    def bot(self) -> RelayBot:
        return self._bot

    def build(self) -> web.Application:
        app = web.Application()
        app["bot"] = self._bot
        self._bot_ep.register(app.router)
        app.router.add_get("/health", _health)
        app.on_cleanup.append(self._on_cleanup)
        return app

    async def _on_cleanup(self, _app: web.Application) -> None:
        logger.info("Shutdown: closing relay session ...")
        await self._bot.close()
        await self._client.close()


# ---------------------------------------------------------------------------
# Utility handlers
# ---------------------------------------------------------------------------


async def _health(req: web.Request) -> web.Response:
    bot: RelayBot = req.app["bot"]
    return web.json_response({"status": "ok", "version": __version__, "relay": bot.describe()})


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main() -> None:
    cfg.reload()
    logging.basicConfig(
        level=getattr(logging, cfg.log_level, logging.INFO),
        format="%(asctime)s  %(name)s  %(levelname)s  %(message)s",
    )
    port = cfg.bot_port
    logger.info("Starting relay bot on port %d (Direct Line: %s) ...", port, cfg.direct_line_endpoint)
    web.run_app(create_app(), host="0.0.0.0", port=port, access_log_class=QuietAccessLogger)


if __name__ == "__main__":
    main()
