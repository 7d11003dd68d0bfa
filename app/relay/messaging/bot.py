"""Bot Framework ActivityHandler -- supervises the Direct Line relay session.

The handler is the only writer of the conversation reference and of the
current :class:`RelaySession`.  Inbound forwarding runs in background tasks
so the Bot Framework webhook returns promptly.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any

from botbuilder.core import ActivityHandler, BotFrameworkAdapter, TurnContext
from botbuilder.schema import Activity, ChannelAccount, ConversationReference

from ..config.settings import RelayTimings
from ..directline.client import DirectLineClient
from ..directline.token import looks_like_token
from ..errors import DeliveryError, NotificationError
from ..session import RelaySession
from .cards import start_token_from_value, token_prompt_activity
from .proactive import ProactiveChannel

logger = logging.getLogger(__name__)


class RelayBot(ActivityHandler):
    def __init__(
        self,
        client: DirectLineClient,
        *,
        app_id: str = "",
        timings: RelayTimings | None = None,
        default_token: str = "",
    ) -> None:
        self._client = client
        self._app_id = app_id
        self._timings = timings or RelayTimings()
        self._default_token = default_token
        self.adapter: BotFrameworkAdapter | None = None
        self._reference: ConversationReference | None = None
        self._session: RelaySession | None = None
        self._background: set[asyncio.Task[None]] = set()

    @property
    def reference(self) -> ConversationReference | None:
        return self._reference

    @property
    def session(self) -> RelaySession | None:
        return self._session

    async def on_turn(self, turn_context: TurnContext) -> None:
        # Every inbound activity moves the reply address, whatever its type.
        self._reference = TurnContext.get_conversation_reference(turn_context.activity)
        await super().on_turn(turn_context)

    async def on_message_activity(self, turn_context: TurnContext) -> None:
        activity = turn_context.activity

        token = start_token_from_value(activity.value)
        text = (activity.text or "").strip()
        if token is None and looks_like_token(text):
            token = text
        if token is not None:
            self.start_session(token)
            return

        session = self._session
        if session is None or not session.active:
            await turn_context.send_activity(token_prompt_activity(self._default_token))
            return

        logger.debug('[bot] Received a "%s" activity, relaying to the bot.', activity.type)
        self._spawn(self._forward(session, self._reference, activity))

    async def on_members_added_activity(
        self,
        members_added: list[ChannelAccount],
        turn_context: TurnContext,
    ) -> None:
        for member in members_added:
            if member.id != turn_context.activity.recipient.id:
                await turn_context.send_activity(token_prompt_activity(self._default_token))

    async def on_end_of_conversation_activity(self, turn_context: TurnContext) -> None:
        self.end_session()

    # -- session lifecycle -------------------------------------------------

    def start_session(self, token: str) -> RelaySession:
        """Supersede the current session (if any) with one for *token*."""
        previous = self._session
        if previous is not None:
            previous.cancel()
        session = RelaySession(token, self._client, self._channel(), timings=self._timings)
        self._session = session
        session.start(after=previous)
        logger.info("[bot] relay session starting%s", " (superseding previous)" if previous else "")
        return session

    def end_session(self) -> None:
        if self._session is not None:
            self._session.cancel()

    async def close(self) -> None:
        if self._session is not None:
            await self._session.stop()
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

    def describe(self) -> dict[str, Any]:
        return {"session": self._session.describe() if self._session else None}

    # -- internals ---------------------------------------------------------

    def _channel(self, reference: ConversationReference | None = None) -> ProactiveChannel:
        if reference is not None:
            return ProactiveChannel(self.adapter, self._app_id, lambda: reference)
        return ProactiveChannel(self.adapter, self._app_id, lambda: self._reference)

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _forward(
        self,
        session: RelaySession,
        reference: ConversationReference | None,
        activity: Activity,
    ) -> None:
        try:
            await session.forward(activity)
        except DeliveryError as exc:
            logger.error("[bot] Failed to relay message to the bot: %s", exc)
            try:
                await self._channel(reference).notify(f"Failed to relay message to the bot.\n\n{exc}")
            except NotificationError as notify_exc:
                logger.warning("[bot] Failed to report relay failure: %s", notify_exc)
