"""Proactive messaging -- deliver outside the turn via ``continue_conversation``."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import Any

from botbuilder.core import TurnContext
from botbuilder.schema import Activity, ActivityTypes, ConversationReference

from ..errors import ChannelError, NotificationError

logger = logging.getLogger(__name__)

ReferenceGetter = Callable[[], ConversationReference | None]


def text_activity(text: str) -> Activity:
    return Activity(type=ActivityTypes.message, text=text)


def reference_key(ref: ConversationReference | None) -> str:
    if ref is None:
        return "none"
    conversation = ref.conversation.id if ref.conversation else "?"
    return f"{ref.channel_id or 'unknown'}:{conversation}"


class ProactiveChannel:
    """Outbound side of the relay, addressed through a conversation reference.

    The reference is read through *reference* on every send so deliveries
    always target the most recent inbound conversation.
    """

    def __init__(self, adapter: Any, app_id: str, reference: ReferenceGetter) -> None:
        self._adapter = adapter
        self._app_id = app_id
        self._reference = reference

    async def send_activities(
        self,
        activities: Sequence[Activity],
        *,
        guard: Callable[[], bool] | None = None,
    ) -> bool:
        """Send *activities* as one batch; returns ``False`` if *guard* vetoed it."""
        sent = [False]

        async def _callback(turn_context: TurnContext) -> None:
            if guard is not None and not guard():
                return
            await turn_context.send_activities(list(activities))
            sent[0] = True

        try:
            await self._continue(_callback)
        except ChannelError:
            raise
        except Exception as exc:
            raise ChannelError(f"Failed to deliver activities: {exc}") from exc
        return sent[0]

    async def notify(self, text: str) -> None:
        async def _callback(turn_context: TurnContext) -> None:
            await turn_context.send_activity(text_activity(text))

        try:
            await self._continue(_callback)
        except Exception as exc:
            raise NotificationError(f"Failed to send notice: {exc}") from exc

    async def _continue(self, callback: Callable[[TurnContext], Any]) -> None:
        ref = self._reference()
        if ref is None:
            raise ChannelError("No conversation reference captured yet.")
        if self._adapter is None:
            raise ChannelError("Bot adapter is not configured.")
        effective_bot_id = self._app_id or (ref.bot.id if ref.bot else None) or ""
        logger.debug("[proactive] continue_conversation to %s", reference_key(ref))
        await self._adapter.continue_conversation(ref, callback, bot_id=effective_bot_id)
