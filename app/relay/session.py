"""Relay session -- one run of the poll/forward loop bound to one Direct Line token.

A session decodes its token, creates the Direct Line conversation, then
polls it for bot replies and pushes them out through an
:class:`OutboundChannel` until it is cancelled, goes idle, exceeds its
maximum duration, or fails.  Whatever the exit path, the closing notice is
sent from a ``finally`` block.

Cancellation is cooperative: every session owns an :class:`asyncio.Event`
which is passed into the fetch call and checked around each delivery, so a
superseded session never delivers into a conversation that has moved on.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from collections.abc import Callable, Sequence
from contextlib import suppress
from enum import StrEnum
from typing import Any, Protocol

from botbuilder.schema import Activity

from .config.settings import RelayTimings
from .directline.client import DirectLineClient
from .directline.token import decode_token
from .errors import DeliveryError, NotificationError, RelayCancelledError
from .messaging.sanitize import clean_activity

logger = logging.getLogger(__name__)

STARTED_NOTICE = 'Relay started for conversation ID "{conversation_id}".'
IDLE_NOTICE = "Idle timeout."
MAX_DURATION_NOTICE = "Maximum duration exceeded."
CLOSED_NOTICE = "Conversation is closed."


class SessionState(StrEnum):
    STARTING = "starting"
    POLLING = "polling"
    IDLE_TIMEOUT = "idle_timeout"
    MAX_DURATION = "max_duration"
    CANCELLED = "cancelled"
    FAILED = "failed"
    CLOSING = "closing"
    CLOSED = "closed"


class OutboundChannel(Protocol):
    """Where a session delivers bot replies and status notices."""

    async def send_activities(
        self,
        activities: Sequence[Activity],
        *,
        guard: Callable[[], bool] | None = None,
    ) -> bool: ...

    async def notify(self, text: str) -> None: ...


def failure_notice(error: BaseException) -> str:
    body = json.dumps({"message": str(error)}, indent=2)
    return f"Failed to relay message.\n\n```json\n{body}\n```\n"


def is_from_bot(activity: Activity, bot_id: str) -> bool:
    sender = activity.from_property
    if sender is None:
        return False
    return sender.id == bot_id or sender.role == "bot"


class RelaySession:
    def __init__(
        self,
        token: str,
        client: DirectLineClient,
        channel: OutboundChannel,
        *,
        timings: RelayTimings | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._token = token
        self._client = client
        self._channel = channel
        self._timings = timings or RelayTimings()
        self._clock = clock
        self._cancel = asyncio.Event()
        self._closed = asyncio.Event()
        self._task: asyncio.Task[None] | None = None
        self._watchdog: asyncio.Task[None] | None = None
        self._end_reason: SessionState | None = None

        self.state = SessionState.STARTING
        self.end_state: SessionState | None = None
        self.bot_id = ""
        self.conversation_id = ""
        self.watermark: str | None = None
        self.started_at: float | None = None
        self.last_activity_at: float | None = None

    # -- lifecycle ---------------------------------------------------------

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    @property
    def active(self) -> bool:
        return not self.cancelled and not self.closed

    def start(self, after: RelaySession | None = None) -> asyncio.Task[None]:
        """Run the session in a background task.

        With *after*, the session waits for that session to finish closing
        before doing any I/O of its own.
        """
        if self._task is not None:
            raise RuntimeError("Relay session already started.")
        self._task = asyncio.create_task(self._run_after(after))
        return self._task

    def cancel(self) -> None:
        if not self._cancel.is_set():
            logger.info("[relay] cancelling session for conversation %s", self.conversation_id or "?")
        self._cancel.set()

    async def wait_closed(self) -> None:
        if self._task is None and not self.closed:
            return
        await self._closed.wait()

    async def stop(self) -> None:
        self.cancel()
        await self.wait_closed()

    def describe(self) -> dict[str, Any]:
        return {
            "state": str(self.state),
            "conversation_id": self.conversation_id or None,
            "watermark": self.watermark,
        }

    async def _run_after(self, previous: RelaySession | None) -> None:
        if previous is not None:
            await previous.wait_closed()
        if self.cancelled:
            # Superseded before it got to start; nothing was sent for it.
            logger.info("[relay] session superseded before starting")
            self.end_state = SessionState.CANCELLED
            self.state = SessionState.CLOSED
            self._closed.set()
            return
        await self.run()

    # -- state machine -----------------------------------------------------

    async def run(self) -> None:
        try:
            await self._bootstrap()
            await self._poll()
        except RelayCancelledError:
            self.state = self._end_reason or SessionState.CANCELLED
            logger.info("[relay] session for conversation %s ended: %s", self.conversation_id or "?", self.state)
        except Exception as exc:
            self.state = SessionState.FAILED
            logger.error("[relay] session for conversation %s failed: %s", self.conversation_id or "?", exc, exc_info=True)
            await self._notify_quietly(failure_notice(exc))
        finally:
            await self._close()

    async def _bootstrap(self) -> None:
        claims = decode_token(self._token)
        self.bot_id = claims.bot
        self.conversation_id = claims.conv

        await self._client.create_conversation(self._token)
        self._raise_if_cancelled()

        logger.info('[relay] Relay started for conversation ID "%s".', self.conversation_id)
        await self._notify_quietly(STARTED_NOTICE.format(conversation_id=self.conversation_id))

    async def _poll(self) -> None:
        self.state = SessionState.POLLING
        self.started_at = self.last_activity_at = self._clock()
        self._watchdog = asyncio.create_task(self._watch_idle())
        deadline = self.started_at + self._timings.max_duration

        # The deadline bounds iteration start times; it does not cut an in-flight fetch short.
        while not self.cancelled and self._clock() < deadline:
            batch = await self._client.fetch_activities(
                self._token, self.conversation_id, self.watermark, self._cancel,
            )
            self.watermark = batch.watermark

            if self.cancelled:
                break

            activities = batch.to_activities()
            if activities:
                logger.debug(
                    "[relay] fetched %d activities, watermark=%s",
                    len(activities), self.watermark,
                )
            outbound = [clean_activity(a) for a in activities if is_from_bot(a, self.bot_id)]
            if outbound and await self._channel.send_activities(outbound, guard=lambda: not self.cancelled):
                self._touch()

            await self._pause()

        self._raise_if_cancelled()
        self.state = SessionState.MAX_DURATION
        logger.info("[relay] maximum duration exceeded for conversation %s", self.conversation_id)
        await self._notify_quietly(MAX_DURATION_NOTICE)

    async def _watch_idle(self) -> None:
        while not self.cancelled:
            remaining = (self.last_activity_at or 0.0) + self._timings.idle_timeout - self._clock()
            if remaining <= 0:
                self._end_reason = SessionState.IDLE_TIMEOUT
                logger.info("[relay] idle timeout for conversation %s", self.conversation_id)
                await self._notify_quietly(IDLE_NOTICE)
                self.cancel()
                return
            with suppress(asyncio.TimeoutError):
                await asyncio.wait_for(self._cancel.wait(), timeout=remaining)

    async def _close(self) -> None:
        if self.state in (SessionState.STARTING, SessionState.POLLING):
            self.state = self._end_reason or SessionState.CANCELLED
        self.end_state = self.state
        self.state = SessionState.CLOSING
        self._cancel.set()
        if self._watchdog is not None:
            self._watchdog.cancel()
        try:
            await self._notify_quietly(CLOSED_NOTICE)
        finally:
            self.state = SessionState.CLOSED
            self._closed.set()

    # -- inbound forwarding ------------------------------------------------

    async def forward(self, activity: Activity) -> None:
        """Post an inbound activity into the relayed conversation.

        Raises :class:`DeliveryError` on failure; the session keeps running.
        """
        if not self.active or not self.conversation_id:
            raise DeliveryError("No active relay session.")
        try:
            await self._client.post_activity(self._token, self.conversation_id, clean_activity(activity))
        except Exception as exc:
            raise DeliveryError(str(exc)) from exc

    # -- helpers -----------------------------------------------------------

    def _raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise RelayCancelledError("Session cancelled.")

    def _touch(self) -> None:
        self.last_activity_at = self._clock()

    async def _pause(self) -> None:
        with suppress(asyncio.TimeoutError):
            await asyncio.wait_for(self._cancel.wait(), timeout=self._timings.poll_interval)

    async def _notify_quietly(self, text: str) -> None:
        """Send a status notice; a broken channel must not stop teardown."""
        try:
            await self._channel.notify(text)
        except NotificationError as exc:
            logger.warning("[relay] notice not delivered: %s", exc)
