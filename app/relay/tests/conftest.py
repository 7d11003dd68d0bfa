"""Shared pytest fixtures for app.relay tests."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import jwt
import pytest
from botbuilder.schema import Activity, ChannelAccount, ConversationAccount

from app.relay.directline.models import ActivitySet, ConversationHandle
from app.relay.errors import NotificationError, RelayCancelledError


@pytest.fixture(autouse=True)
def _isolate_data_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    data_dir = tmp_path / "data"
    data_dir.mkdir()
    monkeypatch.setenv("RELAY_DATA_DIR", str(data_dir))
    monkeypatch.setenv("DOTENV_PATH", str(tmp_path / ".env"))
    for key in (
        "BOT_APP_ID",
        "BOT_APP_PASSWORD",
        "BOT_APP_TENANT_ID",
        "BOT_PORT",
        "DIRECT_LINE_ENDPOINT",
        "RELAY_DIRECT_LINE_TOKEN",
        "RELAY_POLL_INTERVAL",
        "RELAY_IDLE_TIMEOUT",
        "RELAY_MAX_DURATION",
        "RELAY_HTTP_TIMEOUT",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(key, raising=False)
    return data_dir


@pytest.fixture(autouse=True)
def _reset_settings(_isolate_data_dir: Path):
    from app.relay.config.settings import reset_cfg

    reset_cfg()
    yield
    reset_cfg()


@pytest.fixture()
def data_dir(_isolate_data_dir: Path) -> Path:
    return _isolate_data_dir


# -- tokens and activities -------------------------------------------------


def make_token(bot: str = "B1", conv: str = "C1", **extra: Any) -> str:
    return jwt.encode({"bot": bot, "conv": conv, **extra}, "relay-tests-signing-key-never-verified", algorithm="HS256")


@pytest.fixture()
def token_factory() -> Callable[..., str]:
    return make_token


def make_activity(
    activity_type: str = "message",
    *,
    text: str | None = None,
    value: Any = None,
    conversation_id: str = "user-conv",
    members_added: list[ChannelAccount] | None = None,
) -> Activity:
    return Activity(
        type=activity_type,
        id="inbound-1",
        text=text,
        value=value,
        channel_id="webchat",
        service_url="https://channel.example",
        conversation=ConversationAccount(id=conversation_id),
        from_property=ChannelAccount(id="user1", name="User", role="user"),
        recipient=ChannelAccount(id="relay-bot", name="Relay"),
        members_added=members_added,
    )


@pytest.fixture()
def activity_factory() -> Callable[..., Activity]:
    return make_activity


def make_turn_context(activity: Activity) -> MagicMock:
    ctx = MagicMock()
    ctx.activity = activity
    ctx.send_activity = AsyncMock()
    ctx.send_activities = AsyncMock()
    return ctx


@pytest.fixture()
def turn_context_factory() -> Callable[[Activity], MagicMock]:
    return make_turn_context


# -- fakes -------------------------------------------------------------------


class FakeClock:
    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeDirectLine:
    """In-memory stand-in for DirectLineClient.

    Queued fetch results are returned in order; an exception is raised, a
    callable is invoked and its result returned.  Once the queue is empty
    fetches return an empty batch with the same watermark, or, with
    ``blocking=True``, wait for cancellation like the real client does.
    """

    def __init__(
        self,
        batches: Sequence[Any] = (),
        *,
        blocking: bool = False,
        clock: FakeClock | None = None,
        tick: float = 0.0,
    ) -> None:
        self.batches = list(batches)
        self.blocking = blocking
        self.clock = clock
        self.tick = tick
        self.created: list[str] = []
        self.posted: list[tuple[str, Activity]] = []
        self.fetch_log: list[tuple[str, str | None]] = []
        self.create_error: Exception | None = None
        self.post_error: Exception | None = None

    @property
    def watermarks(self) -> list[str | None]:
        return [w for _, w in self.fetch_log]

    async def create_conversation(self, token: str) -> ConversationHandle:
        await asyncio.sleep(0)
        self.created.append(token)
        if self.create_error is not None:
            raise self.create_error
        return ConversationHandle(conversationId="created")

    async def post_activity(self, token: str, conversation_id: str, activity: Activity) -> None:
        await asyncio.sleep(0)
        if self.post_error is not None:
            raise self.post_error
        self.posted.append((conversation_id, activity))

    async def fetch_activities(
        self,
        token: str,
        conversation_id: str,
        watermark: str | None,
        cancel: asyncio.Event | None = None,
    ) -> ActivitySet:
        self.fetch_log.append((conversation_id, watermark))
        if self.clock is not None:
            self.clock.advance(self.tick)
        await asyncio.sleep(0)
        if cancel is not None and cancel.is_set():
            raise RelayCancelledError("cancelled")
        if self.batches:
            item = self.batches.pop(0)
            if isinstance(item, Exception):
                raise item
            if callable(item):
                item = item()
            return item
        if self.blocking and cancel is not None:
            await cancel.wait()
            raise RelayCancelledError("cancelled")
        return ActivitySet(activities=[], watermark=watermark)

    async def close(self) -> None:
        pass


class RecordingChannel:
    def __init__(self) -> None:
        self.delivered: list[list[Activity]] = []
        self.notices: list[str] = []
        self.fail_notices = False

    async def send_activities(self, activities: Sequence[Activity], *, guard=None) -> bool:
        if guard is not None and not guard():
            return False
        self.delivered.append(list(activities))
        return True

    async def notify(self, text: str) -> None:
        if self.fail_notices:
            raise NotificationError("channel is down")
        self.notices.append(text)


class FakeAdapter:
    """Records what ``continue_conversation`` callbacks send."""

    def __init__(self) -> None:
        self.sent: list[tuple[Any, Activity]] = []
        self.bot_ids: list[str | None] = []
        self.fail = False

    async def continue_conversation(self, reference, callback, bot_id=None) -> None:
        self.bot_ids.append(bot_id)
        if self.fail:
            raise RuntimeError("connector unavailable")
        ctx = MagicMock()

        async def send_activity(activity):
            self.sent.append((reference, activity))

        async def send_activities(activities):
            self.sent.extend((reference, a) for a in activities)

        ctx.send_activity = send_activity
        ctx.send_activities = send_activities
        await callback(ctx)

    @property
    def texts(self) -> list[str | None]:
        return [a.text for _, a in self.sent]


@pytest.fixture()
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def directline_factory() -> Callable[..., FakeDirectLine]:
    return FakeDirectLine


@pytest.fixture()
def channel() -> RecordingChannel:
    return RecordingChannel()


@pytest.fixture()
def fake_adapter() -> FakeAdapter:
    return FakeAdapter()


@pytest.fixture()
def wait_until() -> Callable[..., Awaitable[None]]:
    async def _wait(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
        async def _poll() -> None:
            while not predicate():
                await asyncio.sleep(0.005)

        await asyncio.wait_for(_poll(), timeout)

    return _wait
