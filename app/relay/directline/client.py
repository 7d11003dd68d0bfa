"""Direct Line REST client.

Holds no conversation state: every call takes the token and, where needed,
the conversation id.  Failures surface as :class:`RemoteError`; retrying is
left to the caller.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress

from aiohttp import ClientResponse, ClientSession, ClientTimeout
from botbuilder.schema import Activity

from ..errors import RelayCancelledError, RemoteError
from .models import ActivitySet, ConversationHandle

logger = logging.getLogger(__name__)


class DirectLineClient:
    def __init__(
        self,
        endpoint: str,
        *,
        timeout: float = 30.0,
        session: ClientSession | None = None,
    ) -> None:
        self._endpoint = endpoint.rstrip("/")
        self._timeout = ClientTimeout(total=timeout)
        self._session = session
        self._owns_session = session is None

    @property
    def endpoint(self) -> str:
        return self._endpoint

    def _http(self) -> ClientSession:
        if self._session is None or self._session.closed:
            self._session = ClientSession(timeout=self._timeout)
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    # -- operations --------------------------------------------------------

    async def create_conversation(self, token: str) -> ConversationHandle:
        url = f"{self._endpoint}/conversations"
        async with self._http().post(url, headers=_headers(token, json_body=True)) as resp:
            await _raise_for_status(resp, "creating conversation")
            data = await resp.json(content_type=None)
        handle = ConversationHandle.model_validate(data or {})
        logger.debug("[directline] created conversation %s", handle.conversation_id)
        return handle

    async def post_activity(self, token: str, conversation_id: str, activity: Activity) -> None:
        url = f"{self._endpoint}/conversations/{conversation_id}/activities"
        async with self._http().post(
            url,
            json=activity.serialize(),
            headers=_headers(token, json_body=True),
        ) as resp:
            await _raise_for_status(resp, "relaying message to the bot")
            await resp.read()

    async def fetch_activities(
        self,
        token: str,
        conversation_id: str,
        watermark: str | None,
        cancel: asyncio.Event | None = None,
    ) -> ActivitySet:
        """Fetch activities newer than *watermark*.

        When *cancel* is given the request is raced against it: if the event
        is set first, the request is aborted and :class:`RelayCancelledError`
        is raised.
        """
        if cancel is None:
            return await self._get_activity_set(token, conversation_id, watermark)
        if cancel.is_set():
            raise RelayCancelledError("Session cancelled before fetching activities.")

        request = asyncio.ensure_future(self._get_activity_set(token, conversation_id, watermark))
        waiter = asyncio.ensure_future(cancel.wait())
        try:
            await asyncio.wait({request, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (request, waiter):
                if not task.done():
                    task.cancel()
            with suppress(asyncio.CancelledError):
                await waiter

        if request.cancelled():
            raise RelayCancelledError("Session cancelled while fetching activities.")
        if not request.done():
            with suppress(asyncio.CancelledError):
                await request
            raise RelayCancelledError("Session cancelled while fetching activities.")
        return request.result()

    async def _get_activity_set(
        self, token: str, conversation_id: str, watermark: str | None
    ) -> ActivitySet:
        url = f"{self._endpoint}/conversations/{conversation_id}/activities"
        params = {"watermark": "" if watermark is None else watermark}
        async with self._http().get(url, params=params, headers=_headers(token)) as resp:
            await _raise_for_status(resp, "fetching activities")
            data = await resp.json(content_type=None)
        return ActivitySet.model_validate(data or {})


def _headers(token: str, *, json_body: bool = False) -> dict[str, str]:
    headers = {"Authorization": f"Bearer {token}"}
    if json_body:
        headers["Content-Type"] = "application/json; charset=utf-8"
    return headers


async def _raise_for_status(resp: ClientResponse, operation: str) -> None:
    if resp.status < 200 or resp.status >= 300:
        await resp.read()
        raise RemoteError(resp.status, resp.reason or "", operation)
