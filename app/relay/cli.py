"""Console relay -- talk to a Direct Line bot from the terminal.

Runs the same :class:`RelaySession` as the bot, with the terminal standing
in for the inbound channel.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence

from botbuilder.schema import Activity, ActivityTypes
from prompt_toolkit import PromptSession
from prompt_toolkit.formatted_text import HTML
from prompt_toolkit.history import FileHistory
from rich.console import Console
from rich.markdown import Markdown
from rich.markup import escape

from .config.settings import cfg
from .directline.client import DirectLineClient
from .errors import DeliveryError
from .session import RelaySession

console = Console()

_QUIT_COMMANDS = {"/quit", "/exit"}


class ConsoleChannel:
    """Outbound channel that renders bot replies on the terminal."""

    def __init__(self, out: Console | None = None) -> None:
        self._out = out or console

    async def send_activities(
        self,
        activities: Sequence[Activity],
        *,
        guard: Callable[[], bool] | None = None,
    ) -> bool:
        if guard is not None and not guard():
            return False
        for activity in activities:
            self._render(activity)
        return True

    async def notify(self, text: str) -> None:
        self._out.print(f"[dim]{escape(text)}[/dim]")

    def _render(self, activity: Activity) -> None:
        if activity.text:
            self._out.print(Markdown(activity.text))
        for attachment in activity.attachments or []:
            self._out.print(f"[dim]<{escape(attachment.content_type or 'attachment')}>[/dim]")


async def _read_token() -> str:
    if cfg.relay_direct_line_token:
        return cfg.relay_direct_line_token
    # No history here: the token must not end up on disk.
    token_prompt: PromptSession[str] = PromptSession()
    raw = await asyncio.to_thread(
        token_prompt.prompt, HTML("<b>Direct Line token &gt;</b> "), is_password=True,
    )
    return raw.strip()


async def _main() -> None:
    cfg.ensure_dirs()
    console.print("[bold green]directline-relay[/bold green] console\nType [bold]/quit[/bold] to exit.\n")

    try:
        token = await _read_token()
    except (EOFError, KeyboardInterrupt):
        return
    if not token:
        console.print("[red]A Direct Line token is required.[/red]")
        return

    client = DirectLineClient(cfg.direct_line_endpoint, timeout=cfg.http_timeout)
    session = RelaySession(token, client, ConsoleChannel(), timings=cfg.relay_timings)
    session.start()

    prompt_session: PromptSession[str] = PromptSession(history=FileHistory(str(cfg.cli_history_path)))
    try:
        while not session.closed:
            try:
                user_input = await asyncio.to_thread(prompt_session.prompt, HTML("<b>you &gt;</b> "))
            except (EOFError, KeyboardInterrupt):
                break

            text = user_input.strip()
            if not text:
                continue
            if text.lower() in _QUIT_COMMANDS:
                break

            try:
                await session.forward(Activity(type=ActivityTypes.message, text=text))
            except DeliveryError as exc:
                console.print(f"[red]Failed to relay message to the bot.[/red] {escape(str(exc))}")
    finally:
        await session.stop()
        await client.close()
        console.print("[dim]Goodbye.[/dim]")


def main() -> None:
    try:
        asyncio.run(_main())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
