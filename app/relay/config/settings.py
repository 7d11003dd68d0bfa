"""Application settings -- reads from environment and ``.env`` file.

All configuration is consolidated here.  Relay timings are grouped in a
dataclass so sessions can be built without touching the global settings.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import ClassVar

from ..util.env_file import EnvFile

DEFAULT_DIRECT_LINE_ENDPOINT = "https://directline.botframework.com/v3/directline"


@dataclass(frozen=True)
class RelayTimings:
    poll_interval: float = 1.0
    idle_timeout: float = 300.0
    max_duration: float = 3600.0


class Settings:
    """Runtime configuration sourced from environment variables and ``.env``."""

    _DATA_DIR_ENV: ClassVar[str] = "RELAY_DATA_DIR"

    def __init__(self) -> None:
        self.reload()

    def reload(self) -> None:
        """Re-read the ``.env`` file and environment variables."""
        # Resolve .env path: explicit DOTENV_PATH > data_dir/.env > CWD/.env
        dotenv = os.getenv("DOTENV_PATH")
        if not dotenv:
            data_dir = os.getenv(self._DATA_DIR_ENV)
            dotenv = str(Path(data_dir) / ".env") if data_dir else ".env"
        self.env = EnvFile(dotenv)
        e = self._read

        self.bot_app_id: str = e("BOT_APP_ID")
        self.bot_app_password: str = e("BOT_APP_PASSWORD")
        self.bot_app_tenant_id: str = e("BOT_APP_TENANT_ID")
        self.bot_port: int = int(e("BOT_PORT") or "3978")

        self.direct_line_endpoint: str = (
            e("DIRECT_LINE_ENDPOINT") or DEFAULT_DIRECT_LINE_ENDPOINT
        ).rstrip("/")
        self.relay_direct_line_token: str = e("RELAY_DIRECT_LINE_TOKEN")

        self.poll_interval: float = float(e("RELAY_POLL_INTERVAL") or "1")
        self.idle_timeout: float = float(e("RELAY_IDLE_TIMEOUT") or "300")
        self.max_duration: float = float(e("RELAY_MAX_DURATION") or "3600")
        self.http_timeout: float = float(e("RELAY_HTTP_TIMEOUT") or "30")

        self.log_level: str = (e("LOG_LEVEL") or "INFO").upper()

    # -- derived values ----------------------------------------------------

    @property
    def data_dir(self) -> Path:
        return Path(os.getenv(self._DATA_DIR_ENV, str(Path.home() / ".directline-relay")))

    @property
    def cli_history_path(self) -> Path:
        return self.data_dir / ".cli_history"

    @property
    def relay_timings(self) -> RelayTimings:
        return RelayTimings(
            poll_interval=self.poll_interval,
            idle_timeout=self.idle_timeout,
            max_duration=self.max_duration,
        )

    # -- helpers -----------------------------------------------------------

    def _read(self, key: str) -> str:
        return self.env.read(key) or os.getenv(key, "")

    def ensure_dirs(self) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)


# Module-level singleton
cfg = Settings()


def reset_cfg() -> None:
    """Re-read the singleton in place -- intended for test isolation."""
    cfg.reload()
