"""Runtime configuration."""

from .settings import RelayTimings, Settings, cfg, reset_cfg

__all__ = ["RelayTimings", "Settings", "cfg", "reset_cfg"]
