"""Server module -- aiohttp application factory and the bot webhook."""

from __future__ import annotations

from .app import AppFactory, create_adapter, create_app, main

__all__ = ["AppFactory", "create_adapter", "create_app", "main"]
