"""Channel messaging -- relay bot handler, proactive delivery, cards, sanitizing."""

__all__ = [
    "ProactiveChannel",
    "RelayBot",
    "clean_activity",
    "token_prompt_activity",
]
