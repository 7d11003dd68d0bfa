"""Minimal ``.env`` reader/writer."""

from __future__ import annotations

from pathlib import Path


class EnvFile:
    """Key/value view over a ``KEY=value`` file.

    Blank lines and ``#`` comments are ignored; surrounding single or double
    quotes are stripped from values.  A missing file reads as empty.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def read_all(self) -> dict[str, str]:
        if not self.path.is_file():
            return {}
        values: dict[str, str] = {}
        for raw in self.path.read_text().splitlines():
            line = raw.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            if line.startswith("export "):
                line = line[len("export "):]
            key, _, value = line.partition("=")
            value = value.strip()
            if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
                value = value[1:-1]
            values[key.strip()] = value
        return values

    def read(self, key: str) -> str:
        return self.read_all().get(key, "")

    def write(self, **kwargs: str) -> None:
        """Merge *kwargs* into the file; empty values remove the key."""
        values = self.read_all()
        for key, value in kwargs.items():
            if value:
                values[key] = value
            else:
                values.pop(key, None)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        body = "".join(f"{k}={_quote(v)}\n" for k, v in values.items())
        self.path.write_text(body)


def _quote(value: str) -> str:
    if any(c.isspace() for c in value) or "#" in value:
        return f'"{value}"'
    return value
