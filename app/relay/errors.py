"""Relay error taxonomy."""

from __future__ import annotations


class RelayError(Exception):
    """Base class for every error raised by the relay."""


class CredentialError(RelayError):
    """The Direct Line token could not be decoded into routing claims."""


class RemoteError(RelayError):
    """Direct Line answered with a non-success HTTP status."""

    def __init__(self, status: int, reason: str, operation: str = "") -> None:
        self.status = status
        self.reason = reason
        self.operation = operation
        suffix = f" while {operation}" if operation else ""
        super().__init__(f'Server returned {status} "{reason}"{suffix}.')


class RelayCancelledError(RelayError):
    """A Direct Line request was aborted because its session was cancelled."""


class DeliveryError(RelayError):
    """An inbound message could not be forwarded into the relayed conversation."""


class ChannelError(RelayError):
    """Sending through the inbound channel failed."""


class NotificationError(ChannelError):
    """A status notice could not be sent back through the channel."""
