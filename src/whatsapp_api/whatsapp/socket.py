"""
Session handle interface.

The lifecycle controller never talks to the protocol library directly:
it depends on the WASocket protocol below and receives state through
the socket's event emitter.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Protocol

from .auth_state import AuthState
from .events import EventEmitter

USER_SERVER = "s.whatsapp.net"


class DisconnectReason(IntEnum):
    """Close codes reported by the protocol library."""

    CONNECTION_CLOSED = 428
    CONNECTION_LOST = 408
    CONNECTION_REPLACED = 440
    TIMED_OUT = 408
    LOGGED_OUT = 401
    BAD_SESSION = 500
    RESTART_REQUIRED = 515
    MULTIDEVICE_MISMATCH = 411
    FORBIDDEN = 403
    UNAVAILABLE_SERVICE = 503


@dataclass
class ConnectionUpdate:
    """Parsed connection.update payload."""

    connection: str | None = None
    qr: str | None = None
    status_code: int | None = None
    error: str | None = None

    @property
    def is_logged_out(self) -> bool:
        return self.status_code == DisconnectReason.LOGGED_OUT

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> "ConnectionUpdate":
        """Create from the bridge's connection.update format."""
        last_disconnect = data.get("lastDisconnect") or {}
        error = last_disconnect.get("error") or {}
        status_code = error.get("statusCode")

        return cls(
            connection=data.get("connection"),
            qr=data.get("qr") or None,
            status_code=int(status_code) if status_code is not None else None,
            error=error.get("message"),
        )


@dataclass
class MessagesUpsert:
    """Parsed messages.upsert payload."""

    type: str
    messages: list[dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> "MessagesUpsert":
        return cls(type=data.get("type", ""), messages=list(data.get("messages") or []))


class WASocket(Protocol):
    """An open (or opening) connection to the messaging network."""

    ev: EventEmitter

    async def connect(self) -> None: ...

    async def send_message(self, jid: str, content: dict[str, Any]) -> dict[str, Any]: ...

    async def logout(self) -> None: ...

    async def close(self) -> None: ...


SocketFactory = Callable[[AuthState], WASocket]


def to_jid(recipient: str) -> str:
    """
    Normalize a recipient into a WhatsApp JID.

    Bare phone numbers (with or without '+', spaces or dashes) become
    user JIDs; anything already containing '@' is returned unchanged.

    Raises:
        ValueError: The recipient has neither an '@' nor any digit
    """
    recipient = recipient.strip()
    if "@" in recipient:
        return recipient
    digits = "".join(ch for ch in recipient if ch.isdigit())
    if not digits:
        raise ValueError(f"Invalid recipient: {recipient!r}")
    return f"{digits}@{USER_SERVER}"
