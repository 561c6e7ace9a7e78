"""
WhatsApp connection lifecycle controller.

Owns the single session handle: opens it, waits for pairing, reconnects
after transient disconnects (up to a fixed number of attempts), cleans
up after a terminal logout and relays events to the webhook notifier.

All failures are converted into ServiceResult objects; nothing raised by
the protocol library escapes initialize() or logout().
"""

import asyncio
from dataclasses import asdict, dataclass
from functools import partial
from typing import Any

from ..logger import logger
from ..webhook import WebhookNotifier
from .auth_state import MultiFileAuthStore
from .events import CONNECTION_UPDATE, CREDS_UPDATE, MESSAGES_UPSERT
from .socket import ConnectionUpdate, MessagesUpsert, SocketFactory, WASocket, to_jid
from .waiter import DEFAULT_QR_TIMEOUT, ConnectionWaiter

DEFAULT_MAX_RECONNECT_ATTEMPTS = 5
DEFAULT_RECONNECT_DELAY = 2.0


def _compact(data: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in data.items() if value is not None}


@dataclass
class ServiceResult:
    """Outcome of a session operation."""

    success: bool
    status: str
    message: str | None = None
    qr: str | None = None
    reason: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return _compact(asdict(self))


@dataclass
class SendResult:
    """Outcome of a send operation."""

    success: bool
    status: str
    to: str | None = None
    message_id: str | None = None
    message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return _compact(asdict(self))


@dataclass
class ConnectionStatus:
    """Snapshot of the session state."""

    is_connected: bool
    qr: str | None

    def to_dict(self) -> dict[str, Any]:
        return {"isConnected": self.is_connected, "qr": self.qr}


class WhatsAppService:
    """Lifecycle controller for one WhatsApp device session."""

    def __init__(
        self,
        auth_store: MultiFileAuthStore,
        socket_factory: SocketFactory,
        notifier: WebhookNotifier,
        max_reconnect_attempts: int = DEFAULT_MAX_RECONNECT_ATTEMPTS,
        qr_timeout: float = DEFAULT_QR_TIMEOUT,
        reconnect_delay: float = DEFAULT_RECONNECT_DELAY,
    ):
        """
        Initialize the controller.

        Args:
            auth_store: Credential store for the session directory
            socket_factory: Builds a new session handle from loaded credentials
            notifier: Webhook notifier for lifecycle and message events
            max_reconnect_attempts: Consecutive reconnects allowed before giving up
            qr_timeout: Seconds to wait for a QR code or an open connection
            reconnect_delay: Seconds to wait before retrying a failed reconnect
        """
        self._auth_store = auth_store
        self._socket_factory = socket_factory
        self._notifier = notifier
        self.max_reconnect_attempts = max_reconnect_attempts
        self.qr_timeout = qr_timeout
        self.reconnect_delay = reconnect_delay

        self.sock: WASocket | None = None
        self.is_connected = False
        self.qr: str | None = None
        self.reconnect_attempts = 0

    @property
    def notifier(self) -> WebhookNotifier:
        return self._notifier

    def has_credentials(self) -> bool:
        """True when a previous pairing left credentials on disk."""
        return self._auth_store.has_credentials()

    def reset_reconnect_attempts(self) -> None:
        self.reconnect_attempts = 0

    def get_connection_status(self) -> ConnectionStatus:
        return ConnectionStatus(is_connected=self.is_connected, qr=self.qr)

    async def initialize(self, is_reconnecting: bool = False) -> ServiceResult:
        """
        Open a new session handle and wait for a QR code or a live connection.

        Args:
            is_reconnecting: True when called after a transient disconnect

        Returns:
            ServiceResult with status "waiting_qr", "connected", "logged_out"
            (reconnect attempts exhausted) or "error"
        """
        sock: WASocket | None = None
        try:
            if is_reconnecting:
                if self.reconnect_attempts >= self.max_reconnect_attempts:
                    logger.warning(
                        f"Maximum reconnection attempts ({self.max_reconnect_attempts}) exceeded"
                    )
                    return await self.handle_logout("max_attempts_exceeded")
                self.reconnect_attempts += 1
                logger.info(
                    f"Attempting to reconnect... "
                    f"(Attempt {self.reconnect_attempts}/{self.max_reconnect_attempts})"
                )
            else:
                self.reset_reconnect_attempts()
                if self.sock is not None and self.is_connected:
                    return ServiceResult(
                        success=True, status="connected", message="WhatsApp is already connected"
                    )

            # Handles are replaced, never reused
            previous, self.sock = self.sock, None
            if previous is not None:
                await self._close_socket(previous)

            state = await self._auth_store.load()
            sock = self._socket_factory(state)
            self.sock = sock
            self.qr = None

            sock.ev.on(CONNECTION_UPDATE, partial(self._on_connection_update, sock))
            sock.ev.on(CREDS_UPDATE, partial(self._on_creds_update, sock))
            sock.ev.on(MESSAGES_UPSERT, self._on_messages_upsert)

            # Armed before connect() so an early QR code is not missed
            waiter = ConnectionWaiter(sock.ev)
            try:
                await sock.connect()
                qr = await waiter.wait(self.qr_timeout)
            finally:
                waiter.close()

            if qr:
                self._notifier.notify("connection", {"status": "waiting_qr", "qr": qr})
                return ServiceResult(success=True, status="waiting_qr", qr=qr)

            if self.is_connected:
                return ServiceResult(
                    success=True, status="connected", message="WhatsApp connection successful"
                )

            return ServiceResult(
                success=False,
                status="error",
                message="Failed to get QR code or establish connection",
            )
        except Exception as e:
            logger.error(f"Failed to initialize WhatsApp connection: {e}", exc_info=True)
            if sock is not None and self.sock is sock:
                self.sock = None
                await self._close_socket(sock)
            self._notifier.notify("error", {"error": str(e)})
            if is_reconnecting:
                return await self._retry_reconnect()
            return ServiceResult(
                success=False,
                status="error",
                message="Failed to initialize WhatsApp connection",
                error=str(e),
            )

    async def _retry_reconnect(self) -> ServiceResult:
        # A failed reconnect leaves no handle to report a close, so count it here
        await asyncio.sleep(self.reconnect_delay)
        if self.sock is not None or self.reconnect_attempts == 0:
            # A fresh initialize() or a logout took over while we were waiting
            return ServiceResult(success=False, status="error", message="Reconnect superseded")
        return await self.initialize(is_reconnecting=True)

    async def _on_connection_update(self, sock: WASocket, update: ConnectionUpdate) -> None:
        if sock is not self.sock:
            # A newer handle (or none, after logout) owns the session now
            if update.connection == "close":
                logger.info("Connection already replaced, stale close ignored")
            return

        if update.connection == "close":
            self.is_connected = False
            self.qr = None

            if update.is_logged_out:
                logger.info("Session terminated")
                await self.handle_logout("connection_closed")
            else:
                logger.info(
                    f"Connection closed (code={update.status_code}, error={update.error})"
                )
                await self.initialize(is_reconnecting=True)

        elif update.connection == "open":
            self.is_connected = True
            self.qr = None
            self.reset_reconnect_attempts()
            logger.info("WhatsApp connection successful!")
            self._notifier.notify("connection", {"status": "connected"})

        elif update.qr and not self.is_connected:
            self.qr = update.qr

    async def _on_creds_update(self, sock: WASocket, update: dict[str, Any]) -> None:
        if sock is not self.sock:
            return
        await self._auth_store.save_creds(update)

    async def _on_messages_upsert(self, upsert: MessagesUpsert) -> None:
        if upsert.type != "notify":
            return
        await asyncio.gather(*(self._notifier.send_message(msg) for msg in upsert.messages))

    async def handle_logout(self, reason: str = "normal_logout") -> ServiceResult:
        """
        Terminate the session: drop the handle, reset state, delete credentials.

        In-memory state is reset even if the credential files cannot be removed.

        Args:
            reason: Why the session ended (reported to the webhook)

        Returns:
            ServiceResult with status "logged_out", or "error" if cleanup failed
        """
        sock, self.sock = self.sock, None
        self.is_connected = False
        self.qr = None
        self.reset_reconnect_attempts()

        if sock is not None:
            await self._close_socket(sock)

        try:
            await self._auth_store.clear()
        except Exception as e:
            logger.error(f"Error during session cleanup: {e}", exc_info=True)
            return ServiceResult(
                success=False,
                status="error",
                message="Error occurred while terminating session",
                error=str(e),
            )

        self._notifier.notify("connection", {"status": "logged_out", "reason": reason})
        logger.info(f"Session files cleaned and session terminated ({reason})")

        return ServiceResult(
            success=True,
            status="logged_out",
            message="Session successfully terminated",
            reason=reason,
        )

    async def logout(self) -> ServiceResult:
        """
        Log the device out and terminate the session.

        Returns:
            ServiceResult; failure when there is no session or the
            protocol library could not log out (state is reset either way)
        """
        if self.sock is None:
            return ServiceResult(success=False, status="error", message="No active session found")

        # Detached first so the close event triggered by logout is treated as stale
        sock, self.sock = self.sock, None
        logout_error: str | None = None
        try:
            await sock.logout()
        except Exception as e:
            logger.error(f"Error during logout: {e}", exc_info=True)
            logout_error = str(e)

        await self._close_socket(sock)
        result = await self.handle_logout("user_logout")

        if logout_error is not None:
            return ServiceResult(
                success=False,
                status="error",
                message="Error occurred while logging out",
                error=logout_error,
            )
        return result

    async def send_message(self, to: str, message: str) -> SendResult:
        """
        Send a text message.

        Args:
            to: Phone number or JID of the recipient
            message: Message text

        Returns:
            SendResult; a failure result when the connection is not active
            or the recipient is not a phone number or JID

        Raises:
            Exception: Whatever the protocol library raises while sending
        """
        if not self.is_connected or self.sock is None:
            logger.warning("Send rejected: WhatsApp connection is not active")
            return SendResult(
                success=False, status="error", message="WhatsApp connection is not active"
            )

        try:
            jid = to_jid(to)
        except ValueError as e:
            logger.warning(f"Send rejected: {e}")
            return SendResult(success=False, status="error", message="Invalid recipient")

        try:
            result = await self.sock.send_message(jid, {"text": message})
        except Exception as e:
            logger.error(f"Failed to send message: {e}", exc_info=True)
            raise

        message_id = (result.get("key") or {}).get("id")
        logger.info(f"Message sent to {jid[:8]}... (id={message_id})")
        return SendResult(success=True, status="sent", to=jid, message_id=message_id)

    async def shutdown(self) -> None:
        """Close the session handle, keeping credentials for the next start."""
        sock, self.sock = self.sock, None
        self.is_connected = False
        self.qr = None
        if sock is not None:
            await self._close_socket(sock)

    async def _close_socket(self, sock: WASocket) -> None:
        try:
            await sock.close()
        except Exception as e:
            logger.warning(f"Error closing WhatsApp socket: {e}")
