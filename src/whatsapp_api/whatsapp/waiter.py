"""
One-shot wait for a pairing code or an open connection.

On timeout the wait resolves to None instead of raising: callers decide
what a missing QR code means from the connection status.
"""

import asyncio

from ..logger import logger
from .events import CONNECTION_UPDATE, EventEmitter
from .socket import ConnectionUpdate

DEFAULT_QR_TIMEOUT = 60.0


class ConnectionWaiter:
    """
    Subscribes to connection.update as soon as it is created.

    Create it before connecting the socket so an early QR code cannot be
    missed, then await wait(). The subscription is dropped on every exit
    path; close() drops it when wait() is never reached.
    """

    def __init__(self, emitter: EventEmitter):
        self._emitter = emitter
        self._future: asyncio.Future[str | None] = asyncio.get_running_loop().create_future()
        self._emitter.on(CONNECTION_UPDATE, self._on_update)

    @property
    def done(self) -> bool:
        return self._future.done()

    def _on_update(self, update: ConnectionUpdate) -> None:
        if self._future.done():
            return
        if update.qr:
            self._resolve(update.qr)
        elif update.connection == "open":
            self._resolve(None)

    def _resolve(self, value: str | None) -> None:
        self.close()
        if not self._future.done():
            self._future.set_result(value)

    async def wait(self, timeout: float = DEFAULT_QR_TIMEOUT) -> str | None:
        """
        Wait for the first QR code or an open connection.

        Args:
            timeout: Seconds to wait before giving up

        Returns:
            The pairing code, or None if the connection opened first or the
            wait timed out
        """
        try:
            return await asyncio.wait_for(self._future, timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(f"No QR code or connection within {timeout:.0f}s")
            return None
        finally:
            self.close()

    def close(self) -> None:
        self._emitter.off(CONNECTION_UPDATE, self._on_update)


async def wait_for_qr(emitter: EventEmitter, timeout: float = DEFAULT_QR_TIMEOUT) -> str | None:
    """Arm a ConnectionWaiter on emitter and wait for it."""
    return await ConnectionWaiter(emitter).wait(timeout)
