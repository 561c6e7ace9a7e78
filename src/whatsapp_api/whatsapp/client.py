"""
WebSocket client for the protocol bridge.

The bridge is a sidecar process running the WhatsApp protocol library.
It pushes session events as JSON frames and answers requests tagged with
an id:

    -> {"op": "connect", "creds": {...}, "browser": [name, client, version]}
    <- {"event": "connection.update", "data": {"qr": "..."}}
    -> {"op": "send", "id": 1, "jid": "...", "content": {"text": "..."}}
    <- {"reply": 1, "result": {"key": {"id": "..."}}}

Signal keys stay on our side: the bridge reads and writes them through
keys.get / keys.set frames served from the credential store.
"""

import asyncio
from typing import Any

import aiohttp

from ..logger import logger
from .auth_state import AuthState
from .events import CONNECTION_UPDATE, CREDS_UPDATE, MESSAGES_UPSERT, EventEmitter
from .exceptions import BridgeError, BridgeTimeoutError, WhatsAppNotConnectedError
from .socket import ConnectionUpdate, DisconnectReason, MessagesUpsert, SocketFactory

DEFAULT_BROWSER = ("Baileys REST API", "Chrome", "1.0.0")


class BridgeSocket:
    """Session handle backed by one WebSocket connection to the bridge."""

    def __init__(
        self,
        url: str,
        auth: AuthState,
        browser: tuple[str, str, str] = DEFAULT_BROWSER,
        connect_timeout: float = 20.0,
        request_timeout: float = 30.0,
    ):
        self.ev = EventEmitter()
        self._url = url
        self._auth = auth
        self._browser = browser
        self._connect_timeout = connect_timeout
        self._request_timeout = request_timeout

        self._session: aiohttp.ClientSession | None = None
        self._ws: aiohttp.ClientWebSocketResponse | None = None
        self._reader_task: asyncio.Task | None = None
        self._pending: dict[int, asyncio.Future] = {}
        self._next_id = 0
        self._closing = False
        self._close_reported = False

    @property
    def connected(self) -> bool:
        return self._ws is not None and not self._ws.closed

    async def connect(self) -> None:
        """Open the WebSocket and ask the bridge to start a session."""
        self._session = aiohttp.ClientSession()
        try:
            self._ws = await asyncio.wait_for(
                self._session.ws_connect(self._url, heartbeat=30),
                timeout=self._connect_timeout,
            )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            await self._session.close()
            self._session = None
            raise BridgeError(f"Cannot connect to protocol bridge at {self._url}: {e}") from e

        logger.info(f"Connected to protocol bridge: {self._url}")

        await self._send(
            {"op": "connect", "creds": self._auth.creds, "browser": list(self._browser)}
        )
        self._reader_task = asyncio.create_task(self._read_loop())

    async def send_message(self, jid: str, content: dict[str, Any]) -> dict[str, Any]:
        return await self._request("send", jid=jid, content=content)

    async def logout(self) -> None:
        await self._request("logout")

    async def close(self) -> None:
        """Close the WebSocket. Safe to call from inside an event listener."""
        self._closing = True

        task = self._reader_task
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        self._fail_pending(BridgeError("Socket closed"))

        if self._ws is not None and not self._ws.closed:
            await self._ws.close()
        if self._session is not None and not self._session.closed:
            await self._session.close()

    async def _send(self, frame: dict[str, Any]) -> None:
        if not self.connected:
            raise WhatsAppNotConnectedError("Protocol bridge is not connected")
        await self._ws.send_json(frame)

    async def _request(self, op: str, **payload: Any) -> dict[str, Any]:
        self._next_id += 1
        request_id = self._next_id
        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future
        try:
            await self._send({"op": op, "id": request_id, **payload})
            return await asyncio.wait_for(future, timeout=self._request_timeout)
        except asyncio.TimeoutError:
            raise BridgeTimeoutError(
                f"Protocol bridge did not answer '{op}' within {self._request_timeout:.0f}s"
            )
        finally:
            self._pending.pop(request_id, None)

    async def _read_loop(self) -> None:
        try:
            async for msg in self._ws:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    try:
                        frame = msg.json()
                    except ValueError:
                        logger.warning(f"Ignoring malformed bridge frame: {msg.data[:80]}")
                        continue
                    try:
                        await self._dispatch(frame)
                    except Exception as e:
                        logger.error(f"Error handling bridge frame: {e}", exc_info=True)
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    logger.error(f"Protocol bridge WebSocket error: {self._ws.exception()}")
                    break
        finally:
            self._fail_pending(BridgeError("Protocol bridge connection closed"))
            if not self._closing and not self._close_reported:
                self._close_reported = True
                await self.ev.emit(
                    CONNECTION_UPDATE,
                    ConnectionUpdate(
                        connection="close",
                        status_code=DisconnectReason.CONNECTION_LOST,
                        error="Protocol bridge connection lost",
                    ),
                )

    async def _dispatch(self, frame: dict[str, Any]) -> None:
        if "reply" in frame:
            self._resolve_reply(frame)
            return

        event = frame.get("event")
        data = frame.get("data") or {}

        if event == CONNECTION_UPDATE:
            update = ConnectionUpdate.from_payload(data)
            if update.connection == "close":
                self._close_reported = True
            await self.ev.emit(CONNECTION_UPDATE, update)
        elif event == MESSAGES_UPSERT:
            await self.ev.emit(MESSAGES_UPSERT, MessagesUpsert.from_payload(data))
        elif event == CREDS_UPDATE:
            await self.ev.emit(CREDS_UPDATE, data)
        elif event == "keys.get":
            await self._serve_keys(frame)
        elif event == "keys.set":
            if self._auth.keys is not None:
                await self._auth.keys.set(data)
        else:
            logger.debug(f"Unhandled bridge event: {event}")

    async def _serve_keys(self, frame: dict[str, Any]) -> None:
        reply: dict[str, Any] = {"op": "keys.get", "reply": frame.get("id")}
        try:
            keys = {}
            if self._auth.keys is not None:
                keys = await self._auth.keys.get(frame.get("type", ""), frame.get("ids") or [])
            reply["result"] = keys
        except Exception as e:
            logger.error(f"Failed to read signal keys: {e}", exc_info=True)
            reply["error"] = {"message": str(e)}
        await self._send(reply)

    def _resolve_reply(self, frame: dict[str, Any]) -> None:
        future = self._pending.get(frame.get("reply"))
        if future is None or future.done():
            return
        if frame.get("error"):
            error = frame["error"]
            future.set_exception(
                BridgeError(
                    error.get("message", "Bridge request failed"),
                    status_code=error.get("statusCode"),
                )
            )
        else:
            future.set_result(frame.get("result") or {})

    def _fail_pending(self, error: Exception) -> None:
        for future in self._pending.values():
            if not future.done():
                future.set_exception(error)
        self._pending.clear()


def create_bridge_socket_factory(
    url: str,
    browser: tuple[str, str, str] = DEFAULT_BROWSER,
    connect_timeout: float = 20.0,
    request_timeout: float = 30.0,
) -> SocketFactory:
    """
    Factory function for bridge-backed session handles.

    Args:
        url: Bridge WebSocket URL (e.g., ws://localhost:3001/socket)
        browser: Browser description shown on the linked-devices screen
        connect_timeout: Seconds allowed for the WebSocket handshake
        request_timeout: Seconds allowed for each bridge request

    Returns:
        Callable building a new BridgeSocket from loaded credentials
    """

    def factory(auth: AuthState) -> BridgeSocket:
        return BridgeSocket(
            url,
            auth,
            browser=browser,
            connect_timeout=connect_timeout,
            request_timeout=request_timeout,
        )

    return factory
