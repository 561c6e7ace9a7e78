"""Shared fixtures: scripted fake sockets, recording webhook transport, service factory."""

import asyncio
import json
from typing import Any

import httpx
import pytest

from whatsapp_api.webhook import WebhookNotifier
from whatsapp_api.whatsapp import (
    AuthState,
    BridgeError,
    ConnectionUpdate,
    EventEmitter,
    MultiFileAuthStore,
    WhatsAppService,
)
from whatsapp_api.whatsapp.events import CONNECTION_UPDATE

WEBHOOK_URL = "http://webhook.test/events"


class FakeSocket:
    """In-memory session handle; emits a scripted list of updates after connect()."""

    def __init__(self, auth: AuthState, script: list[ConnectionUpdate] | None = None):
        self.ev = EventEmitter()
        self.auth = auth
        self.script = list(script or [])
        self.connected = False
        self.closed = False
        self.logged_out = False
        self.sent: list[tuple[str, dict[str, Any]]] = []
        self.connect_error: Exception | None = None
        self.logout_error: Exception | None = None
        self.send_error: Exception | None = None
        self._script_task: asyncio.Task | None = None

    async def connect(self) -> None:
        if self.connect_error:
            raise self.connect_error
        self.connected = True
        if self.script:
            self._script_task = asyncio.get_running_loop().create_task(self._play())

    async def _play(self) -> None:
        await asyncio.sleep(0)
        for update in self.script:
            await self.ev.emit(CONNECTION_UPDATE, update)

    async def emit_update(self, **kwargs: Any) -> None:
        await self.ev.emit(CONNECTION_UPDATE, ConnectionUpdate(**kwargs))

    async def send_message(self, jid: str, content: dict[str, Any]) -> dict[str, Any]:
        if self.send_error:
            raise self.send_error
        self.sent.append((jid, content))
        return {"key": {"id": f"MSG{len(self.sent)}", "remoteJid": jid}}

    async def logout(self) -> None:
        if self.logout_error:
            raise self.logout_error
        self.logged_out = True

    async def close(self) -> None:
        self.closed = True


class FakeSocketFactory:
    """Hands out FakeSockets, each playing the next queued script."""

    def __init__(self):
        self.scripts: list[list[ConnectionUpdate]] = []
        self.sockets: list[FakeSocket] = []
        self.connect_error: Exception | None = None
        self.connect_failures = 0

    def queue(self, *updates: ConnectionUpdate) -> None:
        self.scripts.append(list(updates))

    def __call__(self, auth: AuthState) -> FakeSocket:
        script = self.scripts.pop(0) if self.scripts else []
        sock = FakeSocket(auth, script)
        sock.connect_error = self.connect_error
        if self.connect_failures:
            self.connect_failures -= 1
            sock.connect_error = BridgeError("bridge down")
        self.sockets.append(sock)
        return sock

    @property
    def last(self) -> FakeSocket:
        return self.sockets[-1]


class WebhookRecorder:
    """httpx.MockTransport handler recording every webhook POST."""

    def __init__(self, status_code: int = 200):
        self.status_code = status_code
        self.requests: list[dict[str, Any]] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(json.loads(request.content))
        return httpx.Response(self.status_code)

    def events(self, event: str) -> list[dict[str, Any]]:
        return [body for body in self.requests if body["event"] == event]


@pytest.fixture
def webhook_recorder():
    return WebhookRecorder()


@pytest.fixture
def notifier(webhook_recorder):
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(webhook_recorder))
    return WebhookNotifier(http_client, WEBHOOK_URL)


@pytest.fixture
def socket_factory():
    return FakeSocketFactory()


@pytest.fixture
def session_path(tmp_path):
    return tmp_path / "sessions"


@pytest.fixture
def service(session_path, socket_factory, notifier):
    return WhatsAppService(
        auth_store=MultiFileAuthStore(session_path),
        socket_factory=socket_factory,
        notifier=notifier,
        max_reconnect_attempts=5,
        qr_timeout=0.05,
        reconnect_delay=0,
    )
