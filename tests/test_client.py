"""Tests for the protocol bridge socket against an in-process aiohttp server."""

import asyncio

import pytest
from aiohttp import WSMsgType, web
from aiohttp.test_utils import TestServer

from whatsapp_api.whatsapp import (
    BridgeError,
    BridgeSocket,
    ConnectionWaiter,
    DisconnectReason,
    MultiFileAuthStore,
    WhatsAppNotConnectedError,
)
from whatsapp_api.whatsapp.events import CONNECTION_UPDATE, CREDS_UPDATE


async def wait_until(predicate, timeout=1.0):
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


def make_bridge_app(received):
    async def bridge(request):
        ws = web.WebSocketResponse()
        await ws.prepare(request)

        async for msg in ws:
            if msg.type != WSMsgType.TEXT:
                continue
            frame = msg.json()
            received.append(frame)

            if frame["op"] == "connect":
                await ws.send_json({"event": "keys.set", "data": {"pre-key": {"1": {"k": "v"}}}})
                await ws.send_json({"event": "keys.get", "id": 9, "type": "pre-key", "ids": ["1"]})
                await ws.send_json(
                    {"event": "creds.update", "data": {"me": {"id": "1@s.whatsapp.net"}}}
                )
                await ws.send_json({"event": "connection.update", "data": {"qr": "QR-1"}})
            elif frame["op"] == "send":
                await ws.send_json({"reply": frame["id"], "result": {"key": {"id": "ABC"}}})
            elif frame["op"] == "logout":
                await ws.send_json(
                    {"reply": frame["id"], "error": {"message": "not paired", "statusCode": 401}}
                )
                await ws.close()

        return ws

    app = web.Application()
    app.router.add_get("/socket", bridge)
    return app


class TestBridgeSocket:
    @pytest.mark.asyncio
    async def test_session_over_bridge(self, session_path):
        received = []
        server = TestServer(make_bridge_app(received))
        await server.start_server()
        try:
            state = await MultiFileAuthStore(session_path).load()
            state.creds["noiseKey"] = "xyz"
            sock = BridgeSocket(str(server.make_url("/socket")), state, request_timeout=2)

            creds_updates = []
            closes = []
            sock.ev.on(CREDS_UPDATE, creds_updates.append)
            sock.ev.on(
                CONNECTION_UPDATE,
                lambda update: closes.append(update) if update.connection == "close" else None,
            )

            waiter = ConnectionWaiter(sock.ev)
            await sock.connect()
            qr = await waiter.wait(timeout=2)

            assert qr == "QR-1"
            assert received[0]["op"] == "connect"
            assert received[0]["creds"] == {"noiseKey": "xyz"}
            assert received[0]["browser"] == ["Baileys REST API", "Chrome", "1.0.0"]
            assert creds_updates == [{"me": {"id": "1@s.whatsapp.net"}}]
            assert (session_path / "pre-key-1.json").exists()

            await wait_until(lambda: any(f["op"] == "keys.get" for f in received))
            key_reply = next(f for f in received if f["op"] == "keys.get")
            assert key_reply == {"op": "keys.get", "reply": 9, "result": {"1": {"k": "v"}}}

            result = await sock.send_message("123@s.whatsapp.net", {"text": "hi"})
            assert result == {"key": {"id": "ABC"}}

            with pytest.raises(BridgeError) as exc_info:
                await sock.logout()
            assert exc_info.value.status_code == 401

            await wait_until(lambda: closes)
            assert closes[0].status_code == DisconnectReason.CONNECTION_LOST

            await sock.close()
        finally:
            await server.close()

    @pytest.mark.asyncio
    async def test_connect_failure_raises_bridge_error(self, session_path):
        state = await MultiFileAuthStore(session_path).load()
        sock = BridgeSocket("http://127.0.0.1:1/socket", state, connect_timeout=2)

        with pytest.raises(BridgeError):
            await sock.connect()

    @pytest.mark.asyncio
    async def test_request_without_connection(self, session_path):
        state = await MultiFileAuthStore(session_path).load()
        sock = BridgeSocket("http://127.0.0.1:1/socket", state)

        with pytest.raises(WhatsAppNotConnectedError):
            await sock.send_message("123@s.whatsapp.net", {"text": "hi"})

    @pytest.mark.asyncio
    async def test_bad_frames_do_not_stop_the_session(self, session_path):
        received = []

        async def bridge(request):
            ws = web.WebSocketResponse()
            await ws.prepare(request)

            async for msg in ws:
                if msg.type != WSMsgType.TEXT:
                    continue
                frame = msg.json()
                received.append(frame)
                if frame["op"] == "connect":
                    await ws.send_json(["not", "an", "object"])
                    await ws.send_json(
                        {
                            "event": "connection.update",
                            "data": {"lastDisconnect": {"error": {"statusCode": "abc"}}},
                        }
                    )
                    await ws.send_json(
                        {"event": "keys.get", "id": 5, "type": "pre-key", "ids": ["2"]}
                    )
                    await ws.send_json({"event": "connection.update", "data": {"qr": "QR-2"}})
                elif frame["op"] == "send":
                    await ws.send_json({"reply": frame["id"], "result": {"key": {"id": "XYZ"}}})

            return ws

        app = web.Application()
        app.router.add_get("/socket", bridge)
        server = TestServer(app)
        await server.start_server()
        try:
            state = await MultiFileAuthStore(session_path).load()
            (session_path / "pre-key-2.json").write_text("{corrupt", encoding="utf-8")
            sock = BridgeSocket(str(server.make_url("/socket")), state, request_timeout=2)
            closes = []
            sock.ev.on(
                CONNECTION_UPDATE,
                lambda update: closes.append(update) if update.connection == "close" else None,
            )

            waiter = ConnectionWaiter(sock.ev)
            await sock.connect()
            qr = await waiter.wait(timeout=2)

            assert qr == "QR-2"
            await wait_until(lambda: any(f["op"] == "keys.get" for f in received))
            key_reply = next(f for f in received if f["op"] == "keys.get")
            assert key_reply["reply"] == 5
            assert "result" not in key_reply
            assert key_reply["error"]["message"]

            result = await sock.send_message("123@s.whatsapp.net", {"text": "hi"})
            assert result == {"key": {"id": "XYZ"}}
            assert closes == []

            await sock.close()
        finally:
            await server.close()
