"""Tests for socket payload parsing and JID normalization."""

import pytest

from whatsapp_api.whatsapp import ConnectionUpdate, DisconnectReason, MessagesUpsert, to_jid


class TestConnectionUpdate:
    def test_from_close_payload(self):
        update = ConnectionUpdate.from_payload(
            {
                "connection": "close",
                "lastDisconnect": {"error": {"statusCode": 401, "message": "Logged out"}},
            }
        )

        assert update.connection == "close"
        assert update.status_code == DisconnectReason.LOGGED_OUT
        assert update.error == "Logged out"
        assert update.is_logged_out is True

    def test_from_qr_payload(self):
        update = ConnectionUpdate.from_payload({"qr": "2@abc"})

        assert update.qr == "2@abc"
        assert update.connection is None
        assert update.status_code is None
        assert update.is_logged_out is False

    def test_empty_qr_is_none(self):
        assert ConnectionUpdate.from_payload({"connection": "connecting", "qr": ""}).qr is None

    def test_restart_required_is_not_logout(self):
        update = ConnectionUpdate(connection="close", status_code=DisconnectReason.RESTART_REQUIRED)

        assert update.is_logged_out is False


class TestMessagesUpsert:
    def test_from_payload(self):
        upsert = MessagesUpsert.from_payload({"type": "notify", "messages": [{"key": {}}]})

        assert upsert.type == "notify"
        assert upsert.messages == [{"key": {}}]

    def test_missing_messages(self):
        assert MessagesUpsert.from_payload({"type": "append"}).messages == []


class TestToJid:
    def test_bare_number(self):
        assert to_jid("123") == "123@s.whatsapp.net"

    def test_formatted_number(self):
        assert to_jid(" +55 (11) 98765-4321 ") == "5511987654321@s.whatsapp.net"

    def test_existing_jid_unchanged(self):
        assert to_jid("12036302@g.us") == "12036302@g.us"

    def test_recipient_without_digits_rejected(self):
        with pytest.raises(ValueError):
            to_jid("abc")
