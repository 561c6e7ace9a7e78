"""WhatsApp session module: lifecycle controller, socket interface and bridge client."""

from .auth_state import AuthState, MultiFileAuthStore
from .client import BridgeSocket, create_bridge_socket_factory
from .events import EventEmitter
from .exceptions import (
    BridgeError,
    BridgeTimeoutError,
    WhatsAppError,
    WhatsAppNotConnectedError,
)
from .service import ConnectionStatus, SendResult, ServiceResult, WhatsAppService
from .socket import ConnectionUpdate, DisconnectReason, MessagesUpsert, WASocket, to_jid
from .waiter import ConnectionWaiter, wait_for_qr

__all__ = [
    "AuthState",
    "MultiFileAuthStore",
    "BridgeSocket",
    "create_bridge_socket_factory",
    "EventEmitter",
    "BridgeError",
    "BridgeTimeoutError",
    "WhatsAppError",
    "WhatsAppNotConnectedError",
    "ConnectionStatus",
    "SendResult",
    "ServiceResult",
    "WhatsAppService",
    "ConnectionUpdate",
    "DisconnectReason",
    "MessagesUpsert",
    "WASocket",
    "to_jid",
    "ConnectionWaiter",
    "wait_for_qr",
]
