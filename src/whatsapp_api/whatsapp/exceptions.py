"""Custom exceptions for WhatsApp session operations."""


class WhatsAppError(Exception):
    """Base exception for WhatsApp session errors."""

    def __init__(self, message: str, status_code: int | None = None):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class WhatsAppNotConnectedError(WhatsAppError):
    """Raised when an operation needs a live connection and there is none."""

    def __init__(self, message: str = "WhatsApp connection is not active"):
        super().__init__(message, status_code=503)


class BridgeError(WhatsAppError):
    """Raised when the protocol bridge rejects a request or drops the link."""


class BridgeTimeoutError(BridgeError):
    """Raised when the protocol bridge does not answer a request in time."""

    def __init__(self, message: str = "Protocol bridge request timed out"):
        super().__init__(message, status_code=408)
