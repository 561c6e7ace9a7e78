from pydantic import BaseModel, Field


class SendTextRequest(BaseModel):
    to: str = Field(..., min_length=1, description="Recipient phone number or WhatsApp JID")
    message: str = Field(..., min_length=1, description="Message text")


class SessionResponse(BaseModel):
    """Result of a session operation (start, logout)"""

    success: bool
    status: str = Field(..., description="waiting_qr, connected, logged_out or error")
    message: str | None = None
    qr: str | None = Field(None, description="Pairing code to render as a QR image")
    reason: str | None = None
    error: str | None = None


class StatusResponse(BaseModel):
    isConnected: bool
    qr: str | None = None


class SendTextResponse(BaseModel):
    success: bool
    status: str
    to: str | None = Field(None, description="Normalized recipient JID")
    message_id: str | None = None
    message: str | None = None


class TokenResponse(BaseModel):
    token: str
