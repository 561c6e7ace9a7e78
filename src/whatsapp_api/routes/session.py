"""Session REST API routes: pairing, status and logout."""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from ..auth import verify_token
from ..logger import logger
from ..schemas import SessionResponse, StatusResponse, TokenResponse
from ..whatsapp import WhatsAppService

router = APIRouter(prefix="/session", tags=["Session"], dependencies=[Depends(verify_token)])


def get_whatsapp_service(request: Request) -> WhatsAppService:
    return request.app.state.whatsapp_service


@router.post("", response_model=TokenResponse)
async def check_token(token: str = Depends(verify_token)):
    """
    Verify an access token

    Returns the token back when it is accepted; useful for clients probing
    their credentials before starting a session.
    """
    return {"token": token}


@router.post("/start", response_model=SessionResponse, response_model_exclude_none=True)
async def start_session(service: WhatsAppService = Depends(get_whatsapp_service)):
    """
    Start (or resume) the WhatsApp session

    **Response:**
    - `status: "waiting_qr"` with `qr`: scan the pairing code to link the device
    - `status: "connected"`: stored credentials were valid, session is live
    - `status: "error"` (HTTP 500): no QR code or connection before the timeout
    """
    logger.info("Session start requested")
    result = await service.initialize(is_reconnecting=False)

    if not result.success:
        return JSONResponse(status_code=500, content=result.to_dict())
    return result.to_dict()


@router.get("/status", response_model=StatusResponse)
async def session_status(service: WhatsAppService = Depends(get_whatsapp_service)):
    """Current connection status and outstanding pairing code, if any."""
    return service.get_connection_status().to_dict()


@router.post("/logout", response_model=SessionResponse, response_model_exclude_none=True)
async def logout_session(service: WhatsAppService = Depends(get_whatsapp_service)):
    """
    Log the device out and delete the stored credentials

    Returns HTTP 400 when there is no active session or the logout failed.
    """
    logger.info("Session logout requested")
    result = await service.logout()

    if not result.success:
        return JSONResponse(status_code=400, content=result.to_dict())
    return result.to_dict()
