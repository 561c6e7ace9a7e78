"""Message REST API routes."""

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from ..auth import verify_token
from ..logger import logger
from ..schemas import SendTextRequest, SendTextResponse
from ..whatsapp import WhatsAppService
from .session import get_whatsapp_service

router = APIRouter(prefix="/message", tags=["Message"], dependencies=[Depends(verify_token)])


@router.post("/send-text", response_model=SendTextResponse, response_model_exclude_none=True)
async def send_text(
    request: SendTextRequest,
    service: WhatsAppService = Depends(get_whatsapp_service),
):
    """
    Send a text message

    **Request:**
    - `to`: phone number (digits, optional `+`) or full WhatsApp JID
    - `message`: text to send

    **Response:**
    - HTTP 200 with `message_id` when the message was handed to WhatsApp
    - HTTP 400 when the session is not connected
    """
    try:
        result = await service.send_message(request.to, request.message)
    except Exception as e:
        logger.error(f"Error sending text message: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to send message")

    if not result.success:
        return JSONResponse(status_code=400, content=result.to_dict())
    return result.to_dict()
