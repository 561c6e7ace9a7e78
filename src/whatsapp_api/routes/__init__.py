from .message import router as message_router
from .session import router as session_router

__all__ = ["message_router", "session_router"]
