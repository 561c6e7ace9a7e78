"""Access-token check shared by every protected route."""

import secrets

from fastapi import Header, HTTPException, Request

from .logger import logger


async def verify_token(
    request: Request,
    x_access_token: str | None = Header(None, alias="x-access-token"),
) -> str:
    """
    Validate the x-access-token header against the configured token.

    Requests are rejected when no token is configured at all.

    Returns:
        The accepted token
    """
    expected = request.app.state.settings.access_token

    if not expected:
        logger.warning("ACCESS_TOKEN is not configured, rejecting request")
        raise HTTPException(status_code=401, detail="Access token not configured")

    if not x_access_token:
        raise HTTPException(status_code=401, detail="No access token provided")

    if not secrets.compare_digest(x_access_token.encode(), expected.encode()):
        raise HTTPException(status_code=401, detail="Invalid access token")

    return x_access_token
