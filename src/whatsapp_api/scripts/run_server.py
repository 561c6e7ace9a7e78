#!/usr/bin/env python3
"""
HTTP server entry point.

Usage:
    # Development
    python -m whatsapp_api.scripts.run_server

    # Production (from package root)
    uv run python -m whatsapp_api.scripts.run_server

The server will:
1. Load settings from environment variables and .env files
2. Resume the WhatsApp session if credentials are stored
3. Serve the session and message endpoints
"""

import uvicorn
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

from ..config import settings
from ..logger import logger


def main():
    """Start uvicorn with the application from whatsapp_api.main."""
    logger.info("=" * 80)
    logger.info("🚀 Starting WhatsApp REST API")
    logger.info("=" * 80)
    logger.info(f"Listening on: {settings.host}:{settings.port}")
    logger.info(f"Protocol bridge: {settings.bridge_url}")
    logger.info(f"Session directory: {settings.session_path}")
    logger.info(f"Webhook: {settings.webhook_url or 'disabled'}")
    logger.info(f"Max reconnect attempts: {settings.max_reconnect_attempts}")
    logger.info("=" * 80)

    uvicorn.run(
        "whatsapp_api.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
