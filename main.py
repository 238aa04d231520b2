#!/usr/bin/env python3
"""
Entry point for the Court Reservations service.

    python main.py              # serve on API_HOST:API_PORT
    LOG_LEVEL=debug python main.py
"""

import logging
import os

import uvicorn

LOG_LEVEL = os.getenv("LOG_LEVEL", "info").lower()

if __name__ == "__main__":
    logging.basicConfig(
        level=LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
    )
    uvicorn.run(
        "app.main:app",
        host=os.getenv("API_HOST", "0.0.0.0"),
        port=int(os.getenv("API_PORT", "8000")),
        reload=os.getenv("API_RELOAD", "false").lower() == "true",
        log_level=LOG_LEVEL,
    )
