#!/usr/bin/env python3
"""Launch the StepOut FastAPI server.

Usage:
    python scripts/run_server.py

Ports:
    8000  FastAPI server  (REST + WebSocket), overridable via SERVER_PORT
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

# Ensure the repo root is on sys.path so `from stepout.…` imports work
_root_dir = Path(__file__).resolve().parent.parent
if str(_root_dir) not in sys.path:
    sys.path.insert(0, str(_root_dir))

from stepout.config.settings import LOG_LEVEL, SERVER_HOST, SERVER_PORT  # noqa: E402

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s  %(levelname)-7s  %(name)-22s  %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("run_server")


def main():
    import uvicorn

    logger.info("=" * 60)
    logger.info("  STEPOUT — stage-based recovery quests")
    logger.info("=" * 60)
    logger.info("  FastAPI server  →  http://%s:%d", SERVER_HOST, SERVER_PORT)
    logger.info("  WebSocket       →  ws://%s:%d/ws", SERVER_HOST, SERVER_PORT)
    logger.info("=" * 60)

    uvicorn.run(
        "stepout.server:app",
        host=SERVER_HOST,
        port=SERVER_PORT,
        log_level=LOG_LEVEL.lower(),
        reload=False,
    )


if __name__ == "__main__":
    main()
