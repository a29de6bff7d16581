#!/usr/bin/env python3
"""Run the FastAPI portfolio API server.

This script starts the uvicorn server with periodic valuation and the
stop-loss / take-profit monitor running in the background. Prices come from
the simulated feed (`PUT /prices/{token}`).

Usage:
    python scripts/run_api.py [--host HOST] [--port PORT]

Environment:
    DATABASE_URL - Optional. Defaults to sqlite:///tokenfolio.db.
    MONITOR_INTERVAL_SECONDS, VALUATION_INTERVAL_SECONDS, MIRROR_SHORT_TRIGGERS - Optional.

Examples:
    python scripts/run_api.py
    python scripts/run_api.py --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

import uvicorn

# Ensure imports work when invoked as a script
_REPO_ROOT = Path(__file__).resolve().parents[1]
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))

logger = logging.getLogger(__name__)


def main() -> int:
    """Run the API server."""
    parser = argparse.ArgumentParser(description="Run the FastAPI portfolio ledger API server.")
    parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Host to bind to (default: 127.0.0.1)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port to bind to (default: 8000)",
    )
    parser.add_argument(
        "--reload",
        action="store_true",
        help="Enable auto-reload for development",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    logger.info(f"Starting FastAPI server on {args.host}:{args.port}")
    logger.info(f"  - GET http://{args.host}:{args.port}/health")
    logger.info(f"  - GET http://{args.host}:{args.port}/portfolios")

    uvicorn.run(
        "api.main:create_app_from_env",
        factory=True,
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level="debug" if args.verbose else "info",
    )

    return 0


if __name__ == "__main__":
    sys.exit(main())
