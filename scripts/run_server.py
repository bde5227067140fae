#!/usr/bin/env python3
"""Run the Live bridge server.

Usage:
    python scripts/run_server.py

    # Override bind address from settings
    python scripts/run_server.py --host 127.0.0.1 --port 9000 --reload
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

import uvicorn

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sightline.config import get_settings


def main():
    settings = get_settings()

    parser = argparse.ArgumentParser(description="Run the Sightline Live server")
    parser.add_argument("--host", default=settings.host, help="Bind address")
    parser.add_argument("--port", type=int, default=settings.port, help="Bind port")
    parser.add_argument(
        "--reload",
        action="store_true",
        help="Reload on code changes (development only)",
    )

    args = parser.parse_args()

    uvicorn.run(
        "sightline.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
