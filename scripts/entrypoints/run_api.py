#!/usr/bin/env python3
"""
Contact Relay REST API Server

Run the FastAPI server that accepts contact form submissions.

Usage:
    python scripts/entrypoints/run_api.py
    python scripts/entrypoints/run_api.py --host 0.0.0.0 --port 3000
    python scripts/entrypoints/run_api.py --reload  # Development mode with auto-reload
"""

import argparse
import uvicorn
from core.secrets import get_secret


def main():
    parser = argparse.ArgumentParser(
        description="Contact Relay REST API Server"
    )
    parser.add_argument(
        "--host",
        default="0.0.0.0",
        help="Host to bind to (default: 0.0.0.0)"
    )
    parser.add_argument(
        "--port",
        type=int,
        default=int(get_secret("PORT", "3000")),
        help="Port to bind to (default: $PORT or 3000)"
    )
    parser.add_argument(
        "--reload",
        action="store_true",
        help="Enable auto-reload for development"
    )

    args = parser.parse_args()

    log_level = get_secret("LOG_LEVEL", "info").lower()

    print(f"Server is running on http://localhost:{args.port} (log level: {log_level})")

    # Single worker: the rate-limit table and submission counter live in-process
    uvicorn.run(
        "api.contact_app:create_app",
        factory=True,
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=log_level,
        proxy_headers=False,
    )


if __name__ == "__main__":
    main()
