"""Taleforge — dev launcher. Serves the API with auto-reload."""

import argparse
import logging
import os
from pathlib import Path

import uvicorn
from dotenv import load_dotenv

ROOT = Path(__file__).parent
load_dotenv(ROOT / ".env")

HOST = os.getenv("HOST", "0.0.0.0")
PORT = os.getenv("PORT", "13013")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


def main():
    parser = argparse.ArgumentParser(description="Taleforge dev launcher")
    parser.add_argument("--host", default=HOST, help=f"Bind address (default: {HOST})")
    parser.add_argument("--port", type=int, default=int(PORT),
                        help=f"Port (default: {PORT})")
    parser.add_argument("--no-reload", action="store_true",
                        help="Disable auto-reload")
    args = parser.parse_args()

    logging.basicConfig(
        level=LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    print(f"Starting Taleforge API on http://localhost:{args.port}/api ...")
    uvicorn.run(
        "taleforge.api:app",
        host=args.host,
        port=args.port,
        reload=not args.no_reload,
        log_level=LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
