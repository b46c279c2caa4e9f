from __future__ import annotations

import argparse

import uvicorn

from backend.app.config import load_settings


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Run the YouTube Search Server HTTP API.",
    )
    parser.add_argument(
        "--host",
        default=None,
        help="Interface to bind (defaults to YT_SEARCH_SERVER_HOST / SERVER_HOST).",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port to listen on (defaults to YT_SEARCH_SERVER_PORT / SERVER_PORT).",
    )
    return parser.parse_args()


def main() -> None:
    args = _parse_args()
    settings = load_settings()
    host = args.host or settings.server_host
    port = args.port or settings.server_port

    print(f"Server listening for connections at {host}:{port}")
    uvicorn.run(
        "backend.app.main:app",
        host=host,
        port=port,
        log_config=None,
    )


if __name__ == "__main__":
    main()
