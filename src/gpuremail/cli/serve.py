"""Run the gateway under uvicorn."""

from __future__ import annotations

import argparse

import uvicorn
from loguru import logger

from gpuremail.infrastructure import configure_logging, get_settings


def main() -> int:
    settings = get_settings()

    parser = argparse.ArgumentParser(description="Serve the GPureMail gateway")
    parser.add_argument("--host", default=settings.api_host, help=f"Bind address (default: {settings.api_host})")
    parser.add_argument("--port", type=int, default=settings.api_port, help=f"Port (default: {settings.api_port})")
    parser.add_argument("--reload", action="store_true", help="Reload on code changes (development only)")
    parser.add_argument("--log-level", default=settings.log_level, help="Log level for the gateway and uvicorn")
    args = parser.parse_args()

    configure_logging(args.log_level)
    logger.info(f"Serving {settings.app_name} on {args.host}:{args.port}")

    uvicorn.run(
        "gpuremail.api.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=args.log_level.lower(),
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
