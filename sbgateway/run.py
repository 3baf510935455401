"""Command-line entry point for sbgateway.

Resolves configuration (file → environment → flags), builds the shared
classifier, then starts uvicorn with hardened defaults:

  --limit-concurrency 100  Max 100 concurrent connections; HTTP 503 when exceeded
  --backlog 50             OS connection queue depth
  --timeout-keep-alive 5   Short keep-alive to limit idle connection hoarding

Usage:
    sbgateway -apikey AIza... -srvaddr localhost:8080
    python -m sbgateway.run --config ./sbgateway.yaml

Exit status 1 (before the listener starts) when no API key is available, the
configuration is invalid or the classifier cannot be constructed.
"""

from __future__ import annotations

import argparse
import sys
from typing import Optional, Sequence

import uvicorn

from sbgateway import __version__
from sbgateway.classifier.factory import create_classifier
from sbgateway.classifier.protocol import ClassifierInitError
from sbgateway.config import load_config, require_api_key
from sbgateway.main import create_app
from sbgateway.utils.logger import configure_logging, get_logger

logger = get_logger(__name__)

# ─── Uvicorn hardened defaults ────────────────────────────────────────────────

# New connections receive HTTP 503 when this limit is exceeded.
UVICORN_LIMIT_CONCURRENCY: int = 100

# OS-level TCP connection backlog queue size.
UVICORN_BACKLOG: int = 50

# HTTP keep-alive timeout in seconds.
UVICORN_TIMEOUT_KEEP_ALIVE: int = 5


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sbgateway",
        description="Local Safe Browsing API v4 lookup gateway.",
    )
    parser.add_argument("-apikey", "--apikey", dest="api_key", default="", help="Safe Browsing API key")
    parser.add_argument(
        "-srvaddr",
        "--srvaddr",
        dest="addr",
        default="",
        help="listen address as host:port (default localhost:8080)",
    )
    parser.add_argument("-db", "--db", dest="db_path", default="", help="path to the classifier database")
    parser.add_argument("--config", dest="config_path", default=None, help="path to config.yaml")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="log level (default INFO)",
    )
    logs = parser.add_mutually_exclusive_group()
    logs.add_argument("--json-logs", dest="json_logs", action="store_true", default=True)
    logs.add_argument("--console-logs", dest="json_logs", action="store_false")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> None:
    """Start the gateway.

    Raises:
        SystemExit: Missing API key, invalid config or classifier init failure.
    """
    args = build_parser().parse_args(argv)
    configure_logging(log_level=args.log_level, json_output=args.json_logs)

    config = load_config(args.config_path).with_overrides(
        api_key=args.api_key,
        addr=args.addr,
        db_path=args.db_path,
    )
    require_api_key(config)

    try:
        classifier = create_classifier(config)
    except ClassifierInitError as exc:
        print(f"Unable to initialize Safe Browsing classifier: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc

    app = create_app(config, classifier)

    logger.info("Starting server", addr=config.server.addr)
    uvicorn.run(
        app,
        host=config.server.host,
        port=config.server.port,
        limit_concurrency=UVICORN_LIMIT_CONCURRENCY,
        backlog=UVICORN_BACKLOG,
        timeout_keep_alive=UVICORN_TIMEOUT_KEEP_ALIVE,
        log_config=None,
    )


if __name__ == "__main__":
    main()
