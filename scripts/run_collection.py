"""Operator entry point: run the collector, a retention sweep or the API server."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys

from hotkeys.api.dependencies import get_collector_service
from hotkeys.core.config import get_settings
from hotkeys.core.exceptions import ConfigurationError
from hotkeys.core.logging import configure_logging


async def _run_once() -> int:
    summary = await get_collector_service().run_once()
    print(summary.model_dump_json(indent=2))
    return 1 if summary.aborted else 0


async def _cleanup(days: int) -> int:
    deleted = await get_collector_service().cleanup_old_data(days)
    print(f"Deleted {deleted} hot keys older than {days} days.")
    return 0


async def _stats() -> int:
    stats = await get_collector_service().get_collection_stats()
    print(json.dumps(stats, indent=2, default=str, ensure_ascii=False))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Hot keyword aggregator operations")
    commands = parser.add_subparsers(dest="command", required=True)
    commands.add_parser("once", help="Run one collection pass and print its summary")
    cleanup = commands.add_parser("cleanup", help="Delete hot keys not refreshed recently")
    cleanup.add_argument("--days", type=int, default=None, help="Retention window (default: RETENTION_DAYS)")
    commands.add_parser("stats", help="Print storage statistics")
    serve = commands.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=8000)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        settings = get_settings()
    except ConfigurationError as exc:
        print(f"Configuration error: {exc}")
        return 2
    configure_logging(settings.LOG_LEVEL)

    if args.command == "serve":
        import uvicorn

        uvicorn.run("hotkeys.main:app", host=args.host, port=args.port)
        return 0
    if args.command == "once":
        return asyncio.run(_run_once())
    if args.command == "cleanup":
        days = args.days if args.days is not None else settings.RETENTION_DAYS
        if days < 1:
            print("--days must be at least 1")
            return 2
        return asyncio.run(_cleanup(days))
    return asyncio.run(_stats())


if __name__ == "__main__":
    sys.exit(main())
