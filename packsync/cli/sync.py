"""CLI tooling to inspect and replay offline operations locally."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
from typing import TYPE_CHECKING, Any

from packsync.config import load_config
from packsync.core.logging_utils import setup_json_logging
from packsync.di.container import Container

if TYPE_CHECKING:
    from packsync.config import AppConfig

logger = logging.getLogger(__name__)

__all__ = ["main", "parse_args", "run_sync_cli"]


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments."""
    parser = argparse.ArgumentParser(
        description="Inspect and replay packing-list changes recorded while offline",
        allow_abbrev=False,
    )
    parser.add_argument(
        "command",
        choices=["pending", "sync", "recent"],
        help="pending: list queued operations; sync: replay them; recent: show recent lists",
    )
    parser.add_argument(
        "--db-path",
        help="Override the configured SQLite path for this run.",
    )
    parser.add_argument(
        "--base-url",
        help="Override the configured API base URL.",
    )
    parser.add_argument(
        "--list-id",
        type=int,
        help="Only show pending operations of this packing list.",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Override the configured log level for this session.",
    )
    return parser.parse_args(argv)


def _prepare_config(args: argparse.Namespace) -> AppConfig:
    overrides: dict[str, Any] = {}
    if args.db_path:
        overrides["PACKSYNC_DB_PATH"] = args.db_path
    if args.base_url:
        overrides["PACKSYNC_API_BASE_URL"] = args.base_url
    if args.log_level:
        overrides["PACKSYNC_LOG_LEVEL"] = args.log_level
    return load_config(**overrides)


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False, default=str))


async def run_sync_cli(args: argparse.Namespace, *, container: Container | None = None) -> int:
    """Run one CLI command and return the process exit code."""
    if container is None:
        config = _prepare_config(args)
        setup_json_logging(level=config.runtime.log_level, log_file=config.runtime.log_file)
        container = Container(config)

    await container.start(background=False)
    try:
        if args.command == "pending":
            operations = await container.offline_store().get_unsynced(args.list_id)
            _print_json([op.model_dump(mode="json") for op in operations])
            return 0

        if args.command == "recent":
            recent = container.packing_list_context().recent_lists
            _print_json([entry.model_dump(by_alias=True, mode="json") for entry in recent])
            return 0

        network = container.network_status()
        if not await container.connectivity_probe().probe_once():
            logger.error("cli_sync_offline", extra={"base_url": container.config.api.base_url})
            return 1
        report = await container.sync_service().force_sync()
        _print_json(
            {
                "online": network.is_online,
                "replayed": report.replayed,
                "discarded": report.discarded,
                "remaining": report.remaining,
            }
        )
        return 0 if report.remaining == 0 else 2
    finally:
        await container.stop()


def main(argv: list[str] | None = None) -> int:
    """Entry point for ``python -m packsync.cli.sync``."""
    args = parse_args(argv)
    try:
        return asyncio.run(run_sync_cli(args))
    except KeyboardInterrupt:  # pragma: no cover - user cancelled
        return 1
    except Exception as exc:
        logger.exception("cli_sync_failed", exc_info=exc)
        return 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
