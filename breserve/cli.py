"""Command-line entry point for inspecting and driving the offline core.

    python -m breserve convert XOF EUR 1000
    python -m breserve cache-stats
    python -m breserve cache-clear
    python -m breserve offline-stats
    python -m breserve sync <user_id> [--offline]
"""

import argparse
import json
from dataclasses import asdict
from typing import Optional, Sequence

from breserve import config, factory
from breserve.errors import BReserveError
from utils.logging_utils import get_tagged_logger, setup_logging

logger = get_tagged_logger(__name__, tag="cli")


def _print_json(payload) -> None:
    print(json.dumps(payload, indent=2, default=str))


def _cmd_convert(args, settings: config.Settings) -> None:
    service = factory.build_currency_service(settings)
    outcome = service.convert(args.from_currency, args.to_currency, args.amount)
    _print_json({**outcome.result.model_dump(by_alias=True), "cached": outcome.cached})


def _cmd_cache_stats(args, settings: config.Settings) -> None:
    _print_json(asdict(factory.build_exchange_cache(settings).stats()))


def _cmd_cache_clear(args, settings: config.Settings) -> None:
    factory.build_exchange_cache(settings).clear()
    _print_json({"cleared": True})


def _cmd_offline_stats(args, settings: config.Settings) -> None:
    store = factory.build_offline_store(settings)
    try:
        _print_json(asdict(store.get_storage_stats()))
    finally:
        store.close()


def _cmd_sync(args, settings: config.Settings) -> None:
    synchronizer = factory.build_synchronizer(settings)
    try:
        report = None
        if not args.offline:
            report = synchronizer.sync_pending_changes()
        snapshot = synchronizer.fetch_bookings(args.user_id, online=not args.offline)
        _print_json({
            "sync": asdict(report) if report else None,
            "bookings": len(snapshot.bookings),
            "from_cache": snapshot.from_cache,
            "stale": snapshot.stale,
            "storage": asdict(synchronizer.store.get_storage_stats()),
        })
    finally:
        synchronizer.store.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="breserve", description=__doc__.splitlines()[0])
    parser.add_argument("--log-level", default=None, help="Override BRESERVE_LOG_LEVEL")
    sub = parser.add_subparsers(dest="command", required=True)

    convert = sub.add_parser("convert", help="Convert an amount, using the cache when possible")
    convert.add_argument("from_currency")
    convert.add_argument("to_currency")
    convert.add_argument("amount", type=float)
    convert.set_defaults(handler=_cmd_convert)

    sub.add_parser("cache-stats", help="Show exchange cache entry counts").set_defaults(handler=_cmd_cache_stats)
    sub.add_parser("cache-clear", help="Drop the exchange cache").set_defaults(handler=_cmd_cache_clear)
    sub.add_parser("offline-stats", help="Show offline store row counts").set_defaults(handler=_cmd_offline_stats)

    sync = sub.add_parser("sync", help="Replay queued mutations and refresh a user's bookings")
    sync.add_argument("user_id")
    sync.add_argument("--offline", action="store_true", help="Read the local snapshot only")
    sync.set_defaults(handler=_cmd_sync)
    return parser


def main(argv: Optional[Sequence[str]] = None, settings: Optional[config.Settings] = None) -> int:
    """Run one command; returns the process exit code."""
    args = build_parser().parse_args(argv)
    settings = settings or config.settings
    setup_logging(level=args.log_level or settings.log_level, job_name="breserve_cli")

    try:
        args.handler(args, settings)
    except (BReserveError, ValueError) as exc:
        logger.error("%s failed: %s", args.command, exc)
        return 1
    return 0
