# src/main.py — v2
"""CLI entry point: analyze, quota, audit, clear-cache commands.

Usage:
    stockscan analyze <file> --type OUTCOME [--org ORG --user USER] [--no-remote]
    stockscan quota --org ORG [--user USER | --email EMAIL] [--reconcile]
                    [--degrade [REASON] | --clear-degraded]
    stockscan audit [--limit N]
    stockscan clear-cache
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from stockscan.core.models import DOCUMENT_TYPES
from stockscan.version import __version__

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    from stockscan.config.settings import ConfigurationError, load_settings

    try:
        settings = load_settings()
    except ConfigurationError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 2

    _setup_logging(settings, args.verbose)

    try:
        return asyncio.run(args.func(args, settings))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return 1


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="stockscan",
        description=f"stockscan v{__version__} — tiered scan analysis for delivery notes",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- analyze ---
    p_analyze = subparsers.add_parser(
        "analyze", help="Analyze a scanned document",
    )
    p_analyze.add_argument("file", type=Path, help="Path to image or PDF")
    p_analyze.add_argument(
        "-t", "--type", dest="doc_type", type=str.upper,
        choices=DOCUMENT_TYPES, default="OUTCOME",
        help="Document type: INCOME, OUTCOME or CONTROL (default: OUTCOME)",
    )
    p_analyze.add_argument(
        "--no-remote", action="store_true",
        help="Never call a remote AI provider",
    )
    _add_scope_arguments(p_analyze, required=False)
    p_analyze.set_defaults(func=_cmd_analyze)

    # --- quota ---
    p_quota = subparsers.add_parser(
        "quota", help="Show remote usage for a user this month",
    )
    _add_scope_arguments(p_quota, required=True)
    p_quota.add_argument(
        "--reconcile", action="store_true",
        help="Merge the local fallback copy into the shared store",
    )
    degrade = p_quota.add_mutually_exclusive_group()
    degrade.add_argument(
        "--degrade", nargs="?", const="", default=None, metavar="REASON",
        help="Keep this user on QR/local OCR until cleared or next month",
    )
    degrade.add_argument(
        "--clear-degraded", action="store_true",
        help="Re-enable the remote tier for this user",
    )
    p_quota.set_defaults(func=_cmd_quota)

    # --- audit ---
    p_audit = subparsers.add_parser(
        "audit", help="List recent analyses",
    )
    p_audit.add_argument(
        "-n", "--limit", type=int, default=20,
        help="Number of most recent entries to show (default: 20)",
    )
    p_audit.set_defaults(func=_cmd_audit)

    # --- clear-cache ---
    p_clear = subparsers.add_parser(
        "clear-cache", help="Wipe the result cache and the audit log",
    )
    p_clear.set_defaults(func=_cmd_clear_cache)

    return parser


def _add_scope_arguments(parser: argparse.ArgumentParser, required: bool) -> None:
    parser.add_argument("--org", dest="organization_id", required=required, help="Organization ID")
    parser.add_argument("--user", dest="user_id", default=None, help="User ID")
    parser.add_argument("--email", default=None, help="User email")


def _scope_from_args(args: argparse.Namespace):  # noqa: ANN202
    from stockscan.quota.models import QuotaScope

    if not args.organization_id:
        return None
    return QuotaScope(
        organization_id=args.organization_id,
        user_id=args.user_id,
        email=args.email,
    )


async def _cmd_analyze(args: argparse.Namespace, settings) -> int:  # noqa: ANN001
    """Analyze one file and print the outcome as JSON."""
    from stockscan.api.facade import analyze
    from stockscan.extraction.preprocess import UnsupportedFileType
    from stockscan.llm.router import RemoteProviderError
    from stockscan.pipeline.models import AnalyzeOptions

    file_path: Path = args.file
    if not file_path.exists():
        logger.error("File not found: %s", file_path)
        return 1

    options = AnalyzeOptions(allow_remote=not args.no_remote)
    try:
        outcome = await analyze(
            file_path.read_bytes(),
            args.doc_type,
            options,
            filename=file_path.name,
            scope=_scope_from_args(args),
            settings=settings,
        )
    except UnsupportedFileType as exc:
        logger.error("%s", exc)
        return 1
    except RemoteProviderError as exc:
        logger.error("Remote analysis failed: %s", exc)
        if exc.fallback is not None:
            _print_json(exc.fallback.summary())
        return 3

    _print_json(outcome.summary())
    if outcome.status == "QUOTA_EXHAUSTED":
        print(f"Remote quota exhausted; resets on {outcome.resets_on_label}", file=sys.stderr)
    elif outcome.status == "NO_DATA":
        print("No data could be extracted; enter the document manually.", file=sys.stderr)
    return 0


async def _cmd_quota(args: argparse.Namespace, settings) -> int:  # noqa: ANN001
    """Print the quota snapshot for a scope."""
    from stockscan.quota.ledger import DEFAULT_DEGRADE_REASON
    from stockscan.quota.quota_factory import create_quota_ledger

    scope = _scope_from_args(args)
    ledger = create_quota_ledger(settings)
    limit = ledger.resolve_limit(scope)
    if args.reconcile:
        snapshot = await ledger.reconcile(scope, limit)
    if args.degrade is not None:
        snapshot = await ledger.mark_degraded(scope, args.degrade or DEFAULT_DEGRADE_REASON)
    elif args.clear_degraded:
        snapshot = await ledger.clear_degraded(scope)
    elif not args.reconcile:
        snapshot = await ledger.get_snapshot(scope, limit)

    _print_json({
        "organizationId": scope.organization_id,
        "userKey": scope.user_key,
        "limit": limit,
        "used": snapshot.used,
        "remaining": snapshot.remaining,
        "resetsOn": snapshot.resets_on,
        "resetsOnLabel": snapshot.reset_label(),
        "degradeMode": snapshot.degraded,
        "degradeReason": snapshot.degrade_reason,
    })
    return 0


async def _cmd_audit(args: argparse.Namespace, settings) -> int:  # noqa: ANN001
    """Print the most recent audit entries, oldest first."""
    from stockscan.cache.cache_factory import create_audit_log

    entries = await create_audit_log(settings).entries()
    limit = max(args.limit, 0)
    recent = entries[-limit:] if limit else []
    _print_json([entry.to_wire() for entry in recent])
    return 0


async def _cmd_clear_cache(args: argparse.Namespace, settings) -> int:  # noqa: ANN001
    """Wipe the result cache together with the audit log."""
    from stockscan.cache.cache_factory import create_audit_log
    from stockscan.cache.result_cache import ResultCache
    from stockscan.storage.store_factory import create_kv_store

    store = create_kv_store(settings)
    cache = ResultCache(store, ttl_ms=settings.cache_ttl_ms, audit_log=create_audit_log(settings, store))
    await cache.clear()
    print("Cache and audit log cleared.")
    return 0


def _print_json(data: object) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False, default=str))


def _setup_logging(settings, verbose: bool) -> None:  # noqa: ANN001
    """Configure logging for CLI usage."""
    from stockscan.logging.logger import setup_logging

    setup_logging(
        level="DEBUG" if verbose else settings.log_level,
        log_format=settings.log_format,
        log_file=str(settings.log_file) if settings.log_file else None,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )


if __name__ == "__main__":
    sys.exit(main())
