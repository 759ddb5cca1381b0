"""Command-line entry point for applytrack.

Usage:
    python -m applytrack.main login --token TOKEN      # store the backend token
    python -m applytrack.main settings --dev-mode on   # use the local backend
    python -m applytrack.main extract --url URL --html page.html
    python -m applytrack.main pending                  # list jobs awaiting confirmation
    python -m applytrack.main confirm JOB_ID           # or --all
    python -m applytrack.main decline JOB_ID           # or --all
    python -m applytrack.main failed                   # list failed deliveries
    python -m applytrack.main retry                    # re-send failed deliveries
    python -m applytrack.main whoami
    python -m applytrack.main jobs --page 2 --platform naukri
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from applytrack.api_client import ApiClient
from applytrack.background import BackgroundService
from applytrack.config import TrackerConfig, load_config, resolve_backend_url, resolve_dashboard_url
from applytrack.errors import ChannelUnavailableError, TrackerError
from applytrack.messaging import RETRY_FAILED, MessageBus
from applytrack.page import Page
from applytrack.pending import PendingJobStore
from applytrack.platforms import adapter_for_url
from applytrack.review import PendingReview
from applytrack.storage import (
    API_URL_KEY,
    AUTH_TOKEN_KEY,
    DASHBOARD_URL_KEY,
    DEV_MODE_KEY,
    LocalStorage,
)
from applytrack.sync_queue import FailedJobStore

logger = logging.getLogger(__name__)


def setup_logging(level: str = "INFO") -> None:
    """Configure logging for the CLI."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Track job applications captured on job boards and sync them "
        "to your job tracker dashboard."
    )
    parser.add_argument("--config", type=str, default=None,
                        help="Path to config.yaml (default: config.yaml in project root)")
    parser.add_argument("--data-dir", type=str, default=None,
                        help="Override the storage directory (default: from config)")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Enable debug-level logging")

    sub = parser.add_subparsers(dest="command", required=True)

    login = sub.add_parser("login", help="Store the backend auth token")
    login.add_argument("--token", required=True)
    sub.add_parser("logout", help="Forget the stored auth token")

    settings = sub.add_parser("settings", help="Show or change backend settings")
    settings.add_argument("--api-url", default=None, help="Backend base URL override")
    settings.add_argument("--dashboard-url", default=None, help="Dashboard URL override")
    settings.add_argument("--dev-mode", choices=["on", "off"], default=None)
    settings.add_argument("--reset", action="store_true", help="Go back to production URLs")

    extract = sub.add_parser("extract", help="Extract a job record from a saved page")
    extract.add_argument("--url", required=True, help="URL the page was saved from")
    extract.add_argument("--html", required=True, help="Path to the saved HTML")

    sub.add_parser("pending", help="List jobs waiting for confirmation")
    for name, verb in (("confirm", "Save"), ("decline", "Discard")):
        p = sub.add_parser(name, help=f"{verb} a pending job")
        p.add_argument("job_id", nargs="?", default=None)
        p.add_argument("--all", action="store_true", help=f"{verb} every pending job")

    sub.add_parser("failed", help="List failed deliveries")
    sub.add_parser("retry", help="Retry every failed delivery")
    sub.add_parser("whoami", help="Check the stored token against the backend")

    jobs = sub.add_parser("jobs", help="List tracked jobs on the backend")
    jobs.add_argument("--page", type=int, default=1)
    jobs.add_argument("--limit", type=int, default=10)
    jobs.add_argument("--platform", default=None)
    jobs.add_argument("--status", default=None)

    return parser.parse_args(argv)


# ── Commands ───────────────────────────────────────────────────────────────

def cmd_settings(args: argparse.Namespace, config: TrackerConfig, storage: LocalStorage) -> int:
    if args.reset:
        for key in (API_URL_KEY, DASHBOARD_URL_KEY, DEV_MODE_KEY):
            storage.remove(key)
    if args.api_url:
        storage.set(API_URL_KEY, args.api_url)
    if args.dashboard_url:
        storage.set(DASHBOARD_URL_KEY, args.dashboard_url)
    if args.dev_mode:
        storage.set(DEV_MODE_KEY, args.dev_mode == "on")

    print(f"Backend:   {resolve_backend_url(config, storage)}")
    print(f"Dashboard: {resolve_dashboard_url(config, storage)}")
    print(f"Dev mode:  {'on' if storage.get(DEV_MODE_KEY, False) else 'off'}")
    print(f"Logged in: {'yes' if storage.get(AUTH_TOKEN_KEY) else 'no'}")
    return 0


def cmd_extract(args: argparse.Namespace, config: TrackerConfig) -> int:
    adapter = adapter_for_url(args.url, config.enabled_platforms)
    if adapter is None:
        logger.error("No supported job board at %s", args.url)
        return 1

    page = Page(args.url, Path(args.html).read_text(encoding="utf-8"))
    record = adapter.extract(page)
    if record is None:
        logger.error("Could not extract job details from %s", args.html)
        return 1
    print(json.dumps(record.to_dict(), indent=2, ensure_ascii=False))
    return 0


def cmd_pending(storage: LocalStorage) -> int:
    jobs = PendingJobStore(storage).list()
    if not jobs:
        print("No pending jobs.")
        return 0
    for job in jobs:
        r = job.record
        print(f"{job.id}  [{r.platform}] {r.job_title} at {r.company_name}  {r.job_url}")
    return 0


def cmd_failed(storage: LocalStorage) -> int:
    entries = FailedJobStore(storage).list()
    if not entries:
        print("No failed deliveries.")
        return 0
    for entry in entries:
        r = entry.record
        print(f"[{r.platform}] {r.job_title} at {r.company_name}  retries={r.retry_count}  error={entry.error}")
    return 0


async def run_with_background(args: argparse.Namespace, config: TrackerConfig, storage: LocalStorage) -> int:
    """Commands that go through the background service."""
    bus = MessageBus(request_timeout=config.message_timeout_seconds)
    service = BackgroundService(config, storage, bus, ApiClient(config, storage))
    service.start()
    review = PendingReview(PendingJobStore(storage), bus)

    try:
        if args.command == "retry":
            response = await bus.send(RETRY_FAILED)
            if not response.success:
                logger.error("Retry failed: %s", response.error)
                return 1
            print(f"Retried {response.data['retried']} jobs, {response.data['failed']} still failing.")
            return 0

        if args.command == "confirm":
            if args.all:
                result = await review.confirm_all()
                print(f"{result.saved} saved, {result.failed} failed")
                return 0 if result.failed == 0 else 1
            outcome = await review.confirm(args.job_id)
        else:
            if args.all:
                await review.clear_all()
                print("All pending jobs cleared.")
                return 0
            outcome = await review.decline(args.job_id)

        if not outcome.ok:
            logger.error("%s", outcome.error)
            return 1
        print(f"Done, {outcome.remaining} pending.")
        return 0
    except ChannelUnavailableError as exc:
        logger.error("Background service unavailable: %s", exc)
        return 1
    finally:
        await service.stop()


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)

    config = load_config(args.config)
    setup_logging("DEBUG" if args.verbose else config.log_level)
    storage = LocalStorage(args.data_dir or config.data_dir)

    if args.command in ("confirm", "decline") and not args.all and not args.job_id:
        logger.error("Give a job id or --all")
        sys.exit(2)

    try:
        if args.command == "login":
            storage.set(AUTH_TOKEN_KEY, args.token)
            print("Token saved.")
            code = 0
        elif args.command == "logout":
            storage.remove(AUTH_TOKEN_KEY)
            print("Logged out.")
            code = 0
        elif args.command == "settings":
            code = cmd_settings(args, config, storage)
        elif args.command == "extract":
            code = cmd_extract(args, config)
        elif args.command == "pending":
            code = cmd_pending(storage)
        elif args.command == "failed":
            code = cmd_failed(storage)
        elif args.command == "whoami":
            print(json.dumps(ApiClient(config, storage).me(), indent=2))
            code = 0
        elif args.command == "jobs":
            result = ApiClient(config, storage).get_jobs(args.page, args.limit, args.platform, args.status)
            print(json.dumps(result, indent=2))
            code = 0
        else:
            code = asyncio.run(run_with_background(args, config, storage))
    except TrackerError as exc:
        logger.error("%s", exc)
        code = 1

    sys.exit(code)


if __name__ == "__main__":
    main()
