#!/usr/bin/env python3
"""
Bulk Job Applier - Main Entry Point

Drives a persistent Chromium profile (log in to the job boards once, by hand)
and applies to every fast-apply job on a search-results page.

Usage:
    # Discover and apply on a search-results page
    python main.py run --url "https://www.linkedin.com/jobs/search/?keywords=python" --profile config/profile.yaml

    # Keep loading result pages while applying
    python main.py run --url ... --profile ... --auto-discover --max-pages 5

    # Only list what would be queued
    python main.py discover --url ... --profile ...

    # Show stored stats and settings
    python main.py status
"""

import argparse
import asyncio
import json
import logging
import os
import signal
import sys
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from playwright.async_api import async_playwright

from adapters.base import AdapterConfig
from core.background import BackgroundService, JsonFileStore, StorageKeys
from core.config import load_settings
from core.dom import PageDriver
from core.exceptions import JobApplierError
from core.job_queue import JobQueue
from core.logging_config import setup_logging
from core.messaging import HttpMessageChannel, LocalMessageChannel, MessageChannel
from core.profile import UserProfile, load_profile
from monitoring.notifications import NotificationManager

logger = logging.getLogger(__name__)

DEFAULT_STATE_FILE = os.getenv("BULK_APPLIER_STATE_FILE", "data/state.json")
DEFAULT_USER_DATA_DIR = os.getenv("BULK_APPLIER_USER_DATA_DIR", "data/browser_profile")


def build_channel(args, settings) -> MessageChannel:
    """Background service in-process, or a remote one over HTTP."""
    if getattr(args, "channel_url", None):
        logger.info(f"Using remote background service at {args.channel_url}")
        return HttpMessageChannel(args.channel_url)
    service = BackgroundService(JsonFileStore(args.state_file), default_settings=settings)
    return LocalMessageChannel(service)


async def open_page(playwright, args):
    """Launch the persistent browser profile and open the search URL."""
    Path(args.user_data_dir).mkdir(parents=True, exist_ok=True)
    context = await playwright.chromium.launch_persistent_context(
        args.user_data_dir,
        headless=args.headless,
        viewport={"width": 1366, "height": 900},
    )
    page = context.pages[0] if context.pages else await context.new_page()
    await page.goto(args.url, wait_until="domcontentloaded")

    if args.wait_for_login:
        await asyncio.to_thread(input, "Log in if needed, open the search results, then press Enter... ")
    return context, page


async def prepare_queue(args, page):
    settings = load_settings(args.settings)
    profile = load_profile(args.profile) if args.profile else UserProfile()
    channel = build_channel(args, settings)

    queue = JobQueue(settings=settings, channel=channel)
    await queue.init(PageDriver(page), profile, adapter_config=AdapterConfig())
    return queue, channel


async def run_applications(args) -> int:
    async with async_playwright() as playwright:
        context, page = await open_page(playwright, args)
        channel = None
        try:
            queue, channel = await prepare_queue(args, page)

            if queue.settings.notifications:
                NotificationManager().attach(queue)

            queue.on_progress(lambda event: logger.info(
                f"[{event.type}] processed {event.stats.processed}, "
                f"successful {event.successful}, failed {event.failed}, queued {queue.queue_size}"
            ))
            queue.on_job_processed(lambda event: logger.info(
                f"{'✅' if event.success else '❌'} {event.job.title} @ {event.job.company}"
            ))

            # Ctrl+C finishes the current job, then stops.
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGINT, signal.SIGTERM):
                try:
                    loop.add_signal_handler(sig, queue.stop_processing)
                except NotImplementedError:
                    pass

            if args.auto_discover:
                await queue.start_auto_discovery(max_pages=args.max_pages, max_jobs=args.max_jobs)
            else:
                if await queue.discover_jobs() == 0:
                    logger.warning("No jobs to apply to on this page")
                    return 0
                await queue.start_processing()

            await queue.job_processed_hook.drain()
            await queue.complete_hook.drain()

            stats = queue.stats
            print(f"\nApplied: {stats.successful}  Failed: {stats.failed}  "
                  f"Skipped: {stats.skipped}  Discovered: {stats.discovered}")
            return 0
        finally:
            if channel is not None:
                await channel.close()
            await context.close()


async def discover_only(args) -> int:
    async with async_playwright() as playwright:
        context, page = await open_page(playwright, args)
        channel = None
        try:
            queue, channel = await prepare_queue(args, page)
            await queue.discover_jobs()
            print(json.dumps([job.to_dict() for job in queue.get_queued_jobs()], indent=2))
            return 0
        finally:
            if channel is not None:
                await channel.close()
            await context.close()


async def show_status(args) -> int:
    store = JsonFileStore(args.state_file)
    service = BackgroundService(store)
    print(json.dumps({
        "settings": (await service.get_settings()).to_dict(),
        "stats": await store.get(StorageKeys.STATS) or {},
        "session": await store.get(StorageKeys.SESSION) or {},
        "rate_limit": await service.check_rate_limit(),
    }, indent=2))
    return 0


def add_browser_arguments(parser):
    parser.add_argument('--url', required=True, help='Job search results URL')
    parser.add_argument('--profile', help='Path to profile YAML')
    parser.add_argument('--settings', help='Path to settings YAML')
    parser.add_argument('--state-file', default=DEFAULT_STATE_FILE, help='Application history/stats file')
    parser.add_argument('--channel-url', help='Use a remote background service instead of the state file')
    parser.add_argument('--user-data-dir', default=DEFAULT_USER_DATA_DIR, help='Persistent browser profile directory')
    parser.add_argument('--headless', action='store_true', help='Run the browser headless')
    parser.add_argument('--wait-for-login', action='store_true', help='Pause for a manual login before starting')


def main(argv: Optional[list] = None) -> int:
    """Main entry point."""
    load_dotenv()

    parser = argparse.ArgumentParser(
        description="Bulk Job Applier - fast-apply automation for LinkedIn, Indeed and Naukri"
    )
    parser.add_argument('--log-level', default=None, help='DEBUG, INFO, WARNING or ERROR')

    subparsers = parser.add_subparsers(dest='command', help='Command to run')

    # Run command
    run_parser = subparsers.add_parser('run', help='Discover jobs and apply')
    add_browser_arguments(run_parser)
    run_parser.add_argument('--auto-discover', action='store_true', help='Load more result pages while applying')
    run_parser.add_argument('--max-pages', type=int, default=10, help='Result pages to visit with --auto-discover')
    run_parser.add_argument('--max-jobs', type=int, default=100, help='Job ceiling with --auto-discover')

    # Discover command
    discover_parser = subparsers.add_parser('discover', help='List the jobs that would be queued')
    add_browser_arguments(discover_parser)

    # Status command
    status_parser = subparsers.add_parser('status', help='Show stored stats and settings')
    status_parser.add_argument('--state-file', default=DEFAULT_STATE_FILE, help='Application history/stats file')

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    setup_logging(level=args.log_level)

    try:
        if args.command == 'run':
            return asyncio.run(run_applications(args))
        elif args.command == 'discover':
            return asyncio.run(discover_only(args))
        elif args.command == 'status':
            return asyncio.run(show_status(args))
    except JobApplierError as e:
        logger.error(str(e))
        return 2
    return 1


if __name__ == "__main__":
    sys.exit(main())
