"""
Job Queue - discovery, filtering and sequential processing of job applications.

Flow:
1. discover_jobs() scans the current search-results page through the
   platform adapter, filters the jobs and replaces the queue
2. start_processing() pops jobs one at a time, checks rate limits, applies
   through the adapter and records each outcome
3. pause/resume/stop are cooperative flags honoured between jobs
4. start_auto_discovery() tops the queue up from further result pages while
   a run is active

Usage:
    queue = JobQueue(settings=settings, channel=LocalMessageChannel(service))
    await queue.init(driver, profile)
    queue.on_job_processed(lambda event: print(event.job.title, event.success))
    await queue.discover_jobs()
    await queue.start_processing()
"""

import asyncio
import logging
from collections import deque
from contextlib import suppress
from typing import Any, Awaitable, Callable, Deque, Dict, List, Optional

from adapters.base import AdapterConfig, PlatformAdapter, ScanResult
from adapters.factory import create_adapter, detect_platform

from .answer_mapping import AnswerMapping
from .config import Settings
from .dom import PageDriver
from .events import EventHook
from .exceptions import (
    AdapterNotInitializedError,
    AlreadyProcessingError,
    EmptyQueueError,
    NotOnSearchResultsPageError,
    PlatformDisabledError,
    ProcessingNotActiveError,
)
from .messaging import MessageChannel, MessageType
from .models import (
    JobProcessedEvent,
    JobRecord,
    ProcessingState,
    ProgressEvent,
    QueueStats,
    RunCompleteEvent,
)
from .profile import UserProfile
from .rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[Any]]


class JobQueue:
    """
    Owns the pending queue, the processed list, the counters and the
    processing state of one page.
    """

    def __init__(
        self,
        adapter: Optional[PlatformAdapter] = None,
        settings: Optional[Settings] = None,
        channel: Optional[MessageChannel] = None,
        rate_limiter: Optional[RateLimiter] = None,
        sleep: Optional[Sleep] = None,
    ):
        self.adapter = adapter
        self.settings = settings or Settings()
        self.channel = channel
        self._owns_rate_limiter = rate_limiter is None
        self.rate_limiter = rate_limiter or RateLimiter.from_settings(self.settings)
        self._sleep = sleep or asyncio.sleep

        self._queue: Deque[JobRecord] = deque()
        self._processed: List[JobRecord] = []
        self.stats = QueueStats()
        self.current_job: Optional[JobRecord] = None

        # State
        self._discovering = False
        self._run_active = False    # a run was started and has not ended
        self._loop_running = False  # the pop/apply loop is executing
        self._paused = False
        # Held for every operation that drives the page during a run.
        self._page_lock = asyncio.Lock()

        # Notifications
        self.progress_hook = EventHook("progress")
        self.job_processed_hook = EventHook("job_processed")
        self.complete_hook = EventHook("complete")

    # ========================================================================
    # Setup
    # ========================================================================

    async def init(
        self,
        driver: PageDriver,
        profile: Optional[UserProfile] = None,
        adapter_config: Optional[AdapterConfig] = None,
        mapping: Optional[AnswerMapping] = None,
    ) -> PlatformAdapter:
        """Load settings from the background service and build the adapter for the page."""
        if self.channel:
            response = await self.channel.send(MessageType.GET_SETTINGS)
            if response.success:
                self.settings = self.settings.merged(response.data)
                if self._owns_rate_limiter:
                    self.rate_limiter = RateLimiter.from_settings(self.settings)
            else:
                logger.warning(f"Could not load settings ({response.error}), using local settings")

        platform = detect_platform(driver.url)
        if platform is not None and not self.settings.is_platform_enabled(platform.value):
            raise PlatformDisabledError(driver.url, platform.value)

        self.adapter = create_adapter(
            driver.url,
            driver,
            profile=profile,
            config=adapter_config,
            mapping=mapping,
            settings=self.settings,
        )
        logger.info(f"Job queue initialized for {self.adapter.platform}")
        return self.adapter

    # ========================================================================
    # Notifications
    # ========================================================================

    def on_progress(self, listener: Callable[[ProgressEvent], Any]) -> Callable[[], None]:
        return self.progress_hook.subscribe(listener)

    def on_job_processed(self, listener: Callable[[JobProcessedEvent], Any]) -> Callable[[], None]:
        return self.job_processed_hook.subscribe(listener)

    def on_complete(self, listener: Callable[[RunCompleteEvent], Any]) -> Callable[[], None]:
        return self.complete_hook.subscribe(listener)

    # ========================================================================
    # State
    # ========================================================================

    @property
    def state(self) -> ProcessingState:
        if self._discovering:
            return ProcessingState.DISCOVERING
        if self._run_active:
            return ProcessingState.PAUSED if self._paused else ProcessingState.PROCESSING
        return ProcessingState.IDLE

    @property
    def is_processing(self) -> bool:
        return self._run_active

    @property
    def is_paused(self) -> bool:
        return self._paused

    @property
    def queue_size(self) -> int:
        return len(self._queue)

    def get_queued_jobs(self) -> List[JobRecord]:
        return list(self._queue)

    def get_processed_jobs(self) -> List[JobRecord]:
        return list(self._processed)

    def get_status(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "is_processing": self._run_active,
            "is_paused": self._paused,
            "queue_size": len(self._queue),
            "processed_size": len(self._processed),
            "current_job": self.current_job.to_dict() if self.current_job else None,
            "stats": self.stats.to_dict(),
            "platform": self.adapter.platform if self.adapter else None,
        }

    # ========================================================================
    # Discovery
    # ========================================================================

    async def discover_jobs(self) -> int:
        """Scan the page, filter, and replace the queue. Returns the number queued."""
        if self.adapter is None:
            raise AdapterNotInitializedError()
        if not self.adapter.is_search_results_page():
            raise NotOnSearchResultsPageError(self.adapter.driver.url if self.adapter.driver else "")

        self._discovering = True
        self.stats.reset_discovery()
        try:
            scan = await self.adapter.extract_jobs_from_search_results()
            jobs = list(scan)
            filtered = await self._filter_jobs(jobs)
        except Exception as e:
            logger.error(f"Error discovering jobs: {e}")
            self.stats.reset_discovery()
            raise
        finally:
            self._discovering = False

        discovered = scan.cards_found if isinstance(scan, ScanResult) else len(jobs)
        self.stats.discovered = discovered
        self.stats.skipped += discovered - len(filtered)

        # Replace, not merge: unprocessed jobs from an earlier pass are dropped.
        self._queue = deque(filtered)
        self.stats.queued = len(filtered)

        logger.info(f"Discovered {discovered} jobs, queued {len(filtered)}")
        self.progress_hook.emit(ProgressEvent(
            type="discovery",
            stats=self.stats.snapshot(),
            jobs_found=len(filtered),
            total=len(filtered),
        ))
        return len(filtered)

    async def _filter_jobs(self, jobs: List[JobRecord]) -> List[JobRecord]:
        kept = []
        for job in jobs:
            if self.settings.skip_applied_jobs and any(job.matches(done) for done in self._processed):
                logger.debug(f"Skipping already processed job: {job.title}")
                continue

            if self.settings.skip_non_easy_apply and not await self._has_easy_apply(job):
                logger.debug(f"Skipping job without fast apply: {job.title}")
                continue

            kept.append(job)
        return kept

    async def _has_easy_apply(self, job: JobRecord) -> bool:
        if job.card is None:
            return False
        try:
            return await self.adapter.has_easy_apply(job.card)
        except Exception as e:
            logger.warning(f"Fast-apply check failed for {job.title}: {e}")
            return False

    def clear_queue(self):
        self._queue.clear()
        self.stats.queued = 0

    # ========================================================================
    # Processing
    # ========================================================================

    async def start_processing(self):
        """Run the pop/apply loop until the queue empties, the daily limit, pause or stop."""
        if self._run_active:
            raise AlreadyProcessingError()
        if not self._queue:
            raise EmptyQueueError()
        if self.adapter is None:
            raise AdapterNotInitializedError()

        self._run_active = True
        self._paused = False
        logger.info(
            f"Processing {len(self._queue)} jobs "
            f"(daily limit {self.settings.daily_limit}, batch size {self.settings.batch_size})"
        )
        await self._run_loop()

    async def _run_loop(self):
        if self._loop_running:
            # A resumed run whose loop has not exited yet carries on by itself.
            return

        self._loop_running = True
        reason = None
        try:
            while True:
                if not self._run_active:
                    reason = "stopped"
                    break
                if self._paused:
                    reason = "paused"
                    break
                if not self._queue:
                    reason = "queue_exhausted"
                    break
                if self._daily_limit_reached():
                    reason = "daily_limit"
                    break

                async with self._page_lock:
                    if not self._queue:
                        reason = "queue_exhausted"
                        break
                    job = self._queue.popleft()
                    await self._process_job(job)

                if self._daily_limit_reached():
                    reason = "daily_limit"
                    break

                if self._queue and self._run_active and not self._paused:
                    await self._sleep(self.settings.delay_between_applications / 1000)
        finally:
            self._loop_running = False
            self.current_job = None
            if reason in ("queue_exhausted", "daily_limit") or reason is None:
                self._run_active = False
                self._paused = False

        if reason == "daily_limit":
            logger.info(f"Daily limit reached ({self.settings.daily_limit} successful applications)")
        elif reason == "paused":
            logger.info(f"Processing paused with {len(self._queue)} jobs queued")
        elif reason == "stopped":
            logger.info("Processing stopped")

        if reason in ("queue_exhausted", "daily_limit"):
            logger.info(
                f"Processing complete: {self.stats.successful} successful, "
                f"{self.stats.failed} failed of {self.stats.processed}"
            )
            self.complete_hook.emit(RunCompleteEvent(stats=self.stats.snapshot(), reason=reason))

    def _daily_limit_reached(self) -> bool:
        return self.stats.successful >= self.settings.daily_limit

    async def process_job(self, job: JobRecord) -> bool:
        """
        Apply to one job and record the outcome.

        A rate-limit refusal pauses the run and leaves the job pending (it is
        neither recorded nor requeued). Application errors become a failed
        record; nothing here raises for a per-job failure.
        """
        if not job.is_pending:
            logger.warning(f"Ignoring already processed job: {job.title} ({job.status.value})")
            return False
        if self.adapter is None:
            raise AdapterNotInitializedError()

        async with self._page_lock:
            return await self._process_job(job)

    async def _process_job(self, job: JobRecord) -> bool:
        self.current_job = job
        try:
            if not await self._check_rate_limit():
                logger.warning(f"Rate limit reached, pausing before {job.title}")
                self._paused = True
                return False

            success, error = False, None
            try:
                success = bool(await self.adapter.apply_to_job(job))
            except Exception as e:
                error = str(e) or type(e).__name__
                logger.error(f"Error processing job {job.title}: {error}")

            job.mark_processed(success, error)
            self.rate_limiter.record_action()
            self.stats.processed += 1
            if success:
                self.stats.successful += 1
            else:
                self.stats.failed += 1
            self._processed.append(job)

            await self._record_outcome(job)

            snapshot = self.stats.snapshot()
            self.job_processed_hook.emit(JobProcessedEvent(job=job, success=success, stats=snapshot, error=error))
            self.progress_hook.emit(ProgressEvent(
                type="processing",
                stats=snapshot,
                current=snapshot.processed,
                total=snapshot.processed + len(self._queue),
            ))
            return success
        finally:
            self.current_job = None

    async def _check_rate_limit(self) -> bool:
        if self.channel:
            response = await self.channel.send(MessageType.CHECK_RATE_LIMIT)
            if not response.success:
                logger.warning(f"Rate limit check failed ({response.error}), treating as not allowed")
                return False
            if not response.data.get("allowed"):
                logger.info(
                    f"Rate limit: {response.data.get('daily_applications')}/"
                    f"{response.data.get('daily_limit')} today"
                )
                return False

        if self.rate_limiter.can_perform_action():
            return True

        wait = self.rate_limiter.time_until_next_action()
        if wait * 1000 > self.settings.max_throttle_wait_ms:
            logger.info(f"Local throttle needs {wait:.0f}s, more than allowed to wait")
            return False
        logger.info(f"Throttling for {wait:.1f}s")
        await self._sleep(wait)
        return self.rate_limiter.can_perform_action()

    async def _record_outcome(self, job: JobRecord):
        if not self.channel:
            return
        response = await self.channel.send(MessageType.APPLICATION_COMPLETED, {
            "job_data": job.to_dict(),
            "status": job.status.value,
            "error": job.error,
        })
        if not response.success:
            logger.warning(f"Outcome for {job.title} not recorded: {response.error}")

    def pause_processing(self):
        if not self._run_active:
            logger.warning("Pause requested but no run is active")
            return
        self._paused = True
        logger.info("Pause requested; finishing current job")

    async def resume_processing(self):
        if not self._run_active:
            raise ProcessingNotActiveError()
        if not self._paused:
            logger.debug("Resume requested but processing is not paused")
        self._paused = False
        logger.info(f"Resuming with {len(self._queue)} jobs queued")
        await self._run_loop()

    def stop_processing(self):
        self._run_active = False
        self._paused = False
        self.current_job = None
        logger.info("Stop requested")

    # ========================================================================
    # Supplemental discovery
    # ========================================================================

    async def load_more_jobs(self) -> int:
        """Go to the next results page (or scroll for more) and rediscover."""
        if self.adapter is None:
            logger.warning("Cannot load more jobs without an adapter")
            return 0
        try:
            if await self.adapter.navigate_to_next_page():
                logger.info("Moved to next results page")
            elif await self.adapter.scroll_for_more_jobs():
                logger.info("Loaded more results")
            else:
                logger.info("No more results to load")
                return 0
            if self._queue:
                logger.info(f"Replacing {len(self._queue)} queued jobs with the new results")
            return await self.discover_jobs()
        except Exception as e:
            logger.error(f"Error loading more jobs: {e}")
            return 0

    async def start_auto_discovery(
        self,
        max_pages: int = 10,
        max_jobs: int = 100,
        auto_load_more: bool = True,
        poll_interval: float = 10.0,
        low_water_mark: int = 5,
    ) -> QueueStats:
        """Discover, then process while a poller keeps the queue topped up."""
        await self.discover_jobs()
        pages = 1

        while auto_load_more and not self._queue and pages < max_pages:
            if await self.load_more_jobs() == 0 and not self._queue:
                break
            pages += 1

        if not self._queue:
            logger.warning("Auto discovery found no jobs to process")
            return self.stats.snapshot()

        async def poll():
            nonlocal pages
            while True:
                await self._sleep(poll_interval)
                if not self._run_active:
                    return
                # Only between jobs, and only when running low.
                if self._paused or self.current_job is not None or len(self._queue) >= low_water_mark:
                    continue
                if not auto_load_more:
                    continue
                if pages >= max_pages or self.stats.processed + len(self._queue) >= max_jobs:
                    logger.info(f"Auto discovery ceiling reached ({pages} pages, {max_jobs} jobs)")
                    return
                async with self._page_lock:
                    # The run may have moved on while waiting for the page.
                    if not self._run_active or self._paused or len(self._queue) >= low_water_mark:
                        continue
                    found = await self.load_more_jobs()
                pages += 1
                logger.info(f"Auto discovery page {pages}: {found} jobs queued")

        poller = asyncio.create_task(poll())
        try:
            await self.start_processing()
        finally:
            poller.cancel()
            with suppress(asyncio.CancelledError):
                await poller
        return self.stats.snapshot()
