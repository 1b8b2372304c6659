"""
Platform adapter contract.

One adapter per job board translates the board's page structure into
JobRecords and drives its fast-apply flow. Subclasses declare:

1. PLATFORM identifier
2. SELECTORS dictionary (lists of fallbacks, tried in order)
3. QUESTION_CONTAINER_SELECTORS for the application steps
4. is_search_results_page() / is_job_detail_page() URL predicates
5. job id extraction

Everything else (scanning, the step loop, modal cleanup, pagination) is
handled here and overridden only where a board behaves differently.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional
from urllib.parse import urljoin, urlparse

from core.answer_mapping import AnswerMapping
from core.config import Settings
from core.dom import PageDriver
from core.exceptions import ElementNotFoundError, ElementTimeoutError
from core.form_filler import FillResult, FormFiller
from core.models import JobRecord, PlatformType
from core.profile import UserProfile

logger = logging.getLogger(__name__)


@dataclass
class AdapterConfig:
    """Timing and behaviour of an adapter. Times in milliseconds."""
    # Timeouts
    element_timeout_ms: int = 10000
    modal_timeout_ms: int = 5000
    success_timeout_ms: int = 5000

    # Delays
    open_job_delay_ms: int = 3000
    post_click_delay_ms: int = 2000
    step_delay_ms: int = 100
    close_delay_ms: int = 300
    page_load_delay_ms: int = 3000
    scroll_settle_ms: int = 2000

    # Application flow
    max_form_steps: int = 10

    # Scanning; None means the platform default
    skip_applied_cards: bool = True
    require_fast_apply: Optional[bool] = None

    @classmethod
    def instant(cls, **overrides) -> "AdapterConfig":
        """No delays; short timeouts. Useful for dry runs and tests."""
        values = dict(
            element_timeout_ms=100, modal_timeout_ms=100, success_timeout_ms=100,
            open_job_delay_ms=0, post_click_delay_ms=0, step_delay_ms=0,
            close_delay_ms=0, page_load_delay_ms=0, scroll_settle_ms=0,
        )
        values.update(overrides)
        return cls(**values)


class FlowState(str, Enum):
    """States of one application attempt."""
    OPENED = "opened"
    FILLING = "filling"
    ADVANCING = "advancing"
    SUCCESS = "success"
    MANUAL_INTERVENTION = "manual_intervention_required"


@dataclass
class ScanResult:
    """Jobs extracted from a search-results page plus what was dropped."""
    jobs: List[JobRecord] = field(default_factory=list)
    cards_found: int = 0
    skipped_applied: int = 0
    skipped_no_fast_apply: int = 0
    malformed: int = 0

    @property
    def dropped(self) -> int:
        return self.skipped_applied + self.skipped_no_fast_apply + self.malformed

    def __iter__(self):
        return iter(self.jobs)

    def __len__(self):
        return len(self.jobs)

    def __getitem__(self, index):
        return self.jobs[index]


class PlatformAdapter(ABC):
    """Base class for job board adapters."""

    PLATFORM: PlatformType
    SELECTORS: Dict[str, List[str]] = {}
    QUESTION_CONTAINER_SELECTORS: List[str] = []
    # Scroll container for infinite-scroll result lists (None = document)
    RESULTS_CONTAINER: Optional[str] = None
    REQUIRE_FAST_APPLY: bool = True

    def __init__(
        self,
        driver: PageDriver,
        profile: Optional[UserProfile] = None,
        config: Optional[AdapterConfig] = None,
        mapping: Optional[AnswerMapping] = None,
        settings: Optional[Settings] = None,
    ):
        self.driver = driver
        self.profile = profile or UserProfile()
        self.config = config or AdapterConfig()
        self.form_filler = FormFiller(driver, self.profile, mapping, settings)
        self.flow_state: Optional[FlowState] = None
        self.last_fill: Optional[FillResult] = None

    @property
    def platform(self) -> str:
        return self.PLATFORM.value

    @property
    def require_fast_apply(self) -> bool:
        if self.config.require_fast_apply is None:
            return self.REQUIRE_FAST_APPLY
        return self.config.require_fast_apply

    def _selector(self, key: str) -> List[str]:
        return self.SELECTORS.get(key, [])

    def _url_parts(self):
        parsed = urlparse((self.driver.url if self.driver else "") or "")
        return parsed.hostname or "", parsed.path or "/"

    # ========================================================================
    # Page classification
    # ========================================================================

    @abstractmethod
    def is_search_results_page(self) -> bool:
        """Current URL is a search-results listing of this board."""

    @abstractmethod
    def is_job_detail_page(self) -> bool:
        """Current URL shows a single posting of this board."""

    # ========================================================================
    # Extraction
    # ========================================================================

    @abstractmethod
    def extract_job_id_from_url(self, url: str) -> Optional[str]:
        """Board-specific job id embedded in a posting URL."""

    async def extract_job_id_from_card(self, card: Any, url: str) -> Optional[str]:
        return self.extract_job_id_from_url(url) if url else None

    async def extract_jobs_from_search_results(self) -> ScanResult:
        """Scan every job card on the page; malformed cards are logged and skipped."""
        cards = await self.driver.query_all(self._selector("job_card"))
        result = ScanResult(cards_found=len(cards))

        for index, card in enumerate(cards):
            try:
                if self.config.skip_applied_cards and await self.has_already_applied(card):
                    result.skipped_applied += 1
                    continue
                if self.require_fast_apply and not await self.has_easy_apply(card):
                    result.skipped_no_fast_apply += 1
                    continue

                job = await self._job_from_card(card)
                if job is None:
                    logger.debug(f"Card {index} has no title, skipping")
                    result.malformed += 1
                    continue
                result.jobs.append(job)
            except Exception as e:
                logger.warning(f"Error extracting {self.platform} card {index}: {e}")
                result.malformed += 1

        logger.info(
            f"[{self.platform}] {len(result.jobs)} jobs from {result.cards_found} cards "
            f"(applied: {result.skipped_applied}, no fast-apply: {result.skipped_no_fast_apply}, "
            f"malformed: {result.malformed})"
        )
        return result

    async def _job_from_card(self, card: Any) -> Optional[JobRecord]:
        title_element = await self.driver.query(self._selector("card_title"), root=card)
        title = await self.driver.text(title_element)
        if not title:
            return None

        company = await self.driver.text(await self.driver.query(self._selector("card_company"), root=card))
        location = await self.driver.text(await self.driver.query(self._selector("card_location"), root=card))

        href = await self.driver.attribute(title_element, "href")
        if not href:
            link = await self.driver.query("a[href]", root=card)
            href = await self.driver.attribute(link, "href")
        url = urljoin(self.driver.url, href) if href else ""

        return JobRecord(
            title=title,
            company=company,
            location=location,
            url=url,
            platform=self.PLATFORM,
            job_id=await self.extract_job_id_from_card(card, url),
            card=card,
        )

    async def extract_job_data(self) -> Optional[JobRecord]:
        """Normalize the posting on a detail page; None when it cannot be read."""
        try:
            title = await self.driver.text(await self.driver.query(self._selector("detail_title")))
            if not title:
                logger.warning(f"[{self.platform}] No job title on detail page")
                return None

            company = await self.driver.text(await self.driver.query(self._selector("detail_company")))
            location = await self.driver.text(await self.driver.query(self._selector("detail_location")))
            description = await self.driver.text(await self.driver.query(self._selector("detail_description")))

            return JobRecord(
                title=title,
                company=company,
                location=location,
                url=self.driver.url,
                platform=self.PLATFORM,
                job_id=self.extract_job_id_from_url(self.driver.url),
                description=description or None,
            )
        except Exception as e:
            logger.error(f"Error extracting {self.platform} job data: {e}")
            return None

    async def has_easy_apply(self, card: Any) -> bool:
        return await self.driver.query(self._selector("card_fast_apply"), root=card) is not None

    async def has_already_applied(self, card: Any) -> bool:
        return await self.driver.query(self._selector("card_applied"), root=card) is not None

    # ========================================================================
    # Application flow
    # ========================================================================

    async def apply_to_job(self, job: JobRecord) -> bool:
        """
        Drive the fast-apply flow for one job.

        Returns False when the flow cannot be completed automatically; raises
        ElementNotFoundError when the job's title link or the fast-apply
        button is missing.
        """
        logger.info(f"Applying to: {job.title} at {job.company}")
        self.flow_state = None
        self.last_fill = None

        await self._open_job(job)
        await self._open_fast_apply(job)

        try:
            return await self._run_application_flow(job)
        except ElementNotFoundError:
            raise
        except Exception as e:
            logger.error(f"Error in application flow for {job.title}: {e}")
            self._set_state(FlowState.MANUAL_INTERVENTION)
            return False

    async def _open_job(self, job: JobRecord):
        """Show the job's details: click its card, or load its URL."""
        if job.card is not None:
            title_link = await self.driver.query(self._selector("card_title"), root=job.card)
            if title_link is None:
                raise ElementNotFoundError(", ".join(self._selector("card_title")), "Job title link not found")
            await self.driver.click(title_link)
        elif job.url:
            await self.driver.goto(job.url)
        else:
            raise ElementNotFoundError("job card", f"No card or URL for {job.title}")
        await self.driver.wait(self.config.open_job_delay_ms)

    async def _open_fast_apply(self, job: JobRecord):
        selectors = self._selector("fast_apply_button")
        await self.driver.wait_for_element(selectors, self.config.element_timeout_ms)
        button = await self.driver.get_visible(selectors)
        if button is None:
            raise ElementNotFoundError(", ".join(selectors), "Fast-apply button not found on job detail page")
        await self.driver.click(button)
        await self.driver.wait(self.config.post_click_delay_ms)

    async def _run_application_flow(self, job: JobRecord) -> bool:
        self._set_state(FlowState.OPENED)
        try:
            modal = await self.driver.wait_for_element(self._selector("modal"), self.config.modal_timeout_ms)
        except ElementTimeoutError:
            logger.warning(f"Application dialog never opened for {job.title}")
            self._set_state(FlowState.MANUAL_INTERVENTION)
            return False

        success = False
        try:
            success = await self._step_loop(job, modal)
        finally:
            self._set_state(FlowState.SUCCESS if success else FlowState.MANUAL_INTERVENTION)
            await self.close_application_modal()
        return success

    async def _step_loop(self, job: JobRecord, modal: Any) -> bool:
        for step in range(1, self.config.max_form_steps + 1):
            self._set_state(FlowState.FILLING)
            await self.fill_application_step(modal)
            await self.driver.wait(self.config.step_delay_ms)

            self._set_state(FlowState.ADVANCING)
            action = await self._advance(modal)
            if action is None:
                logger.warning(f"No way forward at step {step} for {job.title}, needs manual input")
                return False
            if action == "modal_submit":
                if await self._wait_for_success():
                    logger.info(f"Application submitted: {job.title} at {job.company}")
                    return True
                logger.warning(f"No confirmation after submitting {job.title}")
                return False

        logger.warning(f"Step limit ({self.config.max_form_steps}) reached for {job.title}")
        return False

    async def fetch_question_containers(self, modal: Any) -> List[Any]:
        for selector in self.QUESTION_CONTAINER_SELECTORS:
            containers = await self.driver.query_all(selector, root=modal)
            if containers:
                return containers
        return []

    async def fill_application_step(self, modal: Any) -> Optional[FillResult]:
        containers = await self.fetch_question_containers(modal)
        if not containers:
            logger.debug("No question fields on this step")
            return None
        logger.info(f"Found {len(containers)} question fields to fill")
        self.last_fill = await self.form_filler.fill_questions(containers)
        return self.last_fill

    async def _advance(self, modal: Any) -> Optional[str]:
        """Click Next, Review or Submit, in that priority; returns the key clicked."""
        for key in ("modal_next", "modal_review", "modal_submit"):
            button = await self.driver.get_visible(self._selector(key))
            if button is None or not await self.driver.is_enabled(button):
                continue
            if key == "modal_submit":
                await self.before_submit(modal)
            await self.driver.click(button)
            await self.driver.wait(self.config.post_click_delay_ms)
            return key
        return None

    async def before_submit(self, modal: Any):
        """Hook for last-moment adjustments (e.g. unticking newsletter boxes)."""

    async def _wait_for_success(self) -> bool:
        try:
            await self.driver.wait_for_element(self._selector("modal_success"), self.config.success_timeout_ms)
            return True
        except ElementTimeoutError:
            return False

    async def close_application_modal(self):
        """Dismiss the dialog, confirming a discard prompt if one appears. Never raises."""
        try:
            close_button = await self.driver.get_visible(self._selector("modal_close"))
            if close_button is None:
                return
            await self.driver.click(close_button)
            await self.driver.wait(self.config.close_delay_ms)

            discard = await self.driver.find_by_text(self._selector("discard_button"), "Discard")
            if discard is not None:
                await self.driver.click(discard)
                await self.driver.wait(self.config.step_delay_ms)
        except Exception as e:
            logger.error(f"Error closing application dialog: {e}")

    def _set_state(self, state: FlowState):
        if state != self.flow_state:
            logger.debug(f"[{self.platform}] flow state: {state.value}")
        self.flow_state = state

    # ========================================================================
    # Pagination
    # ========================================================================

    async def navigate_to_next_page(self) -> bool:
        button = await self.driver.get_visible(self._selector("next_page"))
        if button is None or not await self.driver.is_enabled(button):
            return False
        await self.driver.click(button)
        await self.driver.wait(self.config.page_load_delay_ms)
        return True

    async def scroll_for_more_jobs(self) -> bool:
        """Click a "load more" button when the board has one, else scroll the results."""
        load_more = await self.driver.get_visible(self._selector("load_more"))
        if load_more is not None:
            await self.driver.click(load_more)
            await self.driver.wait(self.config.page_load_delay_ms)
            return True
        return await self.driver.scroll_to_bottom(self.RESULTS_CONTAINER, self.config.scroll_settle_ms)
