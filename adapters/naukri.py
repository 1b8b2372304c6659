"""
Naukri adapter.

Search pages are /<keywords>-jobs[-in-<city>] listings (older /jobs and
/search paths are also recognized); postings are /job-listings-<slug>-<id>
or /job-detail-<id>. Applying either succeeds straight away or opens a
chatbot drawer that asks screening questions one at a time.
"""

import logging
import re
from typing import Any, Optional

from core.exceptions import ElementTimeoutError
from core.models import JobRecord, PlatformType

from .base import FlowState, PlatformAdapter

logger = logging.getLogger(__name__)

DETAIL_ID_PATTERN = re.compile(r"job-detail-([a-zA-Z0-9]+)")
LISTING_ID_PATTERN = re.compile(r"job-listings-[^?#]*?-(\d+)(?:[?#]|$)")
SEARCH_PATH_PATTERN = re.compile(r"-jobs(?:-in-[\w-]+)?(?:-\d+)?/?$")


class NaukriAdapter(PlatformAdapter):
    """Naukri apply adapter."""

    PLATFORM = PlatformType.NAUKRI

    SELECTORS = {
        "job_card": [
            ".srp-jobtuple-wrapper",
            "article.jobTuple",
            ".cust-job-tuple",
        ],
        "card_title": ["a.title", ".row1 a"],
        "card_company": ["a.comp-name", ".subTitle", ".comp-dtls-wrap a"],
        "card_location": [".locWdth", ".loc-wrap .ni-job-tuple-icon", ".location"],
        "card_external_apply": [".company-site-apply", ".external-apply", "[data-apply-type='external']"],
        "card_applied": [".applied-tag", ".already-applied"],
        "next_page": ["a.styles_btn-secondary__2AsIP:last-child", "a.fright.fs14.btn-secondary"],

        "detail_title": ["h1.styles_jd-header-title__rZwM1", "h1.jd-header-title", "header h1"],
        "detail_company": [".styles_jd-header-comp-name__MvqAI a", ".jd-header-comp-name a"],
        "detail_location": [".styles_jhc__location__W_pVs", ".location"],
        "detail_description": [".styles_JDC__dang-inner-html__h0K4t", ".dang-inner-html"],
        "fast_apply_button": ["#apply-button", "button.apply-button"],

        # Screening-question drawer
        "modal": [".chatbot_DrawerContentWrapper", ".chatbot_Drawer"],
        "modal_next": [".sendMsg", ".sendMsgbtn_container .send"],
        "modal_success": [
            ".apply-message",
            ".styles_already-applied__4KDhw",
            "span.apply-status-header",
        ],
        "modal_close": [".chatbot_DrawerContentWrapper .crossIcon", ".chatBot-close"],
    }

    QUESTION_CONTAINER_SELECTORS = [
        ".chatbot_ListItem:last-child",
        ".ssrc__radio-btn-container",
        ".chatbot_InputContainer",
    ]
    # Naukri cards rarely show an apply affordance before the detail page opens.
    REQUIRE_FAST_APPLY = False

    def _is_naukri(self) -> bool:
        host, _ = self._url_parts()
        return host == "naukri.com" or host.endswith(".naukri.com")

    def is_job_detail_page(self) -> bool:
        _, path = self._url_parts()
        return self._is_naukri() and ("/job-detail" in path or "/job-listings-" in path)

    def is_search_results_page(self) -> bool:
        if not self._is_naukri() or self.is_job_detail_page():
            return False
        _, path = self._url_parts()
        return "/jobs" in path or "/search" in path or bool(SEARCH_PATH_PATTERN.search(path))

    def extract_job_id_from_url(self, url: str) -> Optional[str]:
        for pattern in (DETAIL_ID_PATTERN, LISTING_ID_PATTERN):
            match = pattern.search(url or "")
            if match:
                return match.group(1)
        return None

    async def extract_job_id_from_card(self, card: Any, url: str) -> Optional[str]:
        job_id = await self.driver.attribute(card, "data-job-id")
        return job_id or self.extract_job_id_from_url(url)

    async def has_easy_apply(self, card: Any) -> bool:
        # Anything not flagged as a company-site redirect applies on Naukri.
        return await self.driver.query(self._selector("card_external_apply"), root=card) is None

    async def apply_to_job(self, job: JobRecord) -> bool:
        """Apply on the posting's own page, then go back to the results it came from."""
        search_url = self.driver.url
        try:
            return await super().apply_to_job(job)
        finally:
            await self._return_to_results(search_url)

    async def _return_to_results(self, search_url: str):
        if not search_url or self.driver.url == search_url:
            return
        try:
            await self.driver.goto(search_url)
            await self.driver.wait(self.config.page_load_delay_ms)
        except Exception as e:
            logger.error(f"Could not return to search results {search_url}: {e}")

    async def _open_job(self, job: JobRecord):
        # Card links open a new tab; load the posting in this page instead.
        if job.url:
            await self.driver.goto(job.url)
            await self.driver.wait(self.config.open_job_delay_ms)
            return
        await super()._open_job(job)

    async def _run_application_flow(self, job: JobRecord) -> bool:
        self._set_state(FlowState.OPENED)

        # Jobs without screening questions are applied to on the first click.
        if await self._wait_for_success():
            self._set_state(FlowState.SUCCESS)
            await self.close_application_modal()
            logger.info(f"Applied on Naukri: {job.title} at {job.company}")
            return True

        try:
            drawer = await self.driver.wait_for_element(self._selector("modal"), self.config.modal_timeout_ms)
        except ElementTimeoutError:
            logger.warning(f"No confirmation and no questions for {job.title}")
            self._set_state(FlowState.MANUAL_INTERVENTION)
            return False

        success = False
        try:
            success = await self._step_loop(job, drawer)
        finally:
            self._set_state(FlowState.SUCCESS if success else FlowState.MANUAL_INTERVENTION)
            await self.close_application_modal()
        return success

    async def _step_loop(self, job: JobRecord, drawer: Any) -> bool:
        """Answer one chatbot question per step until the confirmation shows."""
        for step in range(1, self.config.max_form_steps + 1):
            self._set_state(FlowState.FILLING)
            await self.fill_application_step(drawer)
            await self.driver.wait(self.config.step_delay_ms)

            self._set_state(FlowState.ADVANCING)
            save = await self.driver.get_visible(self._selector("modal_next"))
            if save is None or not await self.driver.is_enabled(save):
                logger.warning(f"Question {step} for {job.title} needs manual input")
                return False
            await self.driver.click(save)
            await self.driver.wait(self.config.post_click_delay_ms)

            if await self._wait_for_success():
                logger.info(f"Applied on Naukri: {job.title} at {job.company}")
                return True

        logger.warning(f"Step limit ({self.config.max_form_steps}) reached for {job.title}")
        return False
