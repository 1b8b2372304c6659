"""
Indeed adapter: "Easily apply" jobs from the search results.

Search pages are /jobs or /q-<query>-jobs.html on any indeed.com host;
postings are /viewjob?jk=<id>. Indeed Apply runs through Continue / Review /
Submit pages inside its own container.
"""

import logging
from typing import Any, Optional
from urllib.parse import parse_qs, urlparse

from core.models import PlatformType

from .base import PlatformAdapter

logger = logging.getLogger(__name__)


class IndeedAdapter(PlatformAdapter):
    """Indeed Apply adapter."""

    PLATFORM = PlatformType.INDEED

    # Indeed changes these frequently; keep several fallbacks.
    SELECTORS = {
        "job_card": [
            ".job_seen_beacon",
            "div[data-testid='job-card']",
            ".mosaic-provider-jobcards .slider_item",
            "li[data-resultid]",
        ],
        "card_title": [
            "h2.jobTitle a",
            "a[data-jk]",
            "[data-testid='jobTitle'] a",
        ],
        "card_company": [
            "[data-testid='company-name']",
            ".companyName",
        ],
        "card_location": [
            "[data-testid='text-location']",
            ".companyLocation",
        ],
        "card_fast_apply": [
            "[data-testid='indeedApply']",
            ".iaLabel",
            ".ialbl",
        ],
        "card_applied": [
            "[data-testid='applied-indicator']",
            ".appliedLabel",
        ],
        "next_page": ["a[data-testid='pagination-page-next']"],

        "detail_title": [
            "h1[data-testid='jobsearch-JobInfoHeader-title']",
            ".jobsearch-JobInfoHeader-title",
        ],
        "detail_company": [
            "[data-testid='inlineHeader-companyName']",
            "[data-company-name='true']",
        ],
        "detail_location": [
            "[data-testid='inlineHeader-companyLocation']",
            "[data-testid='job-location']",
        ],
        "detail_description": ["#jobDescriptionText"],
        "fast_apply_button": [
            "#indeedApplyButton",
            "button[aria-label*='Apply now']",
        ],

        "modal": ["#ia-container", ".ia-BasePage"],
        "modal_next": [
            "button[data-testid='continue-button']",
            ".ia-continueButton",
        ],
        "modal_review": ["button[data-testid='review-button']"],
        "modal_submit": [
            "button[data-testid='submit-application-button']",
            ".ia-SubmitButton",
        ],
        "modal_success": [
            ".ia-PostApply-header",
            "[data-testid='post-apply-confirmation']",
        ],
        "modal_close": [
            "button[aria-label='close']",
            "button.ia-Navigation-exitButton",
        ],
        "discard_button": ["button[data-testid='exit-modal-confirm']"],
    }

    QUESTION_CONTAINER_SELECTORS = [
        ".ia-Questions-item",
        "[data-testid^='input-q_']",
        ".ia-BasePage-component fieldset",
    ]
    REQUIRE_FAST_APPLY = True

    def _is_indeed(self) -> bool:
        host, _ = self._url_parts()
        return host == "indeed.com" or host.endswith(".indeed.com")

    def is_search_results_page(self) -> bool:
        _, path = self._url_parts()
        if not self._is_indeed() or "/viewjob" in path:
            return False
        return path.startswith("/jobs") or (path.startswith("/q-") and path.endswith("-jobs.html"))

    def is_job_detail_page(self) -> bool:
        _, path = self._url_parts()
        return self._is_indeed() and "/viewjob" in path

    def extract_job_id_from_url(self, url: str) -> Optional[str]:
        values = parse_qs(urlparse(url or "").query).get("jk")
        return values[0] if values else None

    async def extract_job_id_from_card(self, card: Any, url: str) -> Optional[str]:
        title = await self.driver.query(self._selector("card_title"), root=card)
        job_key = await self.driver.attribute(title, "data-jk")
        if job_key:
            return job_key
        return self.extract_job_id_from_url(url)
