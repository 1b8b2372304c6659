"""
LinkedIn adapter: Easy Apply from the jobs search page.

Search pages live under www.linkedin.com/jobs/ (search, collections);
detail pages under /jobs/view/<id>. The Easy Apply flow runs in a modal with
Next / Review / Submit buttons.
"""

import logging
import re
from typing import Any, Optional

from core.models import PlatformType

from .base import PlatformAdapter

logger = logging.getLogger(__name__)

JOB_ID_PATTERN = re.compile(r"/jobs/view/(\d+)")


class LinkedInAdapter(PlatformAdapter):
    """LinkedIn Easy Apply adapter."""

    PLATFORM = PlatformType.LINKEDIN
    HOST = "www.linkedin.com"

    SELECTORS = {
        # Search results
        "job_card": [
            ".jobs-search-results__list-item",
            ".scaffold-layout__list-item",
            "li[data-occludable-job-id]",
            ".job-card-container",
        ],
        "card_title": [
            "a.job-card-list__title",
            "a.job-card-container__link",
            ".job-card-list__title--link",
        ],
        "card_company": [
            ".job-card-container__primary-description",
            ".artdeco-entity-lockup__subtitle",
            ".job-card-container__company-name",
        ],
        "card_location": [
            ".job-card-container__metadata-item",
            ".artdeco-entity-lockup__caption",
        ],
        "card_footer_item": [".job-card-container__footer-item", "li"],
        "next_page": [
            "button.jobs-search-pagination__button--next",
            "button[aria-label='View next page']",
        ],

        # Detail pane / page
        "detail_title": [
            ".job-details-jobs-unified-top-card__job-title",
            ".jobs-unified-top-card__job-title",
            "[data-test-id='job-title']",
        ],
        "detail_company": [
            ".job-details-jobs-unified-top-card__company-name",
            ".jobs-unified-top-card__company-name",
        ],
        "detail_location": [
            ".job-details-jobs-unified-top-card__primary-description-container",
            ".job-details-jobs-unified-top-card__bullet",
        ],
        "detail_description": [
            ".jobs-description__content",
            "[data-test-id='job-description']",
        ],
        "fast_apply_button": [
            ".jobs-apply-button--top-card button",
            "button.jobs-apply-button",
        ],

        # Easy Apply modal
        "modal": [".jobs-easy-apply-modal", "div[data-test-modal][role='dialog']"],
        "modal_next": ["button[aria-label='Continue to next step']"],
        "modal_review": ["button[aria-label='Review your application']"],
        "modal_submit": ["button[aria-label='Submit application']"],
        "modal_success": [
            "[data-test-modal-id='post-apply-modal']",
            ".artdeco-inline-feedback--success",
            "h3.jpac-modal-header",
        ],
        "modal_close": ["button[data-test-modal-close-btn]", "button.artdeco-modal__dismiss"],
        "discard_button": ["button[data-test-dialog-secondary-btn]"],
    }

    QUESTION_CONTAINER_SELECTORS = [
        ".fb-dash-form-element",
        "[data-test-form-element]",
        '[data-live-test-single-line-text-form-component=""]',
    ]
    RESULTS_CONTAINER = ".jobs-search-results-list"
    REQUIRE_FAST_APPLY = True

    def is_search_results_page(self) -> bool:
        host, path = self._url_parts()
        return host == self.HOST and "/jobs/" in path and "/view/" not in path

    def is_job_detail_page(self) -> bool:
        host, path = self._url_parts()
        return host == self.HOST and "/jobs/view/" in path

    def extract_job_id_from_url(self, url: str) -> Optional[str]:
        match = JOB_ID_PATTERN.search(url or "")
        return match.group(1) if match else None

    async def extract_job_id_from_card(self, card: Any, url: str) -> Optional[str]:
        job_id = self.extract_job_id_from_url(url)
        if job_id:
            return job_id
        for attribute in ("data-occludable-job-id", "data-job-id"):
            value = await self.driver.attribute(card, attribute)
            if value:
                return value
        return None

    async def _footer_texts(self, card: Any):
        items = await self.driver.query_all(self._selector("card_footer_item"), root=card)
        return [await self.driver.text(item) for item in items]

    async def has_easy_apply(self, card: Any) -> bool:
        return any("Easy Apply" in text for text in await self._footer_texts(card))

    async def has_already_applied(self, card: Any) -> bool:
        return any("Applied" in text or "Viewed" in text for text in await self._footer_texts(card))

    async def before_submit(self, modal: Any):
        """Untick "follow company" so submitting does not subscribe the user."""
        checkbox = await self.driver.query("#follow-company-checkbox", root=modal)
        if checkbox is not None and await self.driver.is_checked(checkbox):
            await self.driver.uncheck(checkbox)
            await self.driver.wait(self.config.close_delay_ms)
