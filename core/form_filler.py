"""
Application-step form filling.

Fills the question containers of one application step from the applicant
profile. Each container is classified by the control nested inside it, its
label is matched against a skill-experience rule or the answer mapping, and
the resolved value is written with the event sequence the site expects.

Usage:
    filler = FormFiller(driver, profile)
    result = await filler.fill_questions(containers)
    if result.fallbacks:
        logger.warning("Some radio answers were guessed")
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional, Sequence

from .answer_mapping import AnswerMapping, get_default_mapping
from .config import RadioFallback, Settings
from .dom import PageDriver
from .profile import UserProfile

logger = logging.getLogger(__name__)

TEXT_INPUT_SELECTORS = [
    'input[type="text"]',
    'input[type="number"]',
    'input[type="tel"]',
    'input[type="email"]',
    'textarea',
]
RADIO_SELECTOR = 'input[type="radio"]'
SELECT_SELECTOR = 'select'
LABEL_SELECTORS = ['legend', 'label']

YEARS_OF_EXPERIENCE = re.compile(
    r"years?\s+of\s+(?:[\w.+#-]+\s+){0,3}experience|how many years|experience\s*\(?\s*in years",
    re.IGNORECASE,
)

_YES_NO = {"yes": "Yes", "no": "No"}


class FieldKind(str, Enum):
    TEXT = "text"
    RADIO = "radio"
    SELECT = "select"
    UNKNOWN = "unknown"


@dataclass
class FilledField:
    """Record of one question container."""
    label: str
    kind: FieldKind
    value: Optional[str] = None
    source: Optional[str] = None  # mapping key or "skill:<name>"
    success: bool = False
    fallback: bool = False
    error: Optional[str] = None


@dataclass
class FillResult:
    """Outcome of filling one step."""
    filled: List[FilledField] = field(default_factory=list)
    skipped: List[FilledField] = field(default_factory=list)
    failed: List[FilledField] = field(default_factory=list)
    fallbacks: List[FilledField] = field(default_factory=list)

    @property
    def filled_count(self) -> int:
        return len(self.filled)

    @property
    def total(self) -> int:
        return len(self.filled) + len(self.skipped) + len(self.failed)


def normalize_label(text: str) -> str:
    """Collapse whitespace and labels the site renders twice ("Q?Q?" -> "Q?")."""
    text = " ".join(text.split())
    half = len(text) // 2
    for candidate in (text[:half], text[:half].rstrip()):
        if candidate and text in (candidate + candidate, candidate + " " + candidate):
            return candidate
    return text


def normalize_answer(value: Any) -> Optional[str]:
    """Profile value -> form string; None for values a single field cannot hold."""
    if value is None or isinstance(value, (dict, list)):
        return None
    if isinstance(value, bool):
        return "Yes" if value else "No"
    text = str(value).strip()
    if not text:
        return None
    return _YES_NO.get(text.lower(), text)


class FormFiller:
    """Fill question containers from a user profile."""

    def __init__(
        self,
        driver: PageDriver,
        profile: UserProfile,
        mapping: Optional[AnswerMapping] = None,
        settings: Optional[Settings] = None,
    ):
        self.driver = driver
        self.profile = profile
        self.mapping = mapping or get_default_mapping()
        self.radio_fallback = settings.radio_fallback if settings else RadioFallback.FIRST_OPTION

    async def fill_questions(self, containers: Sequence[Any]) -> FillResult:
        """Fill every container; errors are recorded per field and never raised."""
        result = FillResult()
        for container in containers:
            record = FilledField(label="", kind=FieldKind.UNKNOWN)
            try:
                await self._fill_container(container, record)
            except Exception as e:
                record.error = str(e)
                logger.error(f"Failed to fill '{record.label}': {e}")

            if record.error:
                result.failed.append(record)
            elif record.success:
                result.filled.append(record)
                if record.fallback:
                    result.fallbacks.append(record)
            else:
                result.skipped.append(record)

        logger.info(
            f"Filled {len(result.filled)}/{result.total} fields "
            f"({len(result.skipped)} left for manual input, {len(result.failed)} failed)"
        )
        return result

    async def _fill_container(self, container: Any, record: FilledField):
        record.kind, control = await self._classify(container)
        if record.kind == FieldKind.UNKNOWN:
            return

        record.label = await self._extract_label(container)
        if not record.label:
            logger.debug("Question without label, skipping")
            return

        value, source = self._answer_for(record.label)
        if value is None:
            logger.debug(f"No answer for '{record.label}', leaving for manual input")
            return
        record.value, record.source = value, source

        if record.kind == FieldKind.TEXT:
            await self.driver.fill(control, value)
            record.success = True
        elif record.kind == FieldKind.RADIO:
            await self._fill_radio(container, control, record)
        elif record.kind == FieldKind.SELECT:
            await self._fill_select(control, record)

    async def _classify(self, container: Any):
        text_input = await self.driver.query(TEXT_INPUT_SELECTORS, root=container)
        if text_input:
            return FieldKind.TEXT, text_input
        radios = await self.driver.query_all(RADIO_SELECTOR, root=container)
        if radios:
            return FieldKind.RADIO, radios
        select = await self.driver.query(SELECT_SELECTOR, root=container)
        if select:
            return FieldKind.SELECT, select
        return FieldKind.UNKNOWN, None

    async def _extract_label(self, container: Any) -> str:
        for selector in LABEL_SELECTORS:
            element = await self.driver.query(selector, root=container)
            text = await self.driver.text(element)
            if text:
                return normalize_label(text)
        return ""

    def _answer_for(self, label: str):
        if YEARS_OF_EXPERIENCE.search(label):
            skill = self.profile.find_skill(label)
            if skill and skill.years is not None:
                return skill.years, f"skill:{skill.skill}"

        entry = self.mapping.lookup(label)
        if entry is None:
            return None, None
        return normalize_answer(self.profile.resolve(entry.path)), entry.key

    async def _fill_radio(self, container: Any, radios: List[Any], record: FilledField):
        wanted = record.value
        options = []
        for radio in radios:
            value = await self.driver.attribute(radio, "value") or ""
            options.append((radio, value))

        match = next((radio for radio, value in options if value == wanted), None)
        if match is None:
            match = await self._match_radio_loosely(container, options, wanted)

        if match is None:
            if self.radio_fallback == RadioFallback.LEAVE_EMPTY:
                logger.warning(f"No option '{wanted}' for '{record.label}', leaving unanswered")
                return
            match = options[0][0]
            record.fallback = True
            logger.warning(
                f"No option '{wanted}' for '{record.label}', "
                f"falling back to first option '{options[0][1]}'"
            )
            record.value = options[0][1]

        await self.driver.check(match)
        record.success = True

    async def _match_radio_loosely(self, container: Any, options, wanted: str):
        wanted_lower = wanted.lower()
        for radio, value in options:
            if value.lower() == wanted_lower:
                return radio
            radio_id = await self.driver.attribute(radio, "id")
            if radio_id:
                label = await self.driver.query(f'label[for="{radio_id}"]', root=container)
                if (await self.driver.text(label)).lower() == wanted_lower:
                    return radio
        return None

    async def _fill_select(self, select: Any, record: FilledField):
        labels = await self.driver.option_labels(select)
        if record.value not in labels:
            logger.debug(f"'{record.value}' is not an option of '{record.label}', leaving unchanged")
            return
        await self.driver.select_option(select, record.value)
        record.success = True
