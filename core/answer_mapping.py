"""
Static question-label -> profile-field table.

The bundled table lives in core/data/question_mapping.yaml and is loaded once
per process. Lookup is first-match in table order.
"""

import logging
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

logger = logging.getLogger(__name__)

DEFAULT_MAPPING_PATH = Path(__file__).parent / "data" / "question_mapping.yaml"


@dataclass(frozen=True)
class MappingEntry:
    key: str
    patterns: tuple
    path: str

    def matches(self, label: str) -> bool:
        return any(pattern in label for pattern in self.patterns)


class AnswerMapping:
    """Ordered, read-only mapping table."""

    def __init__(self, entries: List[MappingEntry]):
        self._entries = tuple(entries)

    @classmethod
    def from_dict(cls, data: Dict[str, Dict[str, Any]]) -> "AnswerMapping":
        entries = []
        for key, entry in data.items():
            patterns = tuple(str(p).lower() for p in entry.get("patterns") or [])
            path = entry.get("path")
            if not patterns or not path:
                logger.warning(f"Skipping incomplete mapping entry: {key}")
                continue
            entries.append(MappingEntry(key=key, patterns=patterns, path=path))
        return cls(entries)

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "AnswerMapping":
        with open(path) as f:
            return cls.from_dict(yaml.safe_load(f) or {})

    @property
    def entries(self) -> tuple:
        return self._entries

    def lookup(self, label: str) -> Optional[MappingEntry]:
        """First entry with a pattern contained in the label."""
        text = " ".join(label.lower().split())
        for entry in self._entries:
            if entry.matches(text):
                return entry
        return None

    def __len__(self):
        return len(self._entries)


@lru_cache(maxsize=1)
def get_default_mapping() -> AnswerMapping:
    mapping = AnswerMapping.from_yaml(DEFAULT_MAPPING_PATH)
    logger.debug(f"Loaded {len(mapping)} question mappings")
    return mapping
