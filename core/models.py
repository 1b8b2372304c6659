#!/usr/bin/env python3
"""
Shared data models for the bulk applier.

Job records, queue counters, processing state and the notification payloads
emitted by the job queue.
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from .exceptions import JobAlreadyProcessedError


# ============== Enums ==============

class PlatformType(str, Enum):
    """Supported job platforms."""
    LINKEDIN = "linkedin"
    INDEED = "indeed"
    NAUKRI = "naukri"


class JobStatus(str, Enum):
    """Lifecycle of a queued job."""
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


class ProcessingState(str, Enum):
    """Public state of a job queue."""
    IDLE = "idle"
    DISCOVERING = "discovering"
    PROCESSING = "processing"
    PAUSED = "paused"


# ============== Job record ==============

@dataclass
class JobRecord:
    """A posting discovered on a search-results or detail page."""
    title: str
    company: str
    location: str
    url: str
    platform: PlatformType
    job_id: Optional[str] = None
    description: Optional[str] = None
    extracted_at: datetime = field(default_factory=datetime.now)
    # Element handle of the source card; only valid for the current render.
    card: Any = field(default=None, compare=False, repr=False)
    status: JobStatus = JobStatus.PENDING
    error: Optional[str] = None

    @property
    def dedup_key(self) -> Tuple[str, ...]:
        if self.job_id:
            return (self.platform.value, self.job_id)
        return (self.title, self.company)

    @property
    def is_pending(self) -> bool:
        return self.status == JobStatus.PENDING

    def matches(self, other: "JobRecord") -> bool:
        """Same posting, by id or by (title, company)."""
        if self.job_id and other.job_id and self.job_id == other.job_id:
            return True
        return self.title == other.title and self.company == other.company

    def mark_processed(self, success: bool, error: Optional[str] = None):
        if not self.is_pending:
            raise JobAlreadyProcessedError(self.title, self.status.value)
        self.status = JobStatus.SUCCESS if success else JobStatus.FAILED
        self.error = error

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary (without the element handle)."""
        return {
            "title": self.title,
            "company": self.company,
            "location": self.location,
            "url": self.url,
            "platform": self.platform.value,
            "job_id": self.job_id,
            "description": self.description,
            "extracted_at": self.extracted_at.isoformat(),
            "status": self.status.value,
            "error": self.error,
        }


# ============== Counters ==============

@dataclass
class QueueStats:
    """Counters for the current session."""
    discovered: int = 0
    queued: int = 0
    processed: int = 0
    successful: int = 0
    failed: int = 0
    skipped: int = 0

    def reset_discovery(self):
        self.discovered = 0
        self.queued = 0

    def snapshot(self) -> "QueueStats":
        return QueueStats(**asdict(self))

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


# ============== Events ==============

@dataclass
class ProgressEvent:
    """Discovery or processing progress."""
    type: str  # "discovery" | "processing"
    stats: QueueStats
    jobs_found: int = 0
    current: int = 0
    total: int = 0
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def successful(self) -> int:
        return self.stats.successful

    @property
    def failed(self) -> int:
        return self.stats.failed


@dataclass
class JobProcessedEvent:
    job: JobRecord
    success: bool
    stats: QueueStats
    error: Optional[str] = None


@dataclass
class RunCompleteEvent:
    stats: QueueStats
    reason: str = "queue_exhausted"
    timestamp: datetime = field(default_factory=datetime.now)
