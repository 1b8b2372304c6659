"""
Core components for bulk job application automation.

Modules:
- models: Job records, counters and progress events
- config: Runtime settings (env, YAML, background-service overrides)
- dom: Playwright page helpers used by adapters and the form filler
- form_filler: Answers screening questions from the user profile
- rate_limiter: Local hourly token bucket
- messaging: Request/response channel to the background service
- background: Settings, history and daily-limit bookkeeping
- job_queue: Discovery, filtering and the processing state machine

job_queue depends on the adapters package; import it as core.job_queue.
"""

from .config import RadioFallback, Settings, load_settings
from .exceptions import JobApplierError
from .models import (
    JobProcessedEvent,
    JobRecord,
    JobStatus,
    PlatformType,
    ProcessingState,
    ProgressEvent,
    QueueStats,
    RunCompleteEvent,
)
from .profile import UserProfile, load_profile
from .rate_limiter import RateLimiter

__all__ = [
    "RadioFallback",
    "Settings",
    "load_settings",
    "JobApplierError",
    "JobProcessedEvent",
    "JobRecord",
    "JobStatus",
    "PlatformType",
    "ProcessingState",
    "ProgressEvent",
    "QueueStats",
    "RunCompleteEvent",
    "UserProfile",
    "load_profile",
    "RateLimiter",
]
