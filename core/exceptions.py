"""
Exception hierarchy for the bulk applier.

Precondition errors signal caller misuse and always propagate. Page errors
are raised by adapters when an element they must find is missing; the queue
converts them into failed job records.
"""

from typing import Optional


class JobApplierError(Exception):
    """Base class for all applier errors."""


# ============== Precondition errors ==============

class UnsupportedPlatformError(JobApplierError):
    """No adapter is registered for the given URL or host."""

    def __init__(self, url: str):
        self.url = url
        super().__init__(f"Unsupported platform: {url}")


class PlatformDisabledError(UnsupportedPlatformError):
    """The platform is supported but turned off in settings."""

    def __init__(self, url: str, platform: str):
        self.platform = platform
        JobApplierError.__init__(self, f"Platform '{platform}' is disabled in settings ({url})")
        self.url = url


class AdapterNotInitializedError(JobApplierError):
    def __init__(self):
        super().__init__("Platform adapter not initialized")


class NotOnSearchResultsPageError(JobApplierError):
    def __init__(self, url: str = ""):
        self.url = url
        super().__init__(f"Not on a search results page: {url}" if url else "Not on a search results page")


class AlreadyProcessingError(JobApplierError):
    def __init__(self):
        super().__init__("Already processing jobs")


class EmptyQueueError(JobApplierError):
    def __init__(self):
        super().__init__("No jobs in queue")


class ProcessingNotActiveError(JobApplierError):
    def __init__(self):
        super().__init__("No processing run to resume")


# ============== Page errors ==============

class ElementNotFoundError(JobApplierError):
    """An element the adapter must interact with is absent."""

    def __init__(self, selector: str, message: Optional[str] = None):
        self.selector = selector
        super().__init__(message or f"Element not found: {selector}")


class ElementTimeoutError(ElementNotFoundError):
    """A bounded wait for an element expired."""

    def __init__(self, selector: str, timeout_ms: int):
        self.timeout_ms = timeout_ms
        super().__init__(selector, f"Element {selector} not found within {timeout_ms}ms")


# ============== Data errors ==============

class JobAlreadyProcessedError(JobApplierError):
    """A job record may change status only once."""

    def __init__(self, title: str, status: str):
        self.title = title
        self.status = status
        super().__init__(f"Job '{title}' already processed (status={status})")
