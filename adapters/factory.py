"""
Adapter factory: pick the platform adapter for a URL or host.

Dispatch is a plain substring match on the host markers below; the first
match wins.
"""

import logging
from typing import Dict, List, Optional, Type

from core.exceptions import UnsupportedPlatformError
from core.models import PlatformType

from .base import PlatformAdapter
from .indeed import IndeedAdapter
from .linkedin import LinkedInAdapter
from .naukri import NaukriAdapter

logger = logging.getLogger(__name__)

# Platform URL markers for detection, checked in order
PLATFORM_PATTERNS = {
    PlatformType.LINKEDIN: ["linkedin.com"],
    PlatformType.INDEED: ["indeed.com"],
    PlatformType.NAUKRI: ["naukri.com"],
}

# Adapters registry
ADAPTERS: Dict[PlatformType, Type[PlatformAdapter]] = {
    PlatformType.LINKEDIN: LinkedInAdapter,
    PlatformType.INDEED: IndeedAdapter,
    PlatformType.NAUKRI: NaukriAdapter,
}


def detect_platform(url_or_host: str) -> Optional[PlatformType]:
    """
    Detect which platform a URL or host belongs to.

    Args:
        url_or_host: Page URL or bare host name

    Returns:
        PlatformType, or None when no adapter exists for it
    """
    value = (url_or_host or "").lower()
    for platform, patterns in PLATFORM_PATTERNS.items():
        if any(pattern in value for pattern in patterns):
            return platform
    return None


def create_adapter(url_or_host: str, driver=None, profile=None, **kwargs) -> PlatformAdapter:
    """
    Build the adapter for a URL or host.

    Args:
        url_or_host: Page URL or host name
        driver: PageDriver for the page the adapter will operate on
        profile: UserProfile used to answer application questions
        **kwargs: config / mapping / settings passed to the adapter

    Raises:
        UnsupportedPlatformError: no adapter matches
    """
    platform = detect_platform(url_or_host)
    if platform is None:
        raise UnsupportedPlatformError(url_or_host)
    adapter_class = ADAPTERS[platform]
    logger.debug(f"Using {adapter_class.__name__} for {url_or_host}")
    return adapter_class(driver, profile=profile, **kwargs)


def is_platform_supported(url_or_host: str) -> bool:
    return detect_platform(url_or_host) is not None


def get_supported_platforms() -> List[str]:
    return [platform.value for platform in ADAPTERS]
