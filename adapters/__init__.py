"""
Job Platform Adapters
Unified interface for discovering and applying to jobs on job boards.
Supports: LinkedIn (Easy Apply), Indeed (Indeed Apply), Naukri.
"""

from .base import (
    PlatformAdapter,
    AdapterConfig,
    FlowState,
    ScanResult,
)
from .linkedin import LinkedInAdapter
from .indeed import IndeedAdapter
from .naukri import NaukriAdapter
from .factory import (
    ADAPTERS,
    PLATFORM_PATTERNS,
    create_adapter,
    detect_platform,
    get_supported_platforms,
    is_platform_supported,
)

__all__ = [
    "PlatformAdapter",
    "AdapterConfig",
    "FlowState",
    "ScanResult",
    "LinkedInAdapter",
    "IndeedAdapter",
    "NaukriAdapter",
    "ADAPTERS",
    "PLATFORM_PATTERNS",
    "create_adapter",
    "detect_platform",
    "get_supported_platforms",
    "is_platform_supported",
]
