"""
Pytest fixtures and configuration for the bulk applier test suite.
"""

import pytest
import os
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

# Add project root (and the fake page helpers) to path
import sys
sys.path.insert(0, str(Path(__file__).parent.parent))
sys.path.insert(0, str(Path(__file__).parent / "utils"))

from adapters.base import AdapterConfig
from core.config import Settings
from core.dom import PageDriver
from core.profile import UserProfile


# === Test Data Fixtures ===

@pytest.fixture
def profile_data():
    """Profile in the stored (camelCase) format."""
    return {
        "personalInfo": {
            "firstName": "John",
            "lastName": "Doe",
            "email": "john.doe@email.com",
            "phone": "555-123-4567",
            "address": "Austin, TX",
        },
        "skills": [
            {"skill": "Java", "experience": "3 years"},
            {"skill": "Python", "experience": "5 years"},
            {"skill": "Other", "experience": "1"},
        ],
        "additionalInfo": {
            "usCitizen": "no",
            "sponsorship": "No",
            "authorized": True,
            "expectedSalary": {"amount": "120000", "currency": "USD"},
            "noticePeriod": "30",
            "highestDegree": "Bachelor's Degree",
        },
    }


@pytest.fixture
def user_profile(profile_data):
    return UserProfile.from_dict(profile_data)


@pytest.fixture
def fast_settings():
    """Settings without pacing delays."""
    return Settings(
        daily_limit=10,
        hourly_limit=30,
        delay_between_applications=0,
        max_throttle_wait_ms=0,
        skip_applied_jobs=True,
        skip_non_easy_apply=True,
        enabled_platforms=["linkedin", "indeed", "naukri"],
    )


@pytest.fixture
def instant_config():
    return AdapterConfig.instant()


@pytest.fixture
def make_driver():
    """Wrap a fake page in a PageDriver with short timeouts."""
    def factory(page):
        return PageDriver(page, default_timeout_ms=100)
    return factory


@pytest.fixture
def mock_channel():
    """Message channel that allows everything and records sends."""
    from core.messaging import ChannelResponse, MessageType

    async def send(message_type, data=None):
        if message_type == MessageType.CHECK_RATE_LIMIT:
            return ChannelResponse.ok({"allowed": True, "daily_applications": 0, "daily_limit": 10})
        return ChannelResponse.ok()

    channel = MagicMock()
    channel.send = AsyncMock(side_effect=send)
    channel.close = AsyncMock()
    return channel


# === Test Environment Setup ===

@pytest.fixture(autouse=True)
def setup_test_env(tmp_path):
    """Keep log files and state out of the working tree."""
    os.environ.setdefault("TESTING", "true")
    os.environ["LOG_DIR"] = str(tmp_path / "logs")
    yield


# === Markers ===

def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "adapters: Platform adapter tests")
    config.addinivalue_line("markers", "resilience: Failure mode tests")
