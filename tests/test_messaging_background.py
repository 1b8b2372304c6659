"""
Message channel and background service tests.
"""

import asyncio
import json
from datetime import date, datetime, timedelta

import aiohttp
import pytest

from core.background import BackgroundService, JsonFileStore, MemoryStore, StorageKeys, MAX_HISTORY_RECORDS
from core.config import Settings
from core.events import EventHook
from core.messaging import ChannelResponse, HttpMessageChannel, LocalMessageChannel, MessageType


class FakeDay:
    def __init__(self, day=date(2024, 3, 4)):
        self.day = day

    def __call__(self):
        return self.day


def job_data(title="Backend Engineer", platform="linkedin"):
    return {"title": title, "company": "Acme", "platform": platform, "url": "https://example.com/1"}


@pytest.fixture
def today():
    return FakeDay()


@pytest.fixture
def service(today):
    return BackgroundService(MemoryStore(), default_settings=Settings(daily_limit=2, hourly_limit=30), today=today)


@pytest.fixture
def channel(service):
    return LocalMessageChannel(service)


# ============================================================================
# Background service over a local channel
# ============================================================================

class TestBackgroundService:
    @pytest.mark.asyncio
    async def test_rate_limit_allows_until_daily_limit(self, channel):
        response = await channel.send(MessageType.CHECK_RATE_LIMIT)
        assert response.success
        assert response.data["allowed"] is True
        assert response.data["daily_limit"] == 2

        for _ in range(2):
            await channel.send(MessageType.APPLICATION_COMPLETED, {"job_data": job_data(), "status": "success"})

        response = await channel.send(MessageType.CHECK_RATE_LIMIT)
        assert response.data["allowed"] is False
        assert response.data["daily_applications"] == 2

    @pytest.mark.asyncio
    async def test_failed_applications_count_towards_daily_quota(self, channel):
        for _ in range(2):
            await channel.send(MessageType.APPLICATION_COMPLETED, {"job_data": job_data(), "status": "failed"})
        response = await channel.send(MessageType.CHECK_RATE_LIMIT)
        assert response.data["allowed"] is False

    @pytest.mark.asyncio
    async def test_new_day_resets_counter_and_tracks_streak(self, channel, service, today):
        await channel.send(MessageType.APPLICATION_COMPLETED, {"job_data": job_data(), "status": "success"})
        await channel.send(MessageType.APPLICATION_COMPLETED, {"job_data": job_data(), "status": "success"})

        today.day = today.day + timedelta(days=1)
        response = await channel.send(MessageType.CHECK_RATE_LIMIT)
        assert response.data["allowed"] is True
        assert response.data["daily_applications"] == 0

        stats = await service.store.get(StorageKeys.STATS)
        assert stats["streakDays"] == 1

    @pytest.mark.asyncio
    async def test_history_record_and_stats(self, channel, service):
        response = await channel.send(MessageType.APPLICATION_COMPLETED, {
            "jobData": job_data(platform="indeed"),
            "status": "failed",
            "error": "Fast-apply button not found",
        })
        assert response.success
        assert response.data["id"]

        history = (await channel.send(MessageType.GET_APPLICATION_HISTORY)).data["history"]
        record = history[0]
        assert record["status"] == "failed"
        assert record["error"] == "Fast-apply button not found"
        assert record["platform"] == "indeed"
        assert record["jobData"]["title"] == "Backend Engineer"
        datetime.fromisoformat(record["appliedAt"])

        stats = (await channel.send(MessageType.GET_STATS)).data
        assert stats["totalApplications"] == 1
        assert stats["failedApplications"] == 1
        assert stats["platformStats"]["indeed"] == {"applied": 1, "success": 0}
        assert stats["session"]["applicationsToday"] == 1

    @pytest.mark.asyncio
    async def test_invalid_status_rejected(self, channel):
        response = await channel.send(MessageType.APPLICATION_COMPLETED, {"job_data": job_data(), "status": "maybe"})
        assert not response.success

    @pytest.mark.asyncio
    async def test_history_is_capped(self, service):
        history = [{"id": str(i), "status": "success"} for i in range(MAX_HISTORY_RECORDS)]
        await service.store.set(StorageKeys.APPLICATION_HISTORY, history)
        await service.record_application(job_data(), "success")

        stored = await service.store.get(StorageKeys.APPLICATION_HISTORY)
        assert len(stored) == MAX_HISTORY_RECORDS
        assert stored[0]["jobData"]["title"] == "Backend Engineer"
        assert stored[-1]["id"] == str(MAX_HISTORY_RECORDS - 2)

    @pytest.mark.asyncio
    async def test_history_limit(self, channel):
        for i in range(3):
            await channel.send(MessageType.APPLICATION_COMPLETED, {"job_data": job_data(f"Job {i}"), "status": "success"})
        response = await channel.send(MessageType.GET_APPLICATION_HISTORY, {"limit": 2})
        assert [record["jobData"]["title"] for record in response.data["history"]] == ["Job 2", "Job 1"]

    @pytest.mark.asyncio
    async def test_settings_round_trip(self, channel):
        saved = await channel.send(MessageType.SAVE_SETTINGS, {"dailyLimit": 5, "enabledPlatforms": ["naukri"]})
        assert saved.data["dailyLimit"] == 5

        loaded = await channel.send(MessageType.GET_SETTINGS)
        assert loaded.data["dailyLimit"] == 5
        assert loaded.data["enabledPlatforms"] == ["naukri"]
        assert loaded.data["hourlyLimit"] == 30

    @pytest.mark.asyncio
    async def test_profile_round_trip(self, channel, profile_data):
        await channel.send(MessageType.SAVE_USER_PROFILE, profile_data)
        response = await channel.send(MessageType.GET_USER_PROFILE)
        assert response.data["personalInfo"]["firstName"] == "John"

    @pytest.mark.asyncio
    async def test_export_and_import(self, channel, today, profile_data):
        await channel.send(MessageType.SAVE_USER_PROFILE, profile_data)
        await channel.send(MessageType.APPLICATION_COMPLETED, {"job_data": job_data(), "status": "success"})
        exported = (await channel.send(MessageType.EXPORT_DATA)).data
        assert set(exported) >= {"userProfile", "applicationHistory", "settings", "stats", "exportedAt"}

        other = LocalMessageChannel(BackgroundService(MemoryStore(), today=today))
        assert (await other.send(MessageType.IMPORT_DATA, exported)).success
        history = (await other.send(MessageType.GET_APPLICATION_HISTORY)).data["history"]
        assert len(history) == 1
        assert (await other.send(MessageType.GET_SETTINGS)).data["dailyLimit"] == 2

    @pytest.mark.asyncio
    async def test_unknown_message_type(self, channel):
        response = await channel.send("launch_rockets")
        assert not response.success
        assert "Unknown message type" in response.error

    @pytest.mark.asyncio
    async def test_handler_exception_becomes_failure(self):
        async def broken(message_type, data):
            raise RuntimeError("store unavailable")

        response = await LocalMessageChannel(broken).send(MessageType.GET_STATS)
        assert not response.success
        assert response.error == "store unavailable"


class TestJsonFileStore:
    @pytest.mark.asyncio
    async def test_persists_between_instances(self, tmp_path):
        path = tmp_path / "state" / "state.json"
        store = JsonFileStore(path)
        await store.set(StorageKeys.SETTINGS, {"dailyLimit": 4})

        reopened = JsonFileStore(path)
        assert await reopened.get(StorageKeys.SETTINGS) == {"dailyLimit": 4}
        assert json.loads(path.read_text())["settings"]["dailyLimit"] == 4

    @pytest.mark.asyncio
    async def test_corrupt_file_starts_empty(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text("{not json")
        store = JsonFileStore(path)
        assert await store.get(StorageKeys.STATS, "missing") == "missing"
        await store.set(StorageKeys.STATS, {"totalApplications": 0})
        assert json.loads(path.read_text()) == {"stats": {"totalApplications": 0}}


# ============================================================================
# HTTP channel
# ============================================================================

class FakeResponse:
    def __init__(self, status=200, body=""):
        self.status = status
        self._body = body

    async def text(self):
        return self._body

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.closed = False
        self.requests = []

    def post(self, url, json=None):
        self.requests.append((url, json))
        if self.error:
            raise self.error
        return self.response

    async def close(self):
        self.closed = True


def http_channel(session):
    channel = HttpMessageChannel("http://localhost:8765/")
    channel._session = session
    return channel


class TestHttpMessageChannel:
    @pytest.mark.asyncio
    async def test_posts_type_and_data(self):
        session = FakeSession(FakeResponse(200, json.dumps({"success": True, "data": {"allowed": True}})))
        channel = http_channel(session)

        response = await channel.send(MessageType.CHECK_RATE_LIMIT, {"x": 1})

        assert response.success
        assert response.data == {"allowed": True}
        assert session.requests == [("http://localhost:8765/messages", {"type": "check_rate_limit", "data": {"x": 1}})]

    @pytest.mark.asyncio
    async def test_non_2xx_is_failure(self):
        channel = http_channel(FakeSession(FakeResponse(503, "unavailable")))
        response = await channel.send(MessageType.GET_SETTINGS)
        assert not response.success
        assert response.error == "HTTP 503"

    @pytest.mark.asyncio
    async def test_invalid_json_is_failure(self):
        channel = http_channel(FakeSession(FakeResponse(200, "<html>")))
        response = await channel.send(MessageType.GET_SETTINGS)
        assert not response.success
        assert response.error == "Invalid JSON response"

    @pytest.mark.asyncio
    async def test_non_object_body_is_failure(self):
        channel = http_channel(FakeSession(FakeResponse(200, "[1, 2]")))
        assert not (await channel.send(MessageType.GET_SETTINGS)).success

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [aiohttp.ClientConnectionError("refused"), asyncio.TimeoutError()])
    async def test_transport_errors_are_failures(self, error):
        channel = http_channel(FakeSession(error=error))
        response = await channel.send(MessageType.APPLICATION_COMPLETED, {"status": "success"})
        assert not response.success
        assert response.error.startswith("Transport error")

    @pytest.mark.asyncio
    async def test_close(self):
        session = FakeSession()
        channel = http_channel(session)
        await channel.close()
        assert session.closed


# ============================================================================
# Event hooks
# ============================================================================

class TestEventHook:
    def test_listeners_called_in_order(self):
        hook, calls = EventHook("progress"), []
        hook.subscribe(lambda event: calls.append(("first", event)))
        hook.subscribe(lambda event: calls.append(("second", event)))
        hook.emit(1)
        assert calls == [("first", 1), ("second", 1)]

    def test_failing_listener_does_not_block_others(self):
        hook, calls = EventHook("progress"), []

        def broken(event):
            raise ValueError("boom")

        hook.subscribe(broken)
        hook.subscribe(calls.append)
        hook.emit("event")
        assert calls == ["event"]

    def test_unsubscribe(self):
        hook, calls = EventHook("progress"), []
        unsubscribe = hook.subscribe(calls.append)
        unsubscribe()
        unsubscribe()
        hook.emit(1)
        assert calls == []
        assert len(hook) == 0

    @pytest.mark.asyncio
    async def test_coroutine_listeners_are_scheduled(self):
        hook, calls = EventHook("complete"), []

        async def listener(event):
            await asyncio.sleep(0)
            calls.append(event)

        hook.subscribe(listener)
        hook.emit("done")
        assert calls == []
        await hook.drain()
        assert calls == ["done"]
