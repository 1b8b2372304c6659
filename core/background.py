"""
Background service: rate limits, application history, settings and profile.

Handles the messages sent by the job queue over a MessageChannel, persisting
its records in a KeyValueStore. Records are stored with camelCase keys so
exported data stays compatible with the browser-extension format.
"""

import asyncio
import json
import logging
import uuid
from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from .config import Settings
from .messaging import ChannelResponse, MessageType

logger = logging.getLogger(__name__)

MAX_HISTORY_RECORDS = 1000


class StorageKeys:
    USER_PROFILE = "user_profile"
    APPLICATION_HISTORY = "application_history"
    SETTINGS = "settings"
    STATS = "stats"
    SESSION = "session"


# ============== Stores ==============

class KeyValueStore(ABC):
    """get/set of named JSON-compatible records."""

    @abstractmethod
    async def get(self, key: str, default: Any = None) -> Any:
        ...

    @abstractmethod
    async def set(self, key: str, value: Any):
        ...


class MemoryStore(KeyValueStore):
    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, Any] = dict(initial or {})

    async def get(self, key, default=None):
        return self._data.get(key, default)

    async def set(self, key, value):
        self._data[key] = value


class JsonFileStore(KeyValueStore):
    """All records in one JSON file, rewritten on every set."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._lock = asyncio.Lock()
        self._data: Optional[Dict[str, Any]] = None

    def _load(self) -> Dict[str, Any]:
        if self._data is None:
            if self.path.exists():
                try:
                    self._data = json.loads(self.path.read_text() or "{}")
                except json.JSONDecodeError as e:
                    logger.error(f"Corrupt state file {self.path}: {e}; starting empty")
                    self._data = {}
            else:
                self._data = {}
        return self._data

    async def get(self, key, default=None):
        async with self._lock:
            return self._load().get(key, default)

    async def set(self, key, value):
        async with self._lock:
            data = self._load()
            data[key] = value
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self.path.with_suffix(self.path.suffix + ".tmp")
            tmp.write_text(json.dumps(data, indent=2, default=str))
            tmp.replace(self.path)


# ============== Service ==============

def _default_stats(today: date) -> Dict[str, Any]:
    return {
        "totalApplications": 0,
        "successfulApplications": 0,
        "failedApplications": 0,
        "streakDays": 0,
        "lastActiveDate": today.isoformat(),
        "platformStats": {},
    }


def _default_session(today: date) -> Dict[str, Any]:
    return {
        "applicationsToday": 0,
        "lastResetDate": today.isoformat(),
        "currentSession": {
            "startTime": None,
            "applicationsThisSession": 0,
        },
    }


class BackgroundService:
    """
    Message handler backing the job queue's external collaborators.

    Usage:
        service = BackgroundService(JsonFileStore("state.json"))
        channel = LocalMessageChannel(service)
        response = await channel.send(MessageType.CHECK_RATE_LIMIT)
    """

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        default_settings: Optional[Settings] = None,
        today: Optional[Callable[[], date]] = None,
        now: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store or MemoryStore()
        self.default_settings = default_settings or Settings()
        self._today = today or date.today
        self._now = now or datetime.now
        self._handlers = {
            MessageType.CHECK_RATE_LIMIT: self._handle_check_rate_limit,
            MessageType.APPLICATION_COMPLETED: self._handle_application_completed,
            MessageType.GET_SETTINGS: self._handle_get_settings,
            MessageType.SAVE_SETTINGS: self._handle_save_settings,
            MessageType.GET_USER_PROFILE: self._handle_get_user_profile,
            MessageType.SAVE_USER_PROFILE: self._handle_save_user_profile,
            MessageType.GET_STATS: self._handle_get_stats,
            MessageType.GET_APPLICATION_HISTORY: self._handle_get_history,
            MessageType.EXPORT_DATA: self._handle_export,
            MessageType.IMPORT_DATA: self._handle_import,
        }

    async def handle(self, message_type: MessageType, data: Dict[str, Any]) -> ChannelResponse:
        handler = self._handlers.get(message_type)
        if handler is None:
            return ChannelResponse.fail(f"Unknown message type: {message_type}")
        try:
            return await handler(data or {})
        except Exception as e:
            logger.error(f"Error handling {message_type.value}: {e}")
            return ChannelResponse.fail(str(e))

    # ========================================================================
    # Records
    # ========================================================================

    async def get_settings(self) -> Settings:
        stored = await self.store.get(StorageKeys.SETTINGS)
        if not stored:
            return self.default_settings
        return self.default_settings.merged(stored)

    async def _get_stats(self) -> Dict[str, Any]:
        return await self.store.get(StorageKeys.STATS) or _default_stats(self._today())

    async def _get_session(self) -> Dict[str, Any]:
        return await self.store.get(StorageKeys.SESSION) or _default_session(self._today())

    async def _reset_daily_session_if_needed(self) -> Dict[str, Any]:
        session = await self._get_session()
        today = self._today()
        if session.get("lastResetDate") == today.isoformat():
            return session

        session = _default_session(today)
        await self.store.set(StorageKeys.SESSION, session)

        stats = await self._get_stats()
        last_active = stats.get("lastActiveDate")
        yesterday = (today - timedelta(days=1)).isoformat()
        if last_active == yesterday:
            stats["streakDays"] = stats.get("streakDays", 0) + 1
        elif last_active != today.isoformat():
            stats["streakDays"] = 0
        await self.store.set(StorageKeys.STATS, stats)

        logger.info("Daily session reset completed")
        return session

    async def check_rate_limit(self) -> Dict[str, Any]:
        settings = await self.get_settings()
        session = await self._reset_daily_session_if_needed()

        daily = session["applicationsToday"]
        this_session = session["currentSession"]["applicationsThisSession"]
        return {
            "allowed": daily < settings.daily_limit and this_session < settings.hourly_limit,
            "daily_applications": daily,
            "daily_limit": settings.daily_limit,
            "session_applications": this_session,
            "hourly_limit": settings.hourly_limit,
        }

    async def record_application(self, job_data: Dict[str, Any], status: str, error: Optional[str] = None):
        platform = job_data.get("platform") or "unknown"
        record = {
            "id": uuid.uuid4().hex,
            "appliedAt": self._now().isoformat(),
            "jobData": job_data,
            "status": status,
            "error": error,
            "platform": platform,
        }
        history: List[Dict[str, Any]] = await self.store.get(StorageKeys.APPLICATION_HISTORY) or []
        history.insert(0, record)
        await self.store.set(StorageKeys.APPLICATION_HISTORY, history[:MAX_HISTORY_RECORDS])

        session = await self._reset_daily_session_if_needed()

        stats = await self._get_stats()
        success = status == "success"
        stats["totalApplications"] += 1
        if success:
            stats["successfulApplications"] += 1
        else:
            stats["failedApplications"] += 1
        platform_stats = stats.setdefault("platformStats", {}).setdefault(platform, {"applied": 0, "success": 0})
        platform_stats["applied"] += 1
        platform_stats["success"] += 1 if success else 0
        stats["lastActiveDate"] = self._today().isoformat()
        await self.store.set(StorageKeys.STATS, stats)

        session["applicationsToday"] += 1
        current = session["currentSession"]
        current["applicationsThisSession"] += 1
        if not current.get("startTime"):
            current["startTime"] = self._now().isoformat()
        await self.store.set(StorageKeys.SESSION, session)

        logger.info(f"Application recorded: {job_data.get('title')} -> {status}")
        return record

    # ========================================================================
    # Handlers
    # ========================================================================

    async def _handle_check_rate_limit(self, data):
        return ChannelResponse.ok(await self.check_rate_limit())

    async def _handle_application_completed(self, data):
        job_data = data.get("job_data") or data.get("jobData") or {}
        status = data.get("status")
        if status not in ("success", "failed"):
            return ChannelResponse.fail(f"Invalid status: {status!r}")
        record = await self.record_application(job_data, status, data.get("error"))
        return ChannelResponse.ok({"id": record["id"]})

    async def _handle_get_settings(self, data):
        return ChannelResponse.ok((await self.get_settings()).to_dict())

    async def _handle_save_settings(self, data):
        settings = (await self.get_settings()).merged(data)
        await self.store.set(StorageKeys.SETTINGS, settings.to_dict())
        return ChannelResponse.ok(settings.to_dict())

    async def _handle_get_user_profile(self, data):
        return ChannelResponse.ok(await self.store.get(StorageKeys.USER_PROFILE) or {})

    async def _handle_save_user_profile(self, data):
        await self.store.set(StorageKeys.USER_PROFILE, data)
        return ChannelResponse.ok()

    async def _handle_get_stats(self, data):
        stats = await self._get_stats()
        session = await self._get_session()
        return ChannelResponse.ok({**stats, "session": session})

    async def _handle_get_history(self, data):
        history = await self.store.get(StorageKeys.APPLICATION_HISTORY) or []
        limit = data.get("limit")
        if limit:
            history = history[:int(limit)]
        return ChannelResponse.ok({"history": history})

    async def _handle_export(self, data):
        return ChannelResponse.ok({
            "userProfile": await self.store.get(StorageKeys.USER_PROFILE) or {},
            "applicationHistory": await self.store.get(StorageKeys.APPLICATION_HISTORY) or [],
            "settings": (await self.get_settings()).to_dict(),
            "stats": await self._get_stats(),
            "exportedAt": self._now().isoformat(),
        })

    async def _handle_import(self, data):
        if data.get("userProfile"):
            await self.store.set(StorageKeys.USER_PROFILE, data["userProfile"])
        if data.get("applicationHistory"):
            await self.store.set(StorageKeys.APPLICATION_HISTORY, data["applicationHistory"][:MAX_HISTORY_RECORDS])
        if data.get("settings"):
            merged = self.default_settings.merged(data["settings"])
            await self.store.set(StorageKeys.SETTINGS, merged.to_dict())
        if data.get("stats"):
            await self.store.set(StorageKeys.STATS, data["stats"])
        return ChannelResponse.ok()
