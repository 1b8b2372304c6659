"""
Request/response channel to the background (rate limit, history, settings)
collaborator.

Every send resolves to a ChannelResponse. Transport failures are converted
into `success=False` responses so callers can treat them as "not allowed" or
"not recorded" without crashing.
"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, Union

import aiohttp

logger = logging.getLogger(__name__)


class MessageType(str, Enum):
    CHECK_RATE_LIMIT = "check_rate_limit"
    APPLICATION_COMPLETED = "application_completed"
    GET_SETTINGS = "get_settings"
    SAVE_SETTINGS = "save_settings"
    GET_USER_PROFILE = "get_user_profile"
    SAVE_USER_PROFILE = "save_user_profile"
    GET_STATS = "get_stats"
    GET_APPLICATION_HISTORY = "get_application_history"
    EXPORT_DATA = "export_data"
    IMPORT_DATA = "import_data"


@dataclass
class ChannelResponse:
    success: bool
    data: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None

    @classmethod
    def ok(cls, data: Optional[Dict[str, Any]] = None) -> "ChannelResponse":
        return cls(success=True, data=data or {})

    @classmethod
    def fail(cls, error: str) -> "ChannelResponse":
        return cls(success=False, error=error)

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "ChannelResponse":
        data = payload.get("data")
        return cls(
            success=bool(payload.get("success")),
            data=data if isinstance(data, dict) else {"value": data} if data is not None else {},
            error=payload.get("error"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"success": self.success, "data": self.data, "error": self.error}


class MessageChannel(ABC):
    """Async request/response channel keyed by message type."""

    @abstractmethod
    async def send(
        self,
        message_type: Union[MessageType, str],
        data: Optional[Dict[str, Any]] = None,
    ) -> ChannelResponse:
        """Send a message; never raises for transport failures."""

    async def close(self):
        pass


Handler = Callable[[MessageType, Dict[str, Any]], Awaitable[ChannelResponse]]


class LocalMessageChannel(MessageChannel):
    """In-process channel dispatching to a handler such as BackgroundService.handle."""

    def __init__(self, handler: Union[Handler, Any]):
        self._handler = handler.handle if hasattr(handler, "handle") else handler

    async def send(self, message_type, data=None) -> ChannelResponse:
        try:
            message_type = MessageType(message_type)
        except ValueError:
            return ChannelResponse.fail(f"Unknown message type: {message_type}")
        try:
            return await self._handler(message_type, data or {})
        except Exception as e:
            logger.error(f"Message {message_type.value} failed: {e}")
            return ChannelResponse.fail(str(e))


class HttpMessageChannel(MessageChannel):
    """
    Channel to a remote background service.

    POSTs {"type": ..., "data": ...} to <base_url>/messages and expects a
    {"success", "data", "error"} JSON body back.
    """

    def __init__(self, base_url: str, timeout: float = 10.0, headers: Optional[Dict[str, str]] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self.headers = headers or {}
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout, headers=self.headers)
        return self._session

    async def send(self, message_type, data=None) -> ChannelResponse:
        type_value = message_type.value if isinstance(message_type, MessageType) else str(message_type)
        payload = {"type": type_value, "data": data or {}}
        try:
            session = await self._get_session()
            async with session.post(f"{self.base_url}/messages", json=payload) as resp:
                text = await resp.text()
                if not 200 <= resp.status < 300:
                    logger.warning(f"Message {type_value} rejected ({resp.status}): {text[:200]}")
                    return ChannelResponse.fail(f"HTTP {resp.status}")
                body = json.loads(text) if text else {}
        except json.JSONDecodeError as e:
            logger.warning(f"Message {type_value}: invalid JSON response: {e}")
            return ChannelResponse.fail("Invalid JSON response")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(f"Message {type_value} transport error: {e}")
            return ChannelResponse.fail(f"Transport error: {e}")

        if not isinstance(body, dict):
            return ChannelResponse.fail("Malformed response")
        return ChannelResponse.from_dict(body)

    async def close(self):
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None
