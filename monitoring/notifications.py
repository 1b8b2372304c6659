#!/usr/bin/env python3
"""
Notifications: Slack/Discord webhooks for application outcomes and run summaries.

Design goals:
- Zero-config by default (no notifications if no webhook is set).
- Non-blocking (network calls are best-effort, failures only logged).
- Safety: payloads carry job title, company and link, nothing from the profile.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, List, Optional

import aiohttp

from core.models import JobProcessedEvent, RunCompleteEvent

logger = logging.getLogger(__name__)


@dataclass
class NotificationConfig:
    slack_webhook_url: str = os.getenv("SLACK_WEBHOOK_URL", "")
    discord_webhook_url: str = os.getenv("DISCORD_WEBHOOK_URL", "")
    notify_failures_only: bool = os.getenv("NOTIFY_FAILURES_ONLY", "false").lower() == "true"
    timeout: float = 12.0


class NotificationManager:
    def __init__(self, config: Optional[NotificationConfig] = None):
        self.config = config or NotificationConfig()
        self._unsubscribers: List[Callable[[], None]] = []

    def enabled(self) -> bool:
        return bool(self.config.slack_webhook_url or self.config.discord_webhook_url)

    async def _post_json(self, url: str, payload: dict) -> bool:
        if not url:
            return False
        try:
            timeout = aiohttp.ClientTimeout(total=self.config.timeout)
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(url, json=payload) as resp:
                    if 200 <= resp.status < 300:
                        return True
                    text = await resp.text()
                    logger.warning(f"Webhook failed ({resp.status}): {text[:200]}")
                    return False
        except Exception as e:
            logger.warning(f"Webhook error: {e}")
            return False

    async def _broadcast(self, text: str) -> bool:
        slack = self.config.slack_webhook_url
        discord = self.config.discord_webhook_url
        results = await asyncio.gather(
            self._post_json(slack, {"text": text}) if slack else asyncio.sleep(0, result=False),
            self._post_json(discord, {"content": text}) if discord else asyncio.sleep(0, result=False),
            return_exceptions=True,
        )
        return any(result is True for result in results)

    async def notify_application(self, event: JobProcessedEvent) -> bool:
        """Send one application outcome to the configured webhooks."""
        if event.success and self.config.notify_failures_only:
            return False

        job = event.job
        status = "applied" if event.success else "failed"
        line = f"[{job.platform.value}] {status}: {job.title} @ {job.company or '(unknown)'}"
        if event.error:
            line += f" ({event.error})"

        details = {
            "status": status,
            "platform": job.platform.value,
            "job_title": job.title,
            "company": job.company,
            "job_url": job.url,
            "error": event.error,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        logger.info(f"Notification event: {json.dumps(details, ensure_ascii=True)[:800]}")

        return await self._broadcast(f"{line}\n{job.url}".strip())

    async def notify_run_complete(self, event: RunCompleteEvent) -> bool:
        """Send the end-of-run summary."""
        stats = event.stats
        text = (
            f"Run finished ({event.reason}): {stats.successful} applied, "
            f"{stats.failed} failed, {stats.skipped} skipped of {stats.discovered} discovered"
        )
        logger.info(text)
        return await self._broadcast(text)

    def attach(self, queue) -> "NotificationManager":
        """Subscribe to a JobQueue's job-processed and run-complete hooks."""
        if not self.enabled():
            logger.debug("No webhooks configured, notifications disabled")
            return self
        self._unsubscribers.append(queue.on_job_processed(self.notify_application))
        self._unsubscribers.append(queue.on_complete(self.notify_run_complete))
        return self

    def detach(self):
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()
