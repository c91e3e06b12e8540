"""Webhook notifier: POSTs each notification as JSON via aiohttp."""

import asyncio
import sys
from typing import Optional

import aiohttp


def _log(msg: str):
    print(msg, file=sys.stderr)


class WebhookNotifier:
    """NotificationPort that hands messages to a mail/chat relay webhook."""

    def __init__(self, url: str, token: Optional[str] = None, max_retries: int = 3, timeout: float = 10.0):
        self.url = url
        self.token = token
        self.max_retries = max_retries
        self.timeout = timeout

    @property
    def is_configured(self) -> bool:
        return bool(self.url)

    async def send(self, to: str, subject: str, body: str) -> bool:
        if not self.is_configured:
            _log("[Webhook] not configured, message dropped")
            return False

        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        payload = {"to": to, "subject": subject, "body": body}

        for attempt in range(self.max_retries):
            try:
                timeout = aiohttp.ClientTimeout(total=self.timeout)
                async with aiohttp.ClientSession(timeout=timeout) as session:
                    async with session.post(self.url, json=payload, headers=headers) as resp:
                        if resp.status == 429 or resp.status >= 500:
                            if attempt < self.max_retries - 1:
                                await asyncio.sleep(min(2 ** attempt, 30))
                                continue
                        if resp.status >= 400:
                            text = await resp.text()
                            _log(f"[Webhook] HTTP {resp.status} for {to}: {text[:200]}")
                            return False
                        return True
            except Exception as e:
                if attempt == self.max_retries - 1:
                    _log(f"[Webhook] send to {to} failed: {e}")
                    return False
                await asyncio.sleep(min(2 ** attempt, 30))

        return False
