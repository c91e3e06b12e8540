"""Notifier that only logs, used when no webhook is configured."""

import sys
from typing import List, Tuple


def _log(msg: str):
    print(msg, file=sys.stderr)


class LogNotifier:
    """NotificationPort that writes each message to stderr and keeps a copy."""

    def __init__(self):
        self.sent: List[Tuple[str, str, str]] = []

    async def send(self, to: str, subject: str, body: str) -> bool:
        self.sent.append((to, subject, body))
        _log(f"[Notify] to={to} subject={subject!r}")
        return True
