from __future__ import annotations

import time
from collections.abc import Callable

from tradecoin.core.models import Notice, NoticeLevel


class NoticeBoard:
    """Transient success/error messages that expire after ``ttl_seconds``."""

    def __init__(self, ttl_seconds: float = 5.0, clock: Callable[[], float] = time.time) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._notices: list[Notice] = []

    def post(self, level: NoticeLevel, message: str) -> Notice:
        now = self._clock()
        notice = Notice(level=level, message=message, created_at=now, expires_at=now + self.ttl_seconds)
        self._prune(now)
        self._notices.append(notice)
        return notice

    def active(self) -> list[Notice]:
        self._prune(self._clock())
        return list(self._notices)

    def dismiss(self, level: NoticeLevel | None = None) -> None:
        self._notices = [n for n in self._notices if level is not None and n.level != level]

    def _prune(self, now: float) -> None:
        self._notices = [n for n in self._notices if n.expires_at > now]
