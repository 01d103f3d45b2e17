from __future__ import annotations

import itertools
import time
from dataclasses import dataclass
from typing import Callable, List, Optional

from modelforge.core.config import get_notify_ttl_seconds
from modelforge.core.observability import now_iso


@dataclass(frozen=True)
class Notification:
    id: int
    message: str
    type: str  # success|error
    created_at: str
    expires_at: float


class Notifier:
    """
    Toast queue. Each entry auto-expires after a fixed TTL; there is no per-entry dismissal.
    """

    def __init__(self, ttl_seconds: Optional[float] = None, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl_seconds = get_notify_ttl_seconds() if ttl_seconds is None else ttl_seconds
        self._clock = clock
        self._ids = itertools.count(1)
        self._items: List[Notification] = []

    def push(self, message: str, type: str) -> Notification:
        n = Notification(
            id=next(self._ids),
            message=message,
            type=type,
            created_at=now_iso(),
            expires_at=self._clock() + self.ttl_seconds,
        )
        self._items = [*self._prune(), n]
        return n

    def success(self, message: str) -> Notification:
        return self.push(message, "success")

    def error(self, message: str) -> Notification:
        return self.push(message, "error")

    def _prune(self) -> List[Notification]:
        now = self._clock()
        return [n for n in self._items if n.expires_at > now]

    def active(self) -> List[Notification]:
        self._items = self._prune()
        return list(self._items)
