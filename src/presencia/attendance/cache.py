from __future__ import annotations

import threading
import time
from typing import Callable, Iterable, Sequence

from ..core.constants import DEFAULT_SUMMARY_CACHE_TTL_SECONDS
from .model import AttendanceSummary
from .repository import AttendanceRepository


class SummaryCache:
    """Read-through cache of a student's subject summaries.

    The store stays the source of truth: entries are dropped after every
    committed write that touches the student, replaced wholesale by stream
    snapshots, and expire after `ttl_seconds` so writes made by another
    process are picked up. Nothing is ever patched in place.

    Each uid carries a generation that `invalidate` and `apply_snapshot` bump.
    A load started before a bump is returned to its caller but never stored.
    """

    def __init__(
        self,
        attendance: AttendanceRepository,
        *,
        ttl_seconds: float = DEFAULT_SUMMARY_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._attendance = attendance
        self._ttl = float(ttl_seconds)
        self._clock = clock
        self._entries: dict[str, tuple[float, tuple[AttendanceSummary, ...]]] = {}
        self._generations: dict[str, int] = {}
        self._lock = threading.Lock()

    def _fresh(self, student_uid: str):
        entry = self._entries.get(student_uid)
        if entry is None:
            return None
        stored_at, summaries = entry
        if self._ttl <= 0 or self._clock() - stored_at >= self._ttl:
            del self._entries[student_uid]
            return None
        return summaries

    def get(self, student_uid: str) -> tuple[AttendanceSummary, ...]:
        with self._lock:
            cached = self._fresh(student_uid)
            if cached is not None:
                return cached
            generation = self._generations.get(student_uid, 0)

        loaded = tuple(self._attendance.list_summaries_for_student(student_uid))
        with self._lock:
            if self._generations.get(student_uid, 0) == generation:
                self._entries[student_uid] = (self._clock(), loaded)
        return loaded

    def apply_snapshot(self, student_uid: str, summaries: Sequence[AttendanceSummary]) -> None:
        with self._lock:
            self._generations[student_uid] = self._generations.get(student_uid, 0) + 1
            self._entries[student_uid] = (self._clock(), tuple(summaries))

    def invalidate(self, student_uids: Iterable[str]) -> None:
        with self._lock:
            for uid in student_uids:
                self._generations[uid] = self._generations.get(uid, 0) + 1
                self._entries.pop(uid, None)

    def __contains__(self, student_uid: str) -> bool:
        with self._lock:
            return self._fresh(student_uid) is not None
