"""Attendance arithmetic over (attended, total) pairs.

All functions are pure. Counts are accumulated by summation; the overall
figure for a student is computed from summed counts, never from an average of
per-subject percentages.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Union

from ..core.constants import ATTENDANCE_THRESHOLD

NOT_AVAILABLE = "N/A"


def _meets(attended: int, total: int) -> bool:
    # Integer comparison avoids float drift at the boundary: a/t >= 3/4 <=> 4a >= 3t
    return 4 * attended >= 3 * total


def percentage(attended: int, total: int) -> Union[float, str]:
    if total <= 0:
        return NOT_AVAILABLE
    return round(100 * attended / total, 1)


def lectures_to_reach_75(attended: int, total: int) -> int:
    """Smallest x >= 0 such that (a + x) / (t + x) >= 0.75, assuming all x are attended."""

    if total <= 0 or _meets(attended, total):
        return 0
    x = 0
    while not _meets(attended + x, total + x):
        x += 1
    return x


def lectures_can_skip(attended: int, total: int) -> int:
    """Future absences tolerable while staying at or above 75%.

    The scan stops at the first count that drops below the threshold; one less
    than that is the last safe count.
    """

    if total <= 0 or not _meets(attended, total):
        return 0
    y = 0
    while _meets(attended, total + y):
        y += 1
    return max(0, y - 1)


@dataclass(frozen=True)
class AttendanceStats:
    attended: int
    total: int
    percentage: Union[float, str]
    to_reach_75: int
    can_skip: int

    @property
    def below_threshold(self) -> bool:
        return self.total > 0 and self.attended < ATTENDANCE_THRESHOLD * self.total

    def to_dict(self) -> dict:
        return {
            "attended": self.attended,
            "total": self.total,
            "percentage": self.percentage,
            "to_reach_75": self.to_reach_75,
            "can_skip": self.can_skip,
            "below_threshold": self.below_threshold,
        }


def stats(attended: int, total: int) -> AttendanceStats:
    attended = int(attended or 0)
    total = int(total or 0)
    return AttendanceStats(
        attended=attended,
        total=total,
        percentage=percentage(attended, total),
        to_reach_75=lectures_to_reach_75(attended, total),
        can_skip=lectures_can_skip(attended, total),
    )


def overall(summaries: Iterable) -> AttendanceStats:
    """Sum attended/total across subjects, then apply the same formulas."""

    attended = 0
    total = 0
    for s in summaries:
        attended += int(s.attended or 0)
        total += int(s.total or 0)
    return stats(attended, total)
