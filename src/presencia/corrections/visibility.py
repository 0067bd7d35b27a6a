from __future__ import annotations

from datetime import datetime, timedelta
from typing import Iterable

from ..core.constants import CORRECTION_VISIBILITY_DAYS
from .model import CorrectionRequest

VISIBILITY_WINDOW = timedelta(days=CORRECTION_VISIBILITY_DAYS)


def is_visible_to_student(correction: CorrectionRequest, now: datetime) -> bool:
    return now - correction.pivot_date < VISIBILITY_WINDOW


def visible_for_student(corrections: Iterable[CorrectionRequest], now: datetime) -> list[CorrectionRequest]:
    """Corrections still inside their window, most recently touched first.

    Hidden corrections are not deleted; staff listings still include them.
    """

    visible = [c for c in corrections if is_visible_to_student(c, now)]
    visible.sort(key=lambda c: c.pivot_date, reverse=True)
    return visible
