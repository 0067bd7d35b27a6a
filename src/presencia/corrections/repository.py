from __future__ import annotations

from datetime import date, datetime
from typing import ContextManager, Optional, Protocol, Sequence

from ..attendance.model import LectureRecord
from ..core.enums import CorrectionStatus
from .model import CorrectionRequest, NewCorrection


class ApprovalTransaction(Protocol):
    """Reads and writes of one serializable approval; nothing is visible until it commits.

    Leaving the context with an exception rolls every step back.
    """

    def lock_correction(self, correction_id: int) -> Optional[CorrectionRequest]:
        raise NotImplementedError

    def lock_record(
        self,
        *,
        work_date: date,
        subject_id: str,
        student_uid: str,
        lecture_number: int,
    ) -> Optional[LectureRecord]:
        raise NotImplementedError

    def mark_record_present(self, record_key: str, *, notes: str) -> bool:
        """Compare-and-set present false -> true; False if the record was already present."""

        raise NotImplementedError

    def increment_attended(self, *, student_uid: str, subject_id: str) -> bool:
        raise NotImplementedError

    def set_status(
        self,
        *,
        correction_id: int,
        status: CorrectionStatus,
        decided_by: str,
        decided_at: datetime,
    ) -> bool:
        """Move a Pending correction to `status`; False if it was no longer Pending."""

        raise NotImplementedError


class CorrectionRepository(Protocol):
    def create_pending(self, correction: NewCorrection) -> Optional[int]:
        """Insert a Pending correction; None when one is already pending for the same lecture."""

        raise NotImplementedError

    def get(self, correction_id: int) -> Optional[CorrectionRequest]:
        raise NotImplementedError

    def list_for_student(self, student_uid: str) -> Sequence[CorrectionRequest]:
        raise NotImplementedError

    def list_for_subject(self, subject_id: str, *, class_id: Optional[str] = None) -> Sequence[CorrectionRequest]:
        raise NotImplementedError

    def list_all(self) -> Sequence[CorrectionRequest]:
        raise NotImplementedError

    def reject(self, *, correction_id: int, decided_by: str, decided_at: datetime) -> bool:
        raise NotImplementedError

    def approval(self) -> ContextManager[ApprovalTransaction]:
        raise NotImplementedError
