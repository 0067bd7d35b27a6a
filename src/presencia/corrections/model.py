from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from ..attendance.model import record_key
from ..core.enums import CorrectionReason, CorrectionStatus


@dataclass(frozen=True)
class NewCorrection:
    """Validated submission, not yet persisted."""

    student_uid: str
    roll: str
    name: str
    father: str
    class_id: str
    subject_id: str
    subject_name: str
    date: date
    lecture_number: int
    reason: CorrectionReason
    notes: str
    proof_ref: Optional[str]
    submitted_at: datetime


@dataclass(frozen=True)
class CorrectionRequest:
    correction_id: int
    student_uid: str
    roll: str
    name: str
    father: str
    class_id: str
    subject_id: str
    subject_name: str
    date: date
    lecture_number: int
    reason: CorrectionReason
    notes: str
    proof_ref: Optional[str]
    status: CorrectionStatus
    submitted_at: datetime
    status_updated_at: Optional[datetime] = None
    decided_by: Optional[str] = None

    @property
    def pivot_date(self) -> datetime:
        """Start of the visibility window; a decision restarts it."""

        return self.status_updated_at or self.submitted_at

    @property
    def record_key(self) -> str:
        return record_key(self.date, self.subject_id, self.student_uid, self.lecture_number)

    def to_dict(self) -> dict:
        return {
            "correction_id": self.correction_id,
            "student_uid": self.student_uid,
            "roll": self.roll,
            "name": self.name,
            "father": self.father,
            "class_id": self.class_id,
            "subject_id": self.subject_id,
            "subject_name": self.subject_name,
            "date": self.date.isoformat(),
            "lecture_number": self.lecture_number,
            "reason": self.reason.value,
            "notes": self.notes,
            "proof_ref": self.proof_ref,
            "status": self.status.value,
            "submitted_at": self.submitted_at.strftime("%Y-%m-%d %H:%M"),
            "status_updated_at": self.status_updated_at.strftime("%Y-%m-%d %H:%M") if self.status_updated_at else None,
            "decided_by": self.decided_by,
        }
