from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional


def record_key(work_date: date, subject_id: str, student_uid: str, lecture_number: int) -> str:
    """Storage key of a lecture record; doubles as its idempotency guard."""

    return f"{work_date.isoformat()}_{subject_id}_{student_uid}_L{int(lecture_number)}"


def column_id(work_date: date, lecture_number: int) -> str:
    return f"{work_date.isoformat()}_L{int(lecture_number)}"


@dataclass(frozen=True)
class LectureRecord:
    """One student's presence for one lecture slot. Only `present`/`notes` are ever amended."""

    date: date
    subject_id: str
    class_id: str
    student_uid: str
    lecture_number: int
    present: bool
    marked_by: str
    notes: Optional[str] = None

    @property
    def key(self) -> str:
        return record_key(self.date, self.subject_id, self.student_uid, self.lecture_number)


@dataclass(frozen=True)
class AttendanceSummary:
    """Materialised per-(student, subject) aggregate of lecture records."""

    student_uid: str
    subject_id: str
    subject_name: str
    class_id: str
    attended: int = 0
    total: int = 0


@dataclass(frozen=True)
class StudentMark:
    """Input row for a batch submission."""

    student_uid: str
    present: bool


@dataclass(frozen=True)
class SubmissionResult:
    class_id: str
    subject_id: str
    date: date
    lecture_numbers: tuple[int, ...]
    records_created: int
