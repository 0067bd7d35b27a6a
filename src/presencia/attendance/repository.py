from __future__ import annotations

from datetime import date
from typing import Optional, Protocol, Sequence

from .model import AttendanceSummary, LectureRecord, StudentMark, SubmissionResult


class AttendanceRepository(Protocol):
    """Lecture records plus the per-(student, subject) summaries derived from them.

    Every writer keeps both in step inside one transaction and touches the
    summary counters with increments only.
    """

    def next_lecture_number(self, *, work_date: date, class_id: str, subject_id: str) -> int:
        raise NotImplementedError

    def submit_batch(
        self,
        *,
        class_id: str,
        subject_id: str,
        subject_name: str,
        work_date: date,
        lecture_count: int,
        marks: Sequence[StudentMark],
        marked_by: str,
    ) -> SubmissionResult:
        """Append `lecture_count` new lecture slots for every mark, atomically.

        Lecture numbers continue after the highest one already stored for
        (date, class, subject).
        """

        raise NotImplementedError

    def mark_lecture(self, record: LectureRecord, *, subject_name: str) -> bool:
        """Insert one record at its identity key; False (and no summary change) if it already exists."""

        raise NotImplementedError

    def get_record(
        self,
        *,
        work_date: date,
        subject_id: str,
        student_uid: str,
        lecture_number: int,
    ) -> Optional[LectureRecord]:
        raise NotImplementedError

    def list_records(self, *, class_id: str, subject_id: str) -> Sequence[LectureRecord]:
        """Records of one class/subject ordered by date then lecture number."""

        raise NotImplementedError

    def get_summary(self, *, student_uid: str, subject_id: str) -> Optional[AttendanceSummary]:
        raise NotImplementedError

    def list_summaries_for_student(self, student_uid: str) -> Sequence[AttendanceSummary]:
        raise NotImplementedError

    def list_summaries_for_students(self, student_uids: Sequence[str]) -> Sequence[AttendanceSummary]:
        raise NotImplementedError
