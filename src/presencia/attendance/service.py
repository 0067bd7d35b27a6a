from __future__ import annotations

import logging
from datetime import date
from typing import Optional, Sequence

from ..catalog.service import CatalogService
from ..common.datetime_utils import short_label, today_local
from ..common.validators import require_int_in_range, require_non_empty
from ..core.constants import DEFAULT_CONFLICT_RETRIES, MAX_LECTURES_PER_SUBMISSION, UNKNOWN_SUBJECT
from ..core.exceptions import AuthorizationError, ValidationError
from ..database.mysql_base import run_with_retry
from ..users.model import StudentProfile, TeacherProfile, roll_sort_key
from ..users.repository import UserRepository
from . import aggregator
from .cache import SummaryCache
from .model import AttendanceSummary, LectureRecord, StudentMark, SubmissionResult, column_id
from .repository import AttendanceRepository

logger = logging.getLogger(__name__)


class AttendanceService:
    def __init__(
        self,
        attendance: AttendanceRepository,
        users: UserRepository,
        catalog: CatalogService,
        *,
        cache: Optional[SummaryCache] = None,
        retries: int = DEFAULT_CONFLICT_RETRIES,
    ):
        self._attendance = attendance
        self._users = users
        self._catalog = catalog
        self._cache = cache or SummaryCache(attendance)
        self._retries = int(retries)

    @property
    def cache(self) -> SummaryCache:
        return self._cache

    @staticmethod
    def _require_class(teacher: TeacherProfile, class_id: str) -> None:
        if not teacher.subject_id:
            raise ValidationError("No subject is assigned to this teacher")
        if not teacher.teaches(class_id):
            raise AuthorizationError("You are not assigned to this class")

    def _teacher_subject_name(self, teacher: TeacherProfile) -> str:
        name = self._catalog.subject_name(teacher.subject_id, preferred=teacher.subject_name)
        return name or UNKNOWN_SUBJECT

    # -------- Writes --------
    def submit_attendance(
        self,
        *,
        teacher: TeacherProfile,
        class_id: str,
        marks: Sequence[StudentMark],
        lecture_count: int = 1,
        work_date: Optional[date] = None,
    ) -> SubmissionResult:
        """Record `lecture_count` new lectures for the whole class in one atomic batch."""

        class_id = require_non_empty(class_id, "Class")
        self._require_class(teacher, class_id)
        lecture_count = require_int_in_range(lecture_count, "Number of lectures", 1, MAX_LECTURES_PER_SUBMISSION)

        work_date = work_date or today_local()
        if work_date > today_local():
            raise ValidationError("Date cannot be in the future.")

        if not marks:
            raise ValidationError("No students to mark")
        seen = set()
        for m in marks:
            if m.student_uid in seen:
                raise ValidationError(f"Student {m.student_uid} is listed twice")
            seen.add(m.student_uid)

        enrolled = {s.uid for s in self._users.list_students_in_class(class_id)}
        unknown = seen - enrolled
        if unknown:
            raise ValidationError(f"Students not enrolled in {class_id}: {', '.join(sorted(unknown))}")

        subject_name = self._teacher_subject_name(teacher)

        result = run_with_retry(
            lambda: self._attendance.submit_batch(
                class_id=class_id,
                subject_id=teacher.subject_id,
                subject_name=subject_name,
                work_date=work_date,
                lecture_count=lecture_count,
                marks=list(marks),
                marked_by=teacher.uid,
            ),
            retries=self._retries,
            label="attendance submission",
        )
        self._cache.invalidate(seen)
        logger.info(
            "Attendance submitted class=%s subject=%s date=%s lectures=%s records=%d by=%s",
            class_id,
            teacher.subject_id,
            work_date.isoformat(),
            list(result.lecture_numbers),
            result.records_created,
            teacher.uid,
        )
        return result

    def mark_lecture(
        self,
        *,
        work_date: date,
        subject_id: str,
        class_id: str,
        student_uid: str,
        lecture_number: int,
        present: bool,
        marked_by: str,
        subject_name: Optional[str] = None,
    ) -> bool:
        """Idempotent single mark; returns False when the lecture slot was already recorded."""

        record = LectureRecord(
            date=work_date,
            subject_id=require_non_empty(subject_id, "Subject"),
            class_id=require_non_empty(class_id, "Class"),
            student_uid=require_non_empty(student_uid, "Student"),
            lecture_number=require_int_in_range(lecture_number, "Lecture number", 1, 99),
            present=bool(present),
            marked_by=marked_by,
        )
        name = self._catalog.subject_name(subject_id, preferred=subject_name)
        created = run_with_retry(
            lambda: self._attendance.mark_lecture(record, subject_name=name),
            retries=self._retries,
            label="lecture mark",
        )
        if created:
            self._cache.invalidate([student_uid])
        else:
            logger.info("Lecture %s already recorded, left unchanged", record.key)
        return created

    # -------- Reads --------
    def student_dashboard(self, student: StudentProfile) -> dict:
        summaries = self._cache.get(student.uid)

        try:
            faculty = {t.subject_id: t.name for t in self._users.list_teachers_for_class(student.class_id) if t.subject_id}
        except Exception:
            logger.warning("Could not load faculty for class %s", student.class_id, exc_info=True)
            faculty = {}

        subjects = []
        for s in summaries:
            subjects.append(
                {
                    "subject_id": s.subject_id,
                    "subject_name": self._catalog.subject_name(s.subject_id, preferred=s.subject_name),
                    "faculty": faculty.get(s.subject_id, "N/A"),
                    **aggregator.stats(s.attended, s.total).to_dict(),
                }
            )

        return {
            "subjects": subjects,
            "overall": aggregator.overall(summaries).to_dict(),
        }

    def class_view(self, *, teacher: TeacherProfile, class_id: str) -> dict:
        """Students of a class with their summary for the teacher's subject, plus the history grid."""

        self._require_class(teacher, class_id)

        students = sorted(self._users.list_students_in_class(class_id), key=lambda s: roll_sort_key(s.roll))
        by_student: dict[str, AttendanceSummary] = {
            s.student_uid: s
            for s in self._attendance.list_summaries_for_students([st.uid for st in students])
            if s.subject_id == teacher.subject_id
        }

        rows = []
        for st in students:
            summary = by_student.get(st.uid)
            attended = summary.attended if summary else 0
            total = summary.total if summary else 0
            rows.append(
                {
                    "uid": st.uid,
                    "roll": st.roll,
                    "name": st.name,
                    "father": st.father,
                    **aggregator.stats(attended, total).to_dict(),
                }
            )

        return {
            "class_id": class_id,
            "subject_id": teacher.subject_id,
            "subject_name": self._teacher_subject_name(teacher),
            "students": rows,
            "history": self.history(class_id=class_id, subject_id=teacher.subject_id),
        }

    def history(self, *, class_id: str, subject_id: str) -> dict:
        """Lecture-by-lecture grid: ordered columns and a (student, column) -> present map."""

        columns: list[dict] = []
        seen: set[str] = set()
        cells: dict[str, dict[str, bool]] = {}

        for rec in self._attendance.list_records(class_id=class_id, subject_id=subject_id):
            col = column_id(rec.date, rec.lecture_number)
            if col not in seen:
                seen.add(col)
                columns.append(
                    {
                        "id": col,
                        "date": rec.date.isoformat(),
                        "lecture": rec.lecture_number,
                        "label": f"{short_label(rec.date)} (L{rec.lecture_number})",
                    }
                )
            cells.setdefault(rec.student_uid, {})[col] = rec.present

        columns.sort(key=lambda c: (c["date"], c["lecture"]))
        return {"columns": columns, "cells": cells}
