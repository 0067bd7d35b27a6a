from __future__ import annotations

from datetime import date
from typing import Optional, Sequence

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, placeholders
from .model import AttendanceSummary, LectureRecord, StudentMark, SubmissionResult, record_key
from .repository import AttendanceRepository

_RECORD_COLUMNS = "date, subject_id, class_id, student_uid, lecture_number, present, marked_by, notes"
_SUMMARY_COLUMNS = "student_uid, subject_id, subject_name, class_id, attended, total"


def _to_record(r: dict) -> LectureRecord:
    return LectureRecord(
        date=r["date"],
        subject_id=r["subject_id"],
        class_id=r["class_id"],
        student_uid=r["student_uid"],
        lecture_number=int(r["lecture_number"]),
        present=bool(r["present"]),
        marked_by=r["marked_by"],
        notes=r.get("notes"),
    )


def _to_summary(r: dict) -> AttendanceSummary:
    return AttendanceSummary(
        student_uid=r["student_uid"],
        subject_id=r["subject_id"],
        subject_name=r.get("subject_name") or "",
        class_id=r.get("class_id") or "",
        attended=int(r.get("attended") or 0),
        total=int(r.get("total") or 0),
    )


def insert_record(cur, record: LectureRecord) -> bool:
    """INSERT IGNORE keyed on the identity tuple; True only when a row was created."""

    cur.execute(
        f"""
        INSERT IGNORE INTO attendance_records(record_key, {_RECORD_COLUMNS})
        VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s)
        """,
        (
            record.key,
            record.date,
            record.subject_id,
            record.class_id,
            record.student_uid,
            int(record.lecture_number),
            1 if record.present else 0,
            record.marked_by,
            record.notes,
        ),
    )
    return cur.rowcount == 1


def increment_summary(cur, *, student_uid: str, subject_id: str, subject_name: str, class_id: str, attended: int, total: int) -> None:
    # Upsert with server-side increments: concurrent writers never overwrite each other's counts.
    cur.execute(
        f"""
        INSERT INTO attendance_summaries({_SUMMARY_COLUMNS})
        VALUES(%s,%s,%s,%s,%s,%s) AS new
        ON DUPLICATE KEY UPDATE
            subject_name=new.subject_name,
            class_id=new.class_id,
            attended=attended + new.attended,
            total=total + new.total
        """,
        (student_uid, subject_id, subject_name, class_id, int(attended), int(total)),
    )


class MySQLAttendanceRepository(AttendanceRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def next_lecture_number(self, *, work_date: date, class_id: str, subject_id: str) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            return self._next_lecture_number(cur, work_date=work_date, class_id=class_id, subject_id=subject_id)

    @staticmethod
    def _next_lecture_number(cur, *, work_date: date, class_id: str, subject_id: str, lock: bool = False) -> int:
        cur.execute(
            f"""
            SELECT COALESCE(MAX(lecture_number), 0) AS max_lecture
            FROM attendance_records
            WHERE class_id=%s AND subject_id=%s AND date=%s
            {"FOR UPDATE" if lock else ""}
            """,
            (class_id, subject_id, work_date),
        )
        r = fetchone(cur)
        return int(r["max_lecture"] if r else 0) + 1

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
        with db_cursor(self._conn_factory) as (_, cur):
            start = self._next_lecture_number(
                cur, work_date=work_date, class_id=class_id, subject_id=subject_id, lock=True
            )
            lecture_numbers = tuple(range(start, start + int(lecture_count)))
            created = 0

            for lecture_number in lecture_numbers:
                for mark in marks:
                    record = LectureRecord(
                        date=work_date,
                        subject_id=subject_id,
                        class_id=class_id,
                        student_uid=mark.student_uid,
                        lecture_number=lecture_number,
                        present=mark.present,
                        marked_by=marked_by,
                    )
                    if not insert_record(cur, record):
                        continue
                    created += 1
                    increment_summary(
                        cur,
                        student_uid=mark.student_uid,
                        subject_id=subject_id,
                        subject_name=subject_name,
                        class_id=class_id,
                        attended=1 if mark.present else 0,
                        total=1,
                    )

            return SubmissionResult(
                class_id=class_id,
                subject_id=subject_id,
                date=work_date,
                lecture_numbers=lecture_numbers,
                records_created=created,
            )

    def mark_lecture(self, record: LectureRecord, *, subject_name: str) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            if not insert_record(cur, record):
                return False
            increment_summary(
                cur,
                student_uid=record.student_uid,
                subject_id=record.subject_id,
                subject_name=subject_name,
                class_id=record.class_id,
                attended=1 if record.present else 0,
                total=1,
            )
            return True

    def get_record(
        self,
        *,
        work_date: date,
        subject_id: str,
        student_uid: str,
        lecture_number: int,
    ) -> Optional[LectureRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_RECORD_COLUMNS} FROM attendance_records WHERE record_key=%s",
                (record_key(work_date, subject_id, student_uid, lecture_number),),
            )
            r = fetchone(cur)
            return _to_record(r) if r else None

    def list_records(self, *, class_id: str, subject_id: str) -> Sequence[LectureRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_RECORD_COLUMNS}
                FROM attendance_records
                WHERE class_id=%s AND subject_id=%s
                ORDER BY date ASC, lecture_number ASC
                """,
                (class_id, subject_id),
            )
            return [_to_record(r) for r in fetchall(cur)]

    def get_summary(self, *, student_uid: str, subject_id: str) -> Optional[AttendanceSummary]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_SUMMARY_COLUMNS} FROM attendance_summaries WHERE student_uid=%s AND subject_id=%s",
                (student_uid, subject_id),
            )
            r = fetchone(cur)
            return _to_summary(r) if r else None

    def list_summaries_for_student(self, student_uid: str) -> Sequence[AttendanceSummary]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_SUMMARY_COLUMNS} FROM attendance_summaries WHERE student_uid=%s ORDER BY subject_id",
                (student_uid,),
            )
            return [_to_summary(r) for r in fetchall(cur)]

    def list_summaries_for_students(self, student_uids: Sequence[str]) -> Sequence[AttendanceSummary]:
        uids = list(student_uids)
        if not uids:
            return []
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_SUMMARY_COLUMNS}
                FROM attendance_summaries
                WHERE student_uid IN ({placeholders(uids)})
                ORDER BY student_uid, subject_id
                """,
                tuple(uids),
            )
            return [_to_summary(r) for r in fetchall(cur)]
