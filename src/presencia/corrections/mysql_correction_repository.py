from __future__ import annotations

from contextlib import contextmanager
from datetime import date, datetime
from typing import Optional, Sequence

from ..attendance.model import LectureRecord, record_key
from ..core.enums import CorrectionReason, CorrectionStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import CorrectionRequest, NewCorrection
from .repository import ApprovalTransaction, CorrectionRepository

_COLUMNS = """
    correction_id, student_uid, roll, name, father, class_id, subject_id, subject_name,
    date, lecture_number, reason, notes, proof_ref, status, submitted_at, status_updated_at, decided_by
"""


def _to_correction(r: dict) -> CorrectionRequest:
    return CorrectionRequest(
        correction_id=int(r["correction_id"]),
        student_uid=r["student_uid"],
        roll=str(r.get("roll") or ""),
        name=r["name"],
        father=r.get("father") or "",
        class_id=r["class_id"],
        subject_id=r["subject_id"],
        subject_name=r["subject_name"],
        date=r["date"],
        lecture_number=int(r.get("lecture_number") or 1),
        reason=CorrectionReason(r["reason"]),
        notes=r.get("notes") or "",
        proof_ref=r.get("proof_ref"),
        status=CorrectionStatus(r["status"]),
        submitted_at=r["submitted_at"],
        status_updated_at=r.get("status_updated_at"),
        decided_by=r.get("decided_by"),
    )


class MySQLApprovalTransaction(ApprovalTransaction):
    def __init__(self, cur):
        self._cur = cur

    def lock_correction(self, correction_id: int) -> Optional[CorrectionRequest]:
        self._cur.execute(f"SELECT {_COLUMNS} FROM corrections WHERE correction_id=%s FOR UPDATE", (int(correction_id),))
        r = fetchone(self._cur)
        return _to_correction(r) if r else None

    def lock_record(
        self,
        *,
        work_date: date,
        subject_id: str,
        student_uid: str,
        lecture_number: int,
    ) -> Optional[LectureRecord]:
        self._cur.execute(
            """
            SELECT date, subject_id, class_id, student_uid, lecture_number, present, marked_by, notes
            FROM attendance_records
            WHERE record_key=%s
            FOR UPDATE
            """,
            (record_key(work_date, subject_id, student_uid, lecture_number),),
        )
        r = fetchone(self._cur)
        if not r:
            return None
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

    def mark_record_present(self, record_key: str, *, notes: str) -> bool:
        self._cur.execute(
            "UPDATE attendance_records SET present=1, notes=%s WHERE record_key=%s AND present=0",
            (notes, record_key),
        )
        return self._cur.rowcount == 1

    def increment_attended(self, *, student_uid: str, subject_id: str) -> bool:
        self._cur.execute(
            """
            UPDATE attendance_summaries
            SET attended = attended + 1
            WHERE student_uid=%s AND subject_id=%s AND attended < total
            """,
            (student_uid, subject_id),
        )
        return self._cur.rowcount == 1

    def set_status(
        self,
        *,
        correction_id: int,
        status: CorrectionStatus,
        decided_by: str,
        decided_at: datetime,
    ) -> bool:
        self._cur.execute(
            """
            UPDATE corrections
            SET status=%s, status_updated_at=%s, decided_by=%s
            WHERE correction_id=%s AND status=%s
            """,
            (status.value, decided_at, decided_by, int(correction_id), CorrectionStatus.PENDING.value),
        )
        return self._cur.rowcount == 1


class MySQLCorrectionRepository(CorrectionRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def create_pending(self, correction: NewCorrection) -> Optional[int]:
        with db_cursor(self._conn_factory) as (_, cur):
            # Locks the dispute's index range so two concurrent submissions cannot both pass.
            cur.execute(
                """
                SELECT correction_id
                FROM corrections
                WHERE student_uid=%s AND subject_id=%s AND date=%s AND lecture_number=%s AND status=%s
                FOR UPDATE
                """,
                (
                    correction.student_uid,
                    correction.subject_id,
                    correction.date,
                    int(correction.lecture_number),
                    CorrectionStatus.PENDING.value,
                ),
            )
            if fetchall(cur):
                return None

            cur.execute(
                """
                INSERT INTO corrections(
                    student_uid, roll, name, father, class_id, subject_id, subject_name,
                    date, lecture_number, reason, notes, proof_ref, status, submitted_at, status_updated_at
                )
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    correction.student_uid,
                    correction.roll,
                    correction.name,
                    correction.father,
                    correction.class_id,
                    correction.subject_id,
                    correction.subject_name,
                    correction.date,
                    int(correction.lecture_number),
                    correction.reason.value,
                    correction.notes,
                    correction.proof_ref,
                    CorrectionStatus.PENDING.value,
                    correction.submitted_at,
                    correction.submitted_at,
                ),
            )
            return int(cur.lastrowid)

    def get(self, correction_id: int) -> Optional[CorrectionRequest]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM corrections WHERE correction_id=%s", (int(correction_id),))
            r = fetchone(cur)
            return _to_correction(r) if r else None

    def list_for_student(self, student_uid: str) -> Sequence[CorrectionRequest]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM corrections WHERE student_uid=%s ORDER BY submitted_at DESC",
                (student_uid,),
            )
            return [_to_correction(r) for r in fetchall(cur)]

    def list_for_subject(self, subject_id: str, *, class_id: Optional[str] = None) -> Sequence[CorrectionRequest]:
        clauses = ["subject_id=%s"]
        params: list[object] = [subject_id]
        if class_id is not None:
            clauses.append("class_id=%s")
            params.append(class_id)

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM corrections WHERE {' AND '.join(clauses)} ORDER BY submitted_at DESC",
                tuple(params),
            )
            return [_to_correction(r) for r in fetchall(cur)]

    def list_all(self) -> Sequence[CorrectionRequest]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM corrections ORDER BY submitted_at DESC")
            return [_to_correction(r) for r in fetchall(cur)]

    def reject(self, *, correction_id: int, decided_by: str, decided_at: datetime) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            return MySQLApprovalTransaction(cur).set_status(
                correction_id=correction_id,
                status=CorrectionStatus.REJECTED,
                decided_by=decided_by,
                decided_at=decided_at,
            )

    @contextmanager
    def approval(self):
        with db_cursor(self._conn_factory) as (_, cur):
            yield MySQLApprovalTransaction(cur)
