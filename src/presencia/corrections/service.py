from __future__ import annotations

import logging
import ntpath
import posixpath
from datetime import date, datetime
from typing import Optional, Sequence

from ..attendance.cache import SummaryCache
from ..attendance.repository import AttendanceRepository
from ..catalog.service import CatalogService
from ..common.datetime_utils import now_local
from ..common.validators import require_choice, require_int_in_range, require_non_empty
from ..core.constants import DEFAULT_CONFLICT_RETRIES, DEFAULT_LECTURE_NUMBER, MAX_LECTURE_NUMBER
from ..core.enums import CorrectionReason, CorrectionStatus
from ..core.exceptions import (
    AlreadySatisfiedError,
    AuthorizationError,
    IntegrityError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from ..database.mysql_base import run_with_retry
from ..users.model import AdminProfile, StudentProfile, TeacherProfile, UserProfile
from .model import CorrectionRequest, NewCorrection
from .repository import CorrectionRepository
from .visibility import visible_for_student

logger = logging.getLogger(__name__)


class CorrectionService:
    """Correction workflow: Pending -> Approved | Rejected, nothing after that.

    Approval reconciles three rows in one transaction: the lecture record is
    flipped to present, the student's subject summary gains one attended
    lecture, and the correction becomes Approved.
    """

    def __init__(
        self,
        corrections: CorrectionRepository,
        attendance: AttendanceRepository,
        catalog: CatalogService,
        *,
        cache: Optional[SummaryCache] = None,
        retries: int = DEFAULT_CONFLICT_RETRIES,
    ):
        self._corrections = corrections
        self._attendance = attendance
        self._catalog = catalog
        self._cache = cache
        self._retries = int(retries)

    @staticmethod
    def _proof_name(value: Optional[str]) -> Optional[str]:
        # Only the file name is kept; no binary is stored.
        name = (value or "").strip()
        if not name:
            return None
        name = posixpath.basename(ntpath.basename(name))
        return name[:255] or None

    # -------- Submission --------
    def submit(
        self,
        *,
        student: StudentProfile,
        subject_id: str,
        work_date: Optional[date],
        reason: str,
        lecture_number=DEFAULT_LECTURE_NUMBER,
        notes: str = "",
        proof_ref: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> CorrectionRequest:
        if not isinstance(student, StudentProfile):
            raise AuthorizationError("Only students can submit correction requests")

        now = now or now_local()
        subject_id = require_non_empty(subject_id, "Subject")
        if work_date is None:
            raise ValidationError("Please pick a date.")
        if work_date > now.date():
            raise ValidationError("Date cannot be in the future.")
        lecture_number = require_int_in_range(lecture_number, "Lecture number", 1, MAX_LECTURE_NUMBER)
        reason_value = require_choice(reason, CorrectionReason, "Reason")

        summary = self._attendance.get_summary(student_uid=student.uid, subject_id=subject_id)
        if summary is None:
            raise ValidationError("No attendance has been recorded for this subject yet")
        subject_name = self._catalog.subject_name(subject_id, preferred=summary.subject_name)

        new = NewCorrection(
            student_uid=student.uid,
            roll=student.roll,
            name=student.name,
            father=student.father,
            class_id=student.class_id,
            subject_id=subject_id,
            subject_name=subject_name,
            date=work_date,
            lecture_number=lecture_number,
            reason=reason_value,
            notes=(notes or "").strip(),
            proof_ref=self._proof_name(proof_ref),
            submitted_at=now,
        )

        correction_id = run_with_retry(
            lambda: self._corrections.create_pending(new),
            retries=self._retries,
            label="correction submission",
        )
        if correction_id is None:
            raise ValidationError("A correction for this lecture is already pending")

        logger.info(
            "Correction %s submitted by %s for %s %s L%d",
            correction_id,
            student.uid,
            subject_id,
            work_date.isoformat(),
            lecture_number,
        )
        created = self._corrections.get(correction_id)
        if created is None:
            raise IntegrityError("Correction disappeared right after it was created")
        return created

    # -------- Adjudication --------
    @staticmethod
    def _require_adjudicator(actor: UserProfile, correction: CorrectionRequest) -> None:
        if isinstance(actor, AdminProfile):
            return
        if isinstance(actor, TeacherProfile):
            if actor.subject_id == correction.subject_id and actor.teaches(correction.class_id):
                return
            raise AuthorizationError("This correction is outside your subject or classes")
        raise AuthorizationError("You do not have permission")

    def approve(self, *, actor: UserProfile, correction_id: int, now: Optional[datetime] = None) -> CorrectionRequest:
        if not isinstance(actor, (TeacherProfile, AdminProfile)):
            raise AuthorizationError("You do not have permission")

        def attempt() -> CorrectionRequest:
            decided_at = now or now_local()
            with self._corrections.approval() as tx:
                correction = tx.lock_correction(int(correction_id))
                if correction is None:
                    raise NotFoundError("Correction not found")
                self._require_adjudicator(actor, correction)

                record = tx.lock_record(
                    work_date=correction.date,
                    subject_id=correction.subject_id,
                    student_uid=correction.student_uid,
                    lecture_number=correction.lecture_number,
                )
                if record is None:
                    raise NotFoundError(
                        f"No attendance record for {correction.date.isoformat()} (L{correction.lecture_number}). "
                        "Verify the teacher actually marked that lecture."
                    )
                if record.present:
                    raise AlreadySatisfiedError("Correction is unnecessary: student was already marked Present.")
                if correction.status.is_terminal:
                    raise InvalidTransitionError(f"Correction is already {correction.status.value}")

                if not tx.mark_record_present(record.key, notes=f"Approved correction by {actor.name}"):
                    raise AlreadySatisfiedError("Correction is unnecessary: student was already marked Present.")
                if not tx.increment_attended(student_uid=correction.student_uid, subject_id=correction.subject_id):
                    raise IntegrityError("Attendance summary is missing or already complete for this subject")
                if not tx.set_status(
                    correction_id=correction.correction_id,
                    status=CorrectionStatus.APPROVED,
                    decided_by=actor.uid,
                    decided_at=decided_at,
                ):
                    raise InvalidTransitionError("Correction is no longer pending")

            return self._with_decision(correction, CorrectionStatus.APPROVED, actor.uid, decided_at)

        approved = run_with_retry(attempt, retries=self._retries, label=f"approval of correction {correction_id}")
        if self._cache is not None:
            self._cache.invalidate([approved.student_uid])
        logger.info("Correction %s approved by %s", approved.correction_id, actor.uid)
        return approved

    def reject(self, *, actor: UserProfile, correction_id: int, now: Optional[datetime] = None) -> CorrectionRequest:
        correction = self._corrections.get(int(correction_id))
        if correction is None:
            raise NotFoundError("Correction not found")
        self._require_adjudicator(actor, correction)
        if correction.status.is_terminal:
            raise InvalidTransitionError(f"Correction is already {correction.status.value}")

        decided_at = now or now_local()
        if not self._corrections.reject(correction_id=correction.correction_id, decided_by=actor.uid, decided_at=decided_at):
            raise InvalidTransitionError("Correction is no longer pending")

        logger.info("Correction %s rejected by %s", correction.correction_id, actor.uid)
        return self._with_decision(correction, CorrectionStatus.REJECTED, actor.uid, decided_at)

    @staticmethod
    def _with_decision(c: CorrectionRequest, status: CorrectionStatus, decided_by: str, decided_at: datetime) -> CorrectionRequest:
        return CorrectionRequest(
            correction_id=c.correction_id,
            student_uid=c.student_uid,
            roll=c.roll,
            name=c.name,
            father=c.father,
            class_id=c.class_id,
            subject_id=c.subject_id,
            subject_name=c.subject_name,
            date=c.date,
            lecture_number=c.lecture_number,
            reason=c.reason,
            notes=c.notes,
            proof_ref=c.proof_ref,
            status=status,
            submitted_at=c.submitted_at,
            status_updated_at=decided_at,
            decided_by=decided_by,
        )

    # -------- Listings --------
    def list_visible_for_student(self, *, student: StudentProfile, now: Optional[datetime] = None) -> list[CorrectionRequest]:
        return visible_for_student(self._corrections.list_for_student(student.uid), now or now_local())

    def list_for_teacher(self, *, teacher: TeacherProfile, class_id: str) -> Sequence[CorrectionRequest]:
        if not teacher.teaches(class_id):
            raise AuthorizationError("You are not assigned to this class")
        items = list(self._corrections.list_for_subject(teacher.subject_id, class_id=class_id))
        items.sort(key=lambda c: c.submitted_at, reverse=True)
        return items

    def list_all(self, *, actor: UserProfile) -> dict:
        if not isinstance(actor, AdminProfile):
            raise AuthorizationError("You do not have permission")
        items = list(self._corrections.list_all())
        items.sort(key=lambda c: c.submitted_at, reverse=True)
        return {
            "corrections": items,
            "pending_count": sum(1 for c in items if c.status == CorrectionStatus.PENDING),
        }
