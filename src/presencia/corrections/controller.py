from __future__ import annotations

import json
import logging

from flask import Flask, request

from ..common.datetime_utils import parse_iso_date
from ..common.web import current_profile, json_errors, ok, request_data, roles_required
from ..container import Container
from ..core.enums import Role
from ..core.exceptions import ValidationError
from ..realtime.stream import SnapshotStream
from ..users.model import AdminProfile, StudentProfile, TeacherProfile

logger = logging.getLogger(__name__)


def register(app: Flask, container: Container) -> None:
    @app.route("/api/student/corrections", methods=["GET"], endpoint="student_corrections")
    @roles_required(Role.STUDENT)
    @json_errors
    def student_corrections():
        student = current_profile(container.auth_service, StudentProfile)
        items = container.correction_service.list_visible_for_student(student=student)
        return ok({"corrections": [c.to_dict() for c in items]})

    @app.route("/api/student/corrections", methods=["POST"], endpoint="submit_correction")
    @roles_required(Role.STUDENT)
    @json_errors
    def submit_correction():
        student = current_profile(container.auth_service, StudentProfile)
        data = request_data()

        proof = request.files.get("proof")
        proof_ref = proof.filename if proof is not None and proof.filename else data.get("proof_ref")

        correction = container.correction_service.submit(
            student=student,
            subject_id=data.get("subject_id", ""),
            work_date=parse_iso_date(data["date"]) if data.get("date") else None,
            reason=data.get("reason", ""),
            lecture_number=data.get("lecture_number", 1),
            notes=data.get("notes", ""),
            proof_ref=proof_ref,
        )
        return ok({"correction": correction.to_dict()}, 201)

    @app.route("/api/student/corrections/stream", methods=["GET"], endpoint="student_corrections_stream")
    @roles_required(Role.STUDENT)
    @json_errors
    def student_corrections_stream():
        student = current_profile(container.auth_service, StudentProfile)
        uid = student.uid

        def fetch():
            return {
                "summaries": tuple(container.attendance_repo.list_summaries_for_student(uid)),
                "corrections": [
                    c.to_dict() for c in container.correction_service.list_visible_for_student(student=student)
                ],
            }

        def refresh_cache(snapshot):
            container.summary_cache.apply_snapshot(uid, snapshot["summaries"])

        stream = container.streams.replace(
            f"student:{uid}",
            SnapshotStream(
                fetch,
                poll_seconds=container.stream_poll_seconds,
                on_snapshot=refresh_cache,
                name=f"corrections stream for {uid}",
            ),
        )

        def gen():
            try:
                for snapshot in stream:
                    payload = {
                        "attendance": container.attendance_service.student_dashboard(student),
                        "corrections": snapshot["corrections"],
                    }
                    yield f"data: {json.dumps(payload, default=str)}\n\n"
            finally:
                stream.cancel()
                logger.debug("Stream for %s closed", uid)

        response = app.response_class(gen(), mimetype="text/event-stream")
        response.headers["Cache-Control"] = "no-cache"
        response.headers["X-Accel-Buffering"] = "no"
        return response

    @app.route("/api/corrections", methods=["GET"], endpoint="list_corrections")
    @roles_required(Role.TEACHER, Role.ADMIN)
    @json_errors
    def list_corrections():
        actor = current_profile(container.auth_service, TeacherProfile, AdminProfile)
        if isinstance(actor, AdminProfile):
            data = container.correction_service.list_all(actor=actor)
            return ok(
                {
                    "corrections": [c.to_dict() for c in data["corrections"]],
                    "pending_count": data["pending_count"],
                }
            )

        class_id = request.args.get("class_id") or ""
        if not class_id:
            raise ValidationError("Please choose a class")
        items = container.correction_service.list_for_teacher(teacher=actor, class_id=class_id)
        return ok({"corrections": [c.to_dict() for c in items]})

    @app.route("/api/corrections/<int:correction_id>/approve", methods=["POST"], endpoint="approve_correction")
    @roles_required(Role.TEACHER, Role.ADMIN)
    @json_errors
    def approve_correction(correction_id: int):
        actor = current_profile(container.auth_service, TeacherProfile, AdminProfile)
        correction = container.correction_service.approve(actor=actor, correction_id=correction_id)
        return ok({"correction": correction.to_dict(), "message": "Correction approved and attendance updated."})

    @app.route("/api/corrections/<int:correction_id>/reject", methods=["POST"], endpoint="reject_correction")
    @roles_required(Role.TEACHER, Role.ADMIN)
    @json_errors
    def reject_correction(correction_id: int):
        actor = current_profile(container.auth_service, TeacherProfile, AdminProfile)
        correction = container.correction_service.reject(actor=actor, correction_id=correction_id)
        return ok({"correction": correction.to_dict(), "message": "Correction rejected."})
