from __future__ import annotations

from flask import Flask, request

from ..common.datetime_utils import parse_iso_date
from ..common.web import current_profile, json_errors, ok, request_data, roles_required
from ..container import Container
from ..core.enums import Role
from ..core.exceptions import ValidationError
from ..users.model import StudentProfile, TeacherProfile
from .model import StudentMark


def _truthy(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on", "present"}
    return bool(value)


def _parse_marks(raw) -> list[StudentMark]:
    """Accept `[{"student_uid": .., "present": ..}]` or a `{uid: present}` map."""

    if isinstance(raw, dict):
        return [StudentMark(student_uid=str(uid), present=_truthy(v)) for uid, v in raw.items()]
    if isinstance(raw, list):
        marks = []
        for item in raw:
            if not isinstance(item, dict) or not item.get("student_uid"):
                raise ValidationError("Each mark needs a student_uid")
            marks.append(StudentMark(student_uid=str(item["student_uid"]), present=_truthy(item.get("present"))))
        return marks
    raise ValidationError("Attendance marks are required")


def register(app: Flask, container: Container) -> None:
    @app.route("/api/student/attendance", methods=["GET"], endpoint="student_attendance")
    @roles_required(Role.STUDENT)
    @json_errors
    def student_attendance():
        student = current_profile(container.auth_service, StudentProfile)
        return ok(container.attendance_service.student_dashboard(student))

    @app.route("/api/teacher/classes/<class_id>", methods=["GET"], endpoint="teacher_class")
    @roles_required(Role.TEACHER)
    @json_errors
    def teacher_class(class_id: str):
        teacher = current_profile(container.auth_service, TeacherProfile)
        return ok(container.attendance_service.class_view(teacher=teacher, class_id=class_id))

    @app.route("/api/teacher/classes/<class_id>/attendance", methods=["POST"], endpoint="submit_attendance")
    @roles_required(Role.TEACHER)
    @json_errors
    def submit_attendance(class_id: str):
        teacher = current_profile(container.auth_service, TeacherProfile)
        if not request.is_json:
            raise ValidationError("Expected a JSON body")
        data = request_data()

        work_date = parse_iso_date(data["date"]) if data.get("date") else None
        result = container.attendance_service.submit_attendance(
            teacher=teacher,
            class_id=class_id,
            marks=_parse_marks(data.get("marks")),
            lecture_count=data.get("lecture_count", 1),
            work_date=work_date,
        )
        return ok(
            {
                "date": result.date.isoformat(),
                "lecture_numbers": list(result.lecture_numbers),
                "records_created": result.records_created,
            },
            201,
        )
