from __future__ import annotations

from datetime import date, timedelta

import pytest

from presencia.attendance.model import LectureRecord, StudentMark
from presencia.core.exceptions import AuthorizationError, ValidationError
from presencia.users.model import StudentProfile, TeacherProfile

CLASS_ID = "BTech-1-A"


def _all_present(*uids, absent=()):
    return [StudentMark(student_uid=u, present=u not in absent) for u in uids]


def test_submit_creates_records_for_every_lecture_and_student(container, attendance_repo, teacher):
    result = container.attendance_service.submit_attendance(
        teacher=teacher,
        class_id=CLASS_ID,
        marks=_all_present("s1", "s2", "s10", absent=("s2",)),
        lecture_count=2,
        work_date=date(2025, 1, 6),
    )

    assert result.lecture_numbers == (1, 2)
    assert result.records_created == 6
    assert len(attendance_repo.records) == 6

    s1 = attendance_repo.get_summary(student_uid="s1", subject_id="MATH-1")
    s2 = attendance_repo.get_summary(student_uid="s2", subject_id="MATH-1")
    assert (s1.attended, s1.total) == (2, 2)
    assert (s2.attended, s2.total) == (0, 2)
    assert s1.subject_name == "Mathematics"


def test_lecture_numbers_continue_on_the_same_day(container, attendance_repo, teacher):
    svc = container.attendance_service
    day = date(2025, 1, 6)
    svc.submit_attendance(teacher=teacher, class_id=CLASS_ID, marks=_all_present("s1"), lecture_count=2, work_date=day)
    result = svc.submit_attendance(teacher=teacher, class_id=CLASS_ID, marks=_all_present("s1"), work_date=day)

    assert result.lecture_numbers == (3,)
    assert attendance_repo.next_lecture_number(work_date=day, class_id=CLASS_ID, subject_id="MATH-1") == 4
    assert attendance_repo.next_lecture_number(work_date=day + timedelta(days=1), class_id=CLASS_ID, subject_id="MATH-1") == 1


@pytest.mark.parametrize("lecture_count", [0, 4, "x"])
def test_submit_rejects_lecture_count_out_of_range(container, attendance_repo, teacher, lecture_count):
    with pytest.raises(ValidationError):
        container.attendance_service.submit_attendance(
            teacher=teacher,
            class_id=CLASS_ID,
            marks=_all_present("s1"),
            lecture_count=lecture_count,
            work_date=date(2025, 1, 6),
        )
    assert attendance_repo.records == {}


def test_submit_rejects_future_date(container, teacher):
    with pytest.raises(ValidationError):
        container.attendance_service.submit_attendance(
            teacher=teacher,
            class_id=CLASS_ID,
            marks=_all_present("s1"),
            work_date=date.today() + timedelta(days=1),
        )


def test_submit_requires_teacher_assigned_to_class(container, teacher):
    with pytest.raises(AuthorizationError):
        container.attendance_service.submit_attendance(
            teacher=teacher,
            class_id="BTech-2-B",
            marks=_all_present("s1"),
            work_date=date(2025, 1, 6),
        )


def test_submit_rejects_unknown_or_duplicate_students(container, attendance_repo, teacher):
    svc = container.attendance_service
    with pytest.raises(ValidationError):
        svc.submit_attendance(teacher=teacher, class_id=CLASS_ID, marks=_all_present("s1", "ghost"), work_date=date(2025, 1, 6))
    with pytest.raises(ValidationError):
        svc.submit_attendance(teacher=teacher, class_id=CLASS_ID, marks=_all_present("s1", "s1"), work_date=date(2025, 1, 6))
    with pytest.raises(ValidationError):
        svc.submit_attendance(teacher=teacher, class_id=CLASS_ID, marks=[], work_date=date(2025, 1, 6))
    assert attendance_repo.records == {}
    assert attendance_repo.summaries == {}


def test_mark_lecture_is_idempotent(container, attendance_repo):
    svc = container.attendance_service
    kwargs = dict(
        work_date=date(2025, 1, 6),
        subject_id="MATH-1",
        class_id=CLASS_ID,
        student_uid="s1",
        lecture_number=1,
        present=True,
        marked_by="t1",
    )
    assert svc.mark_lecture(**kwargs) is True
    # same key again, even with a different value, changes nothing
    assert svc.mark_lecture(**{**kwargs, "present": False}) is False

    summary = attendance_repo.get_summary(student_uid="s1", subject_id="MATH-1")
    assert (summary.attended, summary.total) == (1, 1)
    record = attendance_repo.get_record(work_date=date(2025, 1, 6), subject_id="MATH-1", student_uid="s1", lecture_number=1)
    assert record.present is True


def test_twenty_of_twenty_eight_needs_four_more(container, teacher, student):
    svc = container.attendance_service
    start = date(2025, 1, 1)
    for i in range(28):
        svc.submit_attendance(
            teacher=teacher,
            class_id=CLASS_ID,
            marks=[StudentMark(student_uid="s1", present=i < 20)],
            work_date=start + timedelta(days=i),
        )

    dashboard = svc.student_dashboard(student)
    (card,) = dashboard["subjects"]
    assert (card["attended"], card["total"]) == (20, 28)
    assert card["percentage"] == 71.4
    assert card["to_reach_75"] == 4
    assert card["can_skip"] == 0
    assert card["below_threshold"] is True
    assert card["faculty"] == "Dr. Rao"
    assert dashboard["overall"]["to_reach_75"] == 4


def test_dashboard_refreshes_after_submission(container, teacher, student):
    svc = container.attendance_service
    assert svc.student_dashboard(student)["subjects"] == []
    assert "s1" in svc.cache

    svc.submit_attendance(teacher=teacher, class_id=CLASS_ID, marks=_all_present("s1"), work_date=date(2025, 1, 6))

    assert "s1" not in svc.cache
    assert svc.student_dashboard(student)["overall"]["attended"] == 1


def test_dashboard_falls_back_to_catalog_names(container, attendance_repo, student):
    attendance_repo.seed_summary(
        student_uid="s1", subject_id="CHEM-1", subject_name="", class_id=CLASS_ID, attended=1, total=2
    )
    attendance_repo.seed_summary(
        student_uid="s1", subject_id="GONE-9", subject_name="", class_id=CLASS_ID, attended=0, total=1
    )

    cards = {c["subject_id"]: c for c in container.attendance_service.student_dashboard(student)["subjects"]}
    assert cards["CHEM-1"]["subject_name"] == "Chemistry"
    assert cards["CHEM-1"]["faculty"] == "N/A"
    assert cards["GONE-9"]["subject_name"] == "Subject Not Found"


def test_class_view_sorts_students_by_roll_and_builds_history(container, users_repo, teacher):
    users_repo.add(
        StudentProfile(uid="s3", email="s3@test.local", name="Dev", father="", course="BTech", year="1", section="A", roll="3")
    )
    users_repo.add(
        StudentProfile(uid="sx", email="sx@test.local", name="Eve", father="", course="BTech", year="1", section="A", roll="N/A")
    )
    svc = container.attendance_service
    svc.submit_attendance(
        teacher=teacher, class_id=CLASS_ID, marks=_all_present("s1", "s2", absent=("s2",)), lecture_count=2, work_date=date(2025, 2, 3)
    )
    svc.submit_attendance(teacher=teacher, class_id=CLASS_ID, marks=_all_present("s1"), work_date=date(2025, 1, 30))

    view = svc.class_view(teacher=teacher, class_id=CLASS_ID)

    assert [r["roll"] for r in view["students"]] == ["1", "2", "3", "10", "N/A"]
    s3 = next(r for r in view["students"] if r["uid"] == "s3")
    assert (s3["attended"], s3["total"], s3["percentage"]) == (0, 0, "N/A")

    history = view["history"]
    assert [c["id"] for c in history["columns"]] == ["2025-01-30_L1", "2025-02-03_L1", "2025-02-03_L2"]
    assert history["columns"][1]["label"] == "03/02 (L1)"
    assert history["cells"]["s2"] == {"2025-02-03_L1": False, "2025-02-03_L2": False}
    assert history["cells"]["s1"]["2025-01-30_L1"] is True


def test_class_view_only_counts_the_teachers_subject(container, attendance_repo, teacher):
    attendance_repo.mark_lecture(
        LectureRecord(
            date=date(2025, 1, 6),
            subject_id="PHY-1",
            class_id=CLASS_ID,
            student_uid="s1",
            lecture_number=1,
            present=True,
            marked_by="t2",
        ),
        subject_name="Physics",
    )
    view = container.attendance_service.class_view(teacher=teacher, class_id=CLASS_ID)
    s1 = next(r for r in view["students"] if r["uid"] == "s1")
    assert s1["total"] == 0
    assert view["history"]["columns"] == []


def test_class_view_rejects_teacher_without_subject(container):
    nobody = TeacherProfile(uid="t9", email="t9@x", name="T9", subject_id="", subject_name="", class_ids=(CLASS_ID,))
    with pytest.raises(ValidationError):
        container.attendance_service.class_view(teacher=nobody, class_id=CLASS_ID)
