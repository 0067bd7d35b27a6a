from __future__ import annotations

import pytest

from presencia.core.enums import Role
from presencia.core.exceptions import IntegrityError
from presencia.users.model import (
    AdminProfile,
    StudentProfile,
    TeacherProfile,
    make_class_id,
    profile_from_row,
    profile_to_dict,
    roll_sort_key,
)


def test_student_row_builds_student_profile():
    p = profile_from_row(
        {"uid": "s1", "email": "s1@x", "role": "student", "name": "Asha", "course": "BTech", "year": "1", "section": "A", "roll": 7}
    )
    assert isinstance(p, StudentProfile)
    assert p.role == Role.STUDENT
    assert p.roll == "7"
    assert p.class_id == "BTech-1-A"


def test_teacher_row_keeps_class_ids():
    p = profile_from_row(
        {"uid": "t1", "email": "t@x", "role": "Teacher", "name": "Rao", "subject_id": "MATH-1", "subject_name": "Maths"},
        class_ids=["BTech-1-A"],
    )
    assert isinstance(p, TeacherProfile)
    assert p.teaches("BTech-1-A")
    assert not p.teaches("BTech-1-B")


def test_admin_row():
    assert isinstance(profile_from_row({"uid": "a1", "role": "admin", "name": "Root"}), AdminProfile)


@pytest.mark.parametrize("role", ["superuser", "", None])
def test_unknown_role_is_integrity_error(role):
    with pytest.raises(IntegrityError):
        profile_from_row({"uid": "x", "role": role, "name": "X"})


def test_class_id_and_roll_ordering():
    assert make_class_id("BTech", "2", "B") == "BTech-2-B"
    assert sorted(["10", "x", "2", " 1 "], key=roll_sort_key) == [" 1 ", "2", "10", "x"]


def test_profile_to_dict_is_role_specific():
    d = profile_to_dict(
        TeacherProfile(uid="t1", email="t@x", name="Rao", subject_id="M", subject_name="Maths", class_ids=("C1",))
    )
    assert d["role"] == "teacher"
    assert d["class_ids"] == ["C1"]
    assert "roll" not in d
