from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Union

from ..core.enums import Role
from ..core.exceptions import IntegrityError


def make_class_id(course: str, year: str, section: str) -> str:
    """Composite key joining students to their records and summaries."""

    return f"{course}-{year}-{section}"


def roll_sort_key(roll) -> tuple:
    """Numeric rolls first in numeric order; anything unparsable sorts last."""

    try:
        return (0, int(str(roll).strip()))
    except (TypeError, ValueError):
        return (1, 0)


@dataclass(frozen=True)
class StudentProfile:
    uid: str
    email: str
    name: str
    father: str
    course: str
    year: str
    section: str
    roll: str
    role: Role = field(default=Role.STUDENT, init=False)

    @property
    def class_id(self) -> str:
        return make_class_id(self.course, self.year, self.section)


@dataclass(frozen=True)
class TeacherProfile:
    uid: str
    email: str
    name: str
    subject_id: str
    subject_name: str
    class_ids: tuple[str, ...] = ()
    contact: Optional[str] = None
    role: Role = field(default=Role.TEACHER, init=False)

    def teaches(self, class_id: str) -> bool:
        return class_id in self.class_ids


@dataclass(frozen=True)
class AdminProfile:
    uid: str
    email: str
    name: str
    role: Role = field(default=Role.ADMIN, init=False)


UserProfile = Union[StudentProfile, TeacherProfile, AdminProfile]


def _student(row: dict, class_ids) -> StudentProfile:
    return StudentProfile(
        uid=row["uid"],
        email=row.get("email") or "",
        name=row.get("name") or "",
        father=row.get("father") or "",
        course=row.get("course") or "",
        year=row.get("year") or "",
        section=row.get("section") or "",
        roll=str(row.get("roll") or ""),
    )


def _teacher(row: dict, class_ids) -> TeacherProfile:
    return TeacherProfile(
        uid=row["uid"],
        email=row.get("email") or "",
        name=row.get("name") or "",
        subject_id=row.get("subject_id") or "",
        subject_name=row.get("subject_name") or "",
        class_ids=tuple(class_ids or ()),
        contact=row.get("contact"),
    )


def _admin(row: dict, class_ids) -> AdminProfile:
    return AdminProfile(uid=row["uid"], email=row.get("email") or "", name=row.get("name") or "")


_BUILDERS = {
    Role.STUDENT: _student,
    Role.TEACHER: _teacher,
    Role.ADMIN: _admin,
}


def profile_from_row(row: dict, class_ids=()) -> UserProfile:
    """Build the role-specific profile; an unknown role tag is a data integrity failure."""

    raw_role = str(row.get("role") or "").strip().lower()
    try:
        role = Role(raw_role)
    except ValueError:
        raise IntegrityError(f"Unknown user role: {row.get('role')!r}")
    return _BUILDERS[role](row, class_ids)


def profile_to_dict(profile: UserProfile) -> dict:
    out = {"uid": profile.uid, "email": profile.email, "name": profile.name, "role": profile.role.value}
    if isinstance(profile, StudentProfile):
        out.update(
            father=profile.father,
            course=profile.course,
            year=profile.year,
            section=profile.section,
            roll=profile.roll,
            class_id=profile.class_id,
        )
    elif isinstance(profile, TeacherProfile):
        out.update(
            subject_id=profile.subject_id,
            subject_name=profile.subject_name,
            class_ids=list(profile.class_ids),
            contact=profile.contact,
        )
    return out


@dataclass(frozen=True)
class UserCredentials:
    uid: str
    email: str
    password_hash: Optional[str]
