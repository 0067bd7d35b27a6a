from __future__ import annotations

from typing import Optional, Sequence

from ..core.enums import Role
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, placeholders
from .model import (
    StudentProfile,
    TeacherProfile,
    UserCredentials,
    UserProfile,
    profile_from_row,
    roll_sort_key,
)
from .repository import UserRepository

_PROFILE_COLUMNS = "uid, email, role, name, father, course, year, section, roll, class_id, subject_id, subject_name, contact"
_KNOWN_ROLES = tuple(r.value for r in Role)


def _profile_values(profile: UserProfile) -> dict:
    values = {
        "uid": profile.uid,
        "email": profile.email,
        "role": profile.role.value,
        "name": profile.name,
        "father": None,
        "course": None,
        "year": None,
        "section": None,
        "roll": None,
        "class_id": None,
        "subject_id": None,
        "subject_name": None,
        "contact": None,
    }
    if isinstance(profile, StudentProfile):
        values.update(
            father=profile.father,
            course=profile.course,
            year=profile.year,
            section=profile.section,
            roll=profile.roll,
            class_id=profile.class_id,
        )
    elif isinstance(profile, TeacherProfile):
        values.update(subject_id=profile.subject_id, subject_name=profile.subject_name, contact=profile.contact)
    return values


class MySQLUserRepository(UserRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    @staticmethod
    def _class_ids_by_uid(cur, uids: Sequence[str]) -> dict[str, list[str]]:
        if not uids:
            return {}
        cur.execute(
            f"SELECT uid, class_id FROM teacher_classes WHERE uid IN ({placeholders(uids)}) ORDER BY class_id",
            tuple(uids),
        )
        out: dict[str, list[str]] = {}
        for r in fetchall(cur):
            out.setdefault(r["uid"], []).append(r["class_id"])
        return out

    def _build(self, cur, rows: list[dict]) -> list[UserProfile]:
        teacher_uids = [r["uid"] for r in rows if str(r.get("role") or "").lower() == Role.TEACHER.value]
        class_map = self._class_ids_by_uid(cur, teacher_uids)
        return [profile_from_row(r, class_map.get(r["uid"], ())) for r in rows]

    def get_profile(self, uid: str) -> Optional[UserProfile]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_PROFILE_COLUMNS} FROM users WHERE uid=%s", (uid,))
            row = fetchone(cur)
            if not row:
                return None
            return self._build(cur, [row])[0]

    def get_credentials_by_email(self, email: str) -> Optional[UserCredentials]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT uid, email, password_hash FROM users WHERE email=%s", (email,))
            row = fetchone(cur)
            if not row:
                return None
            return UserCredentials(uid=row["uid"], email=row["email"], password_hash=row.get("password_hash"))

    def list_profiles(self, *, role: Optional[Role] = None) -> Sequence[UserProfile]:
        roles = (role.value,) if role is not None else _KNOWN_ROLES
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_PROFILE_COLUMNS} FROM users WHERE LOWER(role) IN ({placeholders(roles)}) ORDER BY name",
                roles,
            )
            return self._build(cur, fetchall(cur))

    def list_students_in_class(self, class_id: str) -> Sequence[StudentProfile]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_PROFILE_COLUMNS} FROM users WHERE class_id=%s AND LOWER(role)=%s",
                (class_id, Role.STUDENT.value),
            )
            students = self._build(cur, fetchall(cur))
        return sorted(students, key=lambda s: roll_sort_key(s.roll))

    def list_teachers_for_class(self, class_id: str) -> Sequence[TeacherProfile]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {", ".join("u." + c.strip() for c in _PROFILE_COLUMNS.split(","))}
                FROM users u
                JOIN teacher_classes tc ON tc.uid = u.uid
                WHERE tc.class_id=%s AND LOWER(u.role)=%s
                ORDER BY u.name
                """,
                (class_id, Role.TEACHER.value),
            )
            return self._build(cur, fetchall(cur))

    def create_profile(self, profile: UserProfile, *, password_hash: Optional[str] = None) -> None:
        values = _profile_values(profile)
        values["password_hash"] = password_hash
        cols = list(values.keys())
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"INSERT INTO users({', '.join(cols)}) VALUES({placeholders(cols)})",
                tuple(values[c] for c in cols),
            )
            if isinstance(profile, TeacherProfile):
                self._replace_classes(cur, profile.uid, profile.class_ids)

    def update_profile(self, profile: UserProfile) -> bool:
        values = _profile_values(profile)
        uid = values.pop("uid")
        assignments = ", ".join(f"{c}=%s" for c in values.keys())
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"UPDATE users SET {assignments} WHERE uid=%s", tuple(values.values()) + (uid,))
            cur.execute("SELECT 1 AS found FROM users WHERE uid=%s", (uid,))
            found = fetchone(cur) is not None
            if found and isinstance(profile, TeacherProfile):
                self._replace_classes(cur, uid, profile.class_ids)
            return found

    @staticmethod
    def _replace_classes(cur, uid: str, class_ids) -> None:
        cur.execute("DELETE FROM teacher_classes WHERE uid=%s", (uid,))
        unique_ids = sorted(set(class_ids or ()))
        if unique_ids:
            cur.executemany(
                "INSERT INTO teacher_classes(uid, class_id) VALUES(%s,%s)",
                [(uid, c) for c in unique_ids],
            )

    def delete_profile(self, uid: str) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM users WHERE uid=%s", (uid,))
            return cur.rowcount > 0
