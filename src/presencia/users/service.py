from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from werkzeug.security import check_password_hash, generate_password_hash

from ..catalog.repository import CatalogRepository
from ..common.validators import require_choice, require_min_length, require_non_empty
from ..core.enums import Role
from ..core.exceptions import AuthenticationError, AuthorizationError, IntegrityError, ValidationError
from .model import AdminProfile, StudentProfile, TeacherProfile, UserProfile, profile_to_dict, roll_sort_key
from .repository import UserRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionUser:
    """What we store into the Flask session after login."""

    uid: str
    name: str
    role: Role


class AuthService:
    """Use case: sign in and resolve the signed-in user's profile."""

    def __init__(self, users: UserRepository):
        self._users = users

    def authenticate(self, email: str, password: str) -> SessionUser:
        creds = self._users.get_credentials_by_email((email or "").strip())
        if not creds or not creds.password_hash:
            raise AuthenticationError("Invalid email or password")

        try:
            ok = check_password_hash(creds.password_hash, password or "")
        except ValueError:
            # e.g. placeholder hashes like 'CHANGE_ME' or corrupted values
            ok = False

        if not ok:
            raise AuthenticationError("Invalid email or password")

        profile = self.load_profile(creds.uid)
        return SessionUser(uid=profile.uid, name=profile.name, role=profile.role)

    def load_profile(self, uid: str) -> UserProfile:
        """An identity without a usable profile cannot get a dashboard."""

        profile = self._users.get_profile(uid)
        if profile is None:
            logger.error("No user profile found for uid=%s", uid)
            raise IntegrityError("No profile exists for this account")
        return profile


class UserService:
    """Use case: manage user profiles (admin)."""

    def __init__(self, users: UserRepository, catalog: CatalogRepository):
        self._users = users
        self._catalog = catalog

    @staticmethod
    def _require_admin(current_role: Role) -> None:
        if current_role != Role.ADMIN:
            raise AuthorizationError("You do not have permission")

    def _build_profile(self, data: dict, *, uid: str) -> UserProfile:
        role = require_choice(str(data.get("role") or "").strip().lower(), Role, "Role")
        email = require_non_empty(data.get("email", ""), "Email")
        name = require_non_empty(data.get("name", ""), "Name")

        if role == Role.STUDENT:
            return StudentProfile(
                uid=uid,
                email=email,
                name=name,
                father=(data.get("father") or "").strip(),
                course=require_non_empty(data.get("course", ""), "Course"),
                year=require_non_empty(data.get("year", ""), "Year"),
                section=require_non_empty(data.get("section", ""), "Section"),
                roll=require_non_empty(str(data.get("roll") or ""), "Roll"),
            )

        if role == Role.TEACHER:
            subject_id = require_non_empty(data.get("subject_id", ""), "Subject")
            subject = self._catalog.get_subject(subject_id)
            if subject is None:
                raise ValidationError("Subject does not exist")
            class_ids = data.get("class_ids") or []
            if isinstance(class_ids, str):
                class_ids = [c for c in class_ids.split(",") if c.strip()]
            return TeacherProfile(
                uid=uid,
                email=email,
                name=name,
                subject_id=subject.subject_id,
                subject_name=subject.name,
                class_ids=tuple(sorted({c.strip() for c in class_ids})),
                contact=(data.get("contact") or "").strip() or None,
            )

        return AdminProfile(uid=uid, email=email, name=name)

    def create_profile(self, *, current_role: Role, data: dict) -> UserProfile:
        self._require_admin(current_role)

        uid = require_non_empty(data.get("uid", ""), "User ID")
        profile = self._build_profile(data, uid=uid)

        if self._users.get_profile(uid) is not None:
            raise ValidationError(f"A user profile already exists with UID: {uid}")

        password = data.get("password") or ""
        password_hash = None
        if password:
            require_min_length(password, "Password", 6)
            password_hash = generate_password_hash(password)

        self._users.create_profile(profile, password_hash=password_hash)
        logger.info("Created %s profile uid=%s", profile.role.value, uid)
        return profile

    def update_profile(self, *, current_role: Role, uid: str, data: dict) -> UserProfile:
        self._require_admin(current_role)

        existing = self._users.get_profile(uid)
        if existing is None:
            raise ValidationError("User does not exist")

        merged = profile_to_dict(existing)
        merged.update({k: v for k, v in data.items() if v is not None})
        profile = self._build_profile(merged, uid=uid)

        if not self._users.update_profile(profile):
            raise ValidationError("Failed to update user")
        logger.info("Updated profile uid=%s", uid)
        return profile

    def delete_profile(self, *, current_role: Role, uid: str) -> None:
        self._require_admin(current_role)

        profile = self._users.get_profile(uid)
        if profile is None:
            raise ValidationError("User does not exist")
        if profile.role == Role.ADMIN:
            raise ValidationError("Cannot delete an admin account")

        if not self._users.delete_profile(uid):
            raise ValidationError("Failed to delete user")
        logger.info("Deleted profile uid=%s", uid)

    def list_by_role(
        self,
        *,
        current_role: Role,
        role: Role,
        course: Optional[str] = None,
        year: Optional[str] = None,
        section: Optional[str] = None,
    ) -> Sequence[UserProfile]:
        self._require_admin(current_role)

        profiles = list(self._users.list_profiles(role=role))
        if role != Role.STUDENT:
            return sorted(profiles, key=lambda p: (p.name or "").lower())

        def matches(p: StudentProfile) -> bool:
            return (
                (not course or course == "All" or p.course == course)
                and (not year or year == "All" or p.year == year)
                and (not section or section == "All" or p.section == section)
            )

        return sorted((p for p in profiles if matches(p)), key=lambda p: roll_sort_key(p.roll))
