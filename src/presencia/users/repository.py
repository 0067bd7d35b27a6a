from __future__ import annotations

from typing import Optional, Protocol, Sequence

from ..core.enums import Role
from .model import StudentProfile, TeacherProfile, UserCredentials, UserProfile


class UserRepository(Protocol):
    """Profiles of students, teachers and admins.

    Note (DIP): services depend on this interface, not on a concrete database.
    """

    def get_profile(self, uid: str) -> Optional[UserProfile]:
        """None when no profile row exists; IntegrityError when the row's role is unknown."""

        raise NotImplementedError

    def get_credentials_by_email(self, email: str) -> Optional[UserCredentials]:
        raise NotImplementedError

    def list_profiles(self, *, role: Optional[Role] = None) -> Sequence[UserProfile]:
        raise NotImplementedError

    def list_students_in_class(self, class_id: str) -> Sequence[StudentProfile]:
        raise NotImplementedError

    def list_teachers_for_class(self, class_id: str) -> Sequence[TeacherProfile]:
        raise NotImplementedError

    def create_profile(self, profile: UserProfile, *, password_hash: Optional[str] = None) -> None:
        raise NotImplementedError

    def update_profile(self, profile: UserProfile) -> bool:
        raise NotImplementedError

    def delete_profile(self, uid: str) -> bool:
        raise NotImplementedError
