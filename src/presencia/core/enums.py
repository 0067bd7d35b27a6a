from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """User role, used for dashboard dispatch and permission checks."""

    STUDENT = "student"
    TEACHER = "teacher"
    ADMIN = "admin"


class CorrectionStatus(str, Enum):
    """Correction workflow state. PENDING is the only non-terminal state."""

    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"

    @property
    def is_terminal(self) -> bool:
        return self is not CorrectionStatus.PENDING


class CorrectionReason(str, Enum):
    PRESENT_MARKED_ABSENT = "Present but marked absent"
    ENTERED_LATE = "Entered late but attended"
    TECHNICAL_ISSUE = "Technical marking issue"
    COLLEGE_ACTIVITY = "Participating in other college activity"
