class DomainError(Exception):
    """Base exception for business rule violations."""


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""


class InvalidTransitionError(ValidationError):
    """Raised when a decision targets a correction that is no longer pending."""


class AuthenticationError(DomainError):
    """Raised when login credentials are invalid."""


class AuthorizationError(DomainError):
    """Raised when a user lacks permission for an action."""


class NotFoundError(DomainError):
    """Raised when a referenced entity does not exist."""


class AlreadySatisfiedError(DomainError):
    """Raised when an approval would not change anything (record already present)."""


class ConflictError(DomainError):
    """Raised when a transaction lost a race with a concurrent writer."""


class IntegrityError(DomainError):
    """Raised when stored data is inconsistent (e.g. user without a profile)."""
