"""Session guards and JSON error responses shared by every controller."""

from __future__ import annotations

import logging
from functools import wraps
from typing import Optional

from flask import jsonify, request, session

from ..core.enums import Role
from ..core.exceptions import (
    AlreadySatisfiedError,
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    DomainError,
    IntegrityError,
    NotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    ValidationError: 400,
    AuthenticationError: 401,
    AuthorizationError: 403,
    NotFoundError: 404,
    AlreadySatisfiedError: 409,
    ConflictError: 409,
    IntegrityError: 401,
}


def status_for(error: DomainError) -> int:
    for cls in type(error).__mro__:
        if cls in ERROR_STATUS:
            return ERROR_STATUS[cls]
    return 400


def ok(payload: Optional[dict] = None, status: int = 200):
    body = {"success": True}
    body.update(payload or {})
    return jsonify(body), status


def fail(message: str, status: int):
    return jsonify({"success": False, "message": message}), status


def session_role() -> Optional[Role]:
    try:
        return Role(session.get("role"))
    except ValueError:
        return None


def json_errors(view):
    """Turn domain errors into `{"success": false}` responses; log anything unexpected."""

    @wraps(view)
    def wrapper(*args, **kwargs):
        try:
            return view(*args, **kwargs)
        except DomainError as e:
            if isinstance(e, IntegrityError):
                # Forced sign-out: the account has no usable profile.
                logger.warning("Signed out uid=%s: %s", session.get("uid"), e)
                session.clear()
            elif isinstance(e, ConflictError):
                logger.warning("Conflict in %s: %s", view.__name__, e)
            return fail(str(e), status_for(e))
        except Exception:
            logger.exception("Unexpected error in %s", view.__name__)
            return fail("System error, please try again", 500)

    return wrapper


def login_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        if "uid" not in session:
            return fail("Please sign in to continue", 401)
        return view(*args, **kwargs)

    return wrapper


def roles_required(*roles: Role):
    def decorator(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            if "uid" not in session:
                return fail("Please sign in to continue", 401)
            if session_role() not in roles:
                return fail("You do not have permission", 403)
            return view(*args, **kwargs)

        return wrapper

    return decorator


def request_data() -> dict:
    if request.is_json:
        return request.get_json(silent=True) or {}
    return request.form.to_dict()


def current_profile(auth_service, *expected):
    """Profile of the signed-in user, which must be one of `expected` when given."""

    profile = auth_service.load_profile(session["uid"])
    if expected and not isinstance(profile, expected):
        raise AuthorizationError("You do not have permission")
    return profile
