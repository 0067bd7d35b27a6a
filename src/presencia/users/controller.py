from __future__ import annotations

import logging

from flask import Flask, request, session

from ..common.web import fail, json_errors, login_required, ok, request_data, roles_required, session_role
from ..container import Container
from ..core.enums import Role
from ..core.exceptions import ValidationError
from .model import profile_to_dict

logger = logging.getLogger(__name__)


def register(app: Flask, container: Container) -> None:
    @app.route("/login", methods=["POST"], endpoint="login")
    @json_errors
    def login():
        data = request_data()
        user = container.auth_service.authenticate(data.get("email", ""), data.get("password", ""))

        session.clear()
        session["uid"] = user.uid
        session["name"] = user.name
        session["role"] = user.role.value
        logger.info("Signed in uid=%s role=%s", user.uid, user.role.value)
        return ok({"user": {"uid": user.uid, "name": user.name, "role": user.role.value}})

    @app.route("/logout", methods=["POST"], endpoint="logout")
    def logout():
        session.clear()
        return ok()

    @app.route("/api/me", methods=["GET"], endpoint="me")
    @login_required
    @json_errors
    def me():
        profile = container.auth_service.load_profile(session["uid"])
        return ok({"profile": profile_to_dict(profile)})

    @app.route("/api/admin/users", methods=["GET"], endpoint="admin_list_users")
    @roles_required(Role.ADMIN)
    @json_errors
    def admin_list_users():
        try:
            role = Role((request.args.get("role") or Role.STUDENT.value).lower())
        except ValueError:
            raise ValidationError("Unknown role filter")

        profiles = container.user_service.list_by_role(
            current_role=session_role(),
            role=role,
            course=request.args.get("course"),
            year=request.args.get("year"),
            section=request.args.get("section"),
        )
        return ok({"users": [profile_to_dict(p) for p in profiles]})

    @app.route("/api/admin/users", methods=["POST"], endpoint="admin_create_user")
    @roles_required(Role.ADMIN)
    @json_errors
    def admin_create_user():
        profile = container.user_service.create_profile(current_role=session_role(), data=request_data())
        return ok({"user": profile_to_dict(profile)}, 201)

    @app.route("/api/admin/users/<uid>", methods=["PUT"], endpoint="admin_update_user")
    @roles_required(Role.ADMIN)
    @json_errors
    def admin_update_user(uid: str):
        profile = container.user_service.update_profile(current_role=session_role(), uid=uid, data=request_data())
        return ok({"user": profile_to_dict(profile)})

    @app.route("/api/admin/users/<uid>", methods=["DELETE"], endpoint="admin_delete_user")
    @roles_required(Role.ADMIN)
    @json_errors
    def admin_delete_user(uid: str):
        if uid == session.get("uid"):
            return fail("You cannot delete your own account", 400)
        container.user_service.delete_profile(current_role=session_role(), uid=uid)
        return ok()
