from __future__ import annotations

from flask import Flask

from ..common.web import json_errors, login_required, ok
from ..container import Container


def register(app: Flask, container: Container) -> None:
    @app.route("/api/catalog", methods=["GET"], endpoint="catalog")
    @login_required
    @json_errors
    def catalog():
        return ok(container.catalog_service.to_dict())
