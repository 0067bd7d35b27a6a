from __future__ import annotations

import csv
import io

from flask import Flask, request

from ..common.datetime_utils import today_local
from ..common.web import json_errors, ok, roles_required
from ..container import Container
from ..core.enums import Role


def register(app: Flask, container: Container) -> None:
    def _overview():
        return container.overview_service.build_class_overview(
            course=request.args.get("course", ""),
            year=request.args.get("year", ""),
            section=request.args.get("section", ""),
        )

    def _write_overview_csv(*, fieldnames, rows, filename: str):
        out = io.StringIO()
        writer = csv.DictWriter(out, fieldnames=fieldnames)
        writer.writeheader()
        for row in rows:
            writer.writerow(row)

        csv_bytes = out.getvalue().encode("utf-8-sig")
        return app.response_class(
            csv_bytes,
            mimetype="text/csv",
            headers={"Content-Disposition": f"attachment; filename={filename}"},
        )

    @app.route("/api/admin/overview", methods=["GET"], endpoint="admin_overview")
    @roles_required(Role.ADMIN)
    @json_errors
    def admin_overview():
        return ok(_overview().to_dict())

    @app.route("/api/admin/overview.csv", methods=["GET"], endpoint="admin_overview_csv")
    @roles_required(Role.ADMIN)
    @json_errors
    def admin_overview_csv():
        overview = _overview()
        fieldnames, rows = container.overview_service.export_rows(overview)
        filename = f"Attendance_Report_{overview.class_id.replace('-', '_')}_{today_local().isoformat()}.csv"
        return _write_overview_csv(fieldnames=fieldnames, rows=rows, filename=filename)
