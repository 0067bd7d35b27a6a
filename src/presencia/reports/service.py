from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass

from ..attendance import aggregator
from ..attendance.model import AttendanceSummary
from ..attendance.repository import AttendanceRepository
from ..catalog.service import CatalogService
from ..common.validators import require_non_empty
from ..users.model import make_class_id, roll_sort_key
from ..users.repository import UserRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClassOverview:
    class_id: str
    columns: list[dict]
    rows: list[dict]

    def to_dict(self) -> dict:
        return {"class_id": self.class_id, "columns": self.columns, "rows": self.rows}


class OverviewService:
    """Admin projection of a whole class: one row per student, one column per subject."""

    def __init__(self, attendance: AttendanceRepository, users: UserRepository, catalog: CatalogService):
        self._attendance = attendance
        self._users = users
        self._catalog = catalog

    def build_class_overview(self, *, course: str, year: str, section: str) -> ClassOverview:
        class_id = make_class_id(
            require_non_empty(course, "Course"),
            require_non_empty(year, "Year"),
            require_non_empty(section, "Section"),
        )

        students = sorted(self._users.list_students_in_class(class_id), key=lambda s: roll_sort_key(s.roll))
        if not students:
            return ClassOverview(class_id=class_id, columns=[], rows=[])

        by_student: dict[str, dict[str, AttendanceSummary]] = {}
        names: dict[str, str] = {}
        for s in self._attendance.list_summaries_for_students([st.uid for st in students]):
            by_student.setdefault(s.student_uid, {})[s.subject_id] = s
            if s.subject_id not in names:
                names[s.subject_id] = self._catalog.subject_name(s.subject_id, preferred=s.subject_name)

        columns = [
            {"subject_id": sid, "name": name}
            for sid, name in sorted(names.items(), key=lambda kv: (kv[1].lower(), kv[0]))
        ]

        rows = []
        for st in students:
            own = by_student.get(st.uid, {})
            subjects = {}
            for col in columns:
                s = own.get(col["subject_id"])
                subjects[col["subject_id"]] = {
                    "attended": s.attended if s else 0,
                    "total": s.total if s else 0,
                }
            overall = aggregator.overall(own.values())
            rows.append(
                {
                    "uid": st.uid,
                    "roll": st.roll,
                    "name": st.name,
                    "father": st.father,
                    "subjects": subjects,
                    "overall_attended": overall.attended,
                    "overall_total": overall.total,
                    "overall_percentage": overall.percentage,
                }
            )

        logger.debug("Overview for %s: %d students, %d subjects", class_id, len(rows), len(columns))
        return ClassOverview(class_id=class_id, columns=columns, rows=rows)

    @staticmethod
    def _subject_headers(overview: ClassOverview) -> list[tuple[str, str]]:
        """One CSV header per column; clashing display names get the subject id appended."""

        first = overview.rows[0]["subjects"] if overview.rows else {}
        clashes = Counter(col["name"] for col in overview.columns)
        headers = []
        for col in overview.columns:
            sid = col["subject_id"]
            label = col["name"] if clashes[col["name"]] == 1 else f"{col['name']} [{sid}]"
            headers.append((sid, f"{label} (Total: {first.get(sid, {}).get('total', 0)})"))
        return headers

    @classmethod
    def export_rows(cls, overview: ClassOverview) -> tuple[list[str], list[dict]]:
        """Flatten an overview into CSV field names and rows.

        Subject headers carry the lecture total of the first student listed,
        matching the header shown on screen.
        """

        subject_headers = cls._subject_headers(overview)
        fieldnames = ["Roll", "Name", "Father", *[h for _, h in subject_headers], "Overall Attended", "Overall Total", "Overall %"]

        out = []
        for r in overview.rows:
            row = {"Roll": r["roll"], "Name": r["name"], "Father": r["father"]}
            for sid, header in subject_headers:
                row[header] = r["subjects"][sid]["attended"]
            row["Overall Attended"] = r["overall_attended"]
            row["Overall Total"] = r["overall_total"]
            row["Overall %"] = r["overall_percentage"]
            out.append(row)
        return fieldnames, out
