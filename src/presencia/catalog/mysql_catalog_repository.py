from __future__ import annotations

from typing import Optional, Sequence

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import AppOptions, Subject
from .repository import CatalogRepository


class MySQLCatalogRepository(CatalogRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def list_subjects(self) -> Sequence[Subject]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT subject_id, name FROM subjects ORDER BY name")
            return [Subject(subject_id=r["subject_id"], name=r["name"]) for r in fetchall(cur)]

    def get_subject(self, subject_id: str) -> Optional[Subject]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT subject_id, name FROM subjects WHERE subject_id=%s", (subject_id,))
            r = fetchone(cur)
            return Subject(subject_id=r["subject_id"], name=r["name"]) if r else None

    def get_options(self) -> AppOptions:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT category, value FROM app_options ORDER BY category, sort_order, value")
            grouped: dict[str, list[str]] = {"course": [], "year": [], "section": []}
            for r in fetchall(cur):
                grouped.setdefault(r["category"], []).append(r["value"])
            return AppOptions(
                courses=tuple(grouped["course"]),
                years=tuple(grouped["year"]),
                sections=tuple(grouped["section"]),
            )
