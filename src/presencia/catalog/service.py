from __future__ import annotations

import logging
from typing import Optional

from ..core.constants import SUBJECT_NOT_FOUND
from ..users.model import make_class_id
from .model import AppOptions
from .repository import CatalogRepository

logger = logging.getLogger(__name__)


class CatalogService:
    """Read-only access to master data (subjects, courses, years, sections)."""

    def __init__(self, catalog: CatalogRepository):
        self._catalog = catalog

    def list_subjects(self):
        return self._catalog.list_subjects()

    def subject_name(self, subject_id: str, *, preferred: Optional[str] = None) -> str:
        """Name stored alongside the data wins; the master list is the fallback."""

        if preferred:
            return preferred
        subject = self._catalog.get_subject(subject_id)
        if subject is None:
            logger.warning("Subject %s missing from master data", subject_id)
            return SUBJECT_NOT_FOUND
        return subject.name

    def app_options(self) -> AppOptions:
        return self._catalog.get_options()

    def class_ids(self) -> list[str]:
        options = self.app_options()
        return [
            make_class_id(course, year, section)
            for course in options.courses
            for year in options.years
            for section in options.sections
        ]

    def to_dict(self) -> dict:
        return {
            "subjects": [{"subject_id": s.subject_id, "name": s.name} for s in self.list_subjects()],
            "options": self.app_options().to_dict(),
            "class_ids": self.class_ids(),
        }
