from __future__ import annotations

from typing import Optional, Protocol, Sequence

from .model import AppOptions, Subject


class CatalogRepository(Protocol):
    def list_subjects(self) -> Sequence[Subject]:
        raise NotImplementedError

    def get_subject(self, subject_id: str) -> Optional[Subject]:
        raise NotImplementedError

    def get_options(self) -> AppOptions:
        raise NotImplementedError
