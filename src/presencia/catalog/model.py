from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Subject:
    subject_id: str
    name: str


@dataclass(frozen=True)
class AppOptions:
    """Lookup lists used to build class ids and filter screens."""

    courses: tuple[str, ...] = ()
    years: tuple[str, ...] = ()
    sections: tuple[str, ...] = ()

    def to_dict(self) -> dict:
        return {"courses": list(self.courses), "years": list(self.years), "sections": list(self.sections)}
