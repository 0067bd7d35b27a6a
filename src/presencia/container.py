from __future__ import annotations

from dataclasses import dataclass

from .attendance.cache import SummaryCache
from .attendance.mysql_attendance_repository import MySQLAttendanceRepository
from .attendance.repository import AttendanceRepository
from .attendance.service import AttendanceService
from .catalog.mysql_catalog_repository import MySQLCatalogRepository
from .catalog.repository import CatalogRepository
from .catalog.service import CatalogService
from .core.constants import DEFAULT_CONFLICT_RETRIES, DEFAULT_STREAM_POLL_SECONDS, DEFAULT_SUMMARY_CACHE_TTL_SECONDS
from .corrections.mysql_correction_repository import MySQLCorrectionRepository
from .corrections.repository import CorrectionRepository
from .corrections.service import CorrectionService
from .database.connection import DBConfig, DatabaseConnection
from .realtime.stream import StreamRegistry
from .reports.service import OverviewService
from .users.mysql_user_repository import MySQLUserRepository
from .users.repository import UserRepository
from .users.service import AuthService, UserService


@dataclass(frozen=True)
class Container:
    users_repo: UserRepository
    catalog_repo: CatalogRepository
    attendance_repo: AttendanceRepository
    corrections_repo: CorrectionRepository

    summary_cache: SummaryCache
    streams: StreamRegistry

    auth_service: AuthService
    user_service: UserService
    catalog_service: CatalogService
    attendance_service: AttendanceService
    correction_service: CorrectionService
    overview_service: OverviewService

    stream_poll_seconds: float = DEFAULT_STREAM_POLL_SECONDS


def wire(
    *,
    users_repo: UserRepository,
    catalog_repo: CatalogRepository,
    attendance_repo: AttendanceRepository,
    corrections_repo: CorrectionRepository,
    retries: int = DEFAULT_CONFLICT_RETRIES,
    stream_poll_seconds: float = DEFAULT_STREAM_POLL_SECONDS,
    cache_ttl_seconds: float = DEFAULT_SUMMARY_CACHE_TTL_SECONDS,
) -> Container:
    """Build every service on top of the given repositories (MySQL or in-memory)."""

    summary_cache = SummaryCache(attendance_repo, ttl_seconds=cache_ttl_seconds)
    catalog_service = CatalogService(catalog_repo)

    return Container(
        users_repo=users_repo,
        catalog_repo=catalog_repo,
        attendance_repo=attendance_repo,
        corrections_repo=corrections_repo,
        summary_cache=summary_cache,
        streams=StreamRegistry(),
        auth_service=AuthService(users_repo),
        user_service=UserService(users_repo, catalog_repo),
        catalog_service=catalog_service,
        attendance_service=AttendanceService(
            attendance_repo,
            users_repo,
            catalog_service,
            cache=summary_cache,
            retries=retries,
        ),
        correction_service=CorrectionService(
            corrections_repo,
            attendance_repo,
            catalog_service,
            cache=summary_cache,
            retries=retries,
        ),
        overview_service=OverviewService(attendance_repo, users_repo, catalog_service),
        stream_poll_seconds=float(stream_poll_seconds),
    )


def build_container(
    *,
    db_config: dict,
    retries: int = DEFAULT_CONFLICT_RETRIES,
    stream_poll_seconds: float = DEFAULT_STREAM_POLL_SECONDS,
    cache_ttl_seconds: float = DEFAULT_SUMMARY_CACHE_TTL_SECONDS,
) -> Container:
    conn = DatabaseConnection.get_instance(DBConfig.from_dict(db_config))

    return wire(
        users_repo=MySQLUserRepository(conn),
        catalog_repo=MySQLCatalogRepository(conn),
        attendance_repo=MySQLAttendanceRepository(conn),
        corrections_repo=MySQLCorrectionRepository(conn),
        retries=retries,
        stream_poll_seconds=stream_poll_seconds,
        cache_ttl_seconds=cache_ttl_seconds,
    )
