from __future__ import annotations

import importlib
import logging
from typing import Optional

from dotenv import load_dotenv
from flask import Flask

from .config import get_settings_module
from .container import Container, build_container
from .database.bootstrap import apply_schema, list_tables, seed_demo_data

from .attendance.controller import register as register_attendance
from .catalog.controller import register as register_catalog
from .corrections.controller import register as register_corrections
from .reports.controller import register as register_reports
from .users.controller import register as register_users

logger = logging.getLogger(__name__)


def create_app(container: Optional[Container] = None) -> Flask:
    """App factory. Pass a prebuilt container to run on other repositories (tests)."""

    load_dotenv(override=False)
    app = Flask(__name__)

    settings_module = get_settings_module()
    settings = importlib.import_module(settings_module)

    logging.basicConfig(
        level=getattr(settings, "LOG_LEVEL", "INFO"),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    app.secret_key = getattr(settings, "SECRET_KEY")
    app.config["DEBUG"] = bool(getattr(settings, "DEBUG", False))
    app.config["TESTING"] = bool(getattr(settings, "TESTING", False))
    db_config = getattr(settings, "DB_CONFIG")

    if container is None:
        logger.info(
            "settings=%s db=%s@%s:%s/%s",
            settings_module,
            db_config.get("user"),
            db_config.get("host"),
            db_config.get("port", 3306),
            db_config.get("database"),
        )

        if bool(getattr(settings, "AUTO_INIT_DB", False)):
            apply_schema(db_config)
            logger.info("Schema ready (tables=%d)", len(list_tables(db_config)))
        if bool(getattr(settings, "AUTO_SEED_DB", False)):
            seed_demo_data(db_config)
            logger.info("Demo seed ready")

        container = build_container(
            db_config=db_config,
            retries=int(getattr(settings, "CONFLICT_RETRIES", 3)),
            stream_poll_seconds=float(getattr(settings, "STREAM_POLL_SECONDS", 2.0)),
            cache_ttl_seconds=float(getattr(settings, "SUMMARY_CACHE_TTL", 30.0)),
        )

    app.extensions["presencia"] = container

    register_users(app, container)
    register_catalog(app, container)
    register_attendance(app, container)
    register_corrections(app, container)
    register_reports(app, container)

    return app
