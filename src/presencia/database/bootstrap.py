from __future__ import annotations

import re
from pathlib import Path
from typing import Iterable

import mysql.connector
from werkzeug.security import generate_password_hash

from .connection import DBConfig

DEFAULT_SCHEMA_PATH = Path(__file__).resolve().parent / "schema.sql"


def _as_target(db_config: dict) -> DBConfig:
    return DBConfig.from_dict(db_config)


def _connect(target: DBConfig, *, with_database: bool = True):
    kwargs = dict(
        host=target.host,
        port=target.port,
        user=target.user,
        password=target.password,
        use_pure=True,
    )
    if with_database:
        kwargs["database"] = target.database
    return mysql.connector.connect(**kwargs)


def _strip_create_db_and_use(sql: str) -> str:
    # Keep schema.sql usable regardless of the configured DB name.
    sql = re.sub(r"(?im)^\s*CREATE\s+DATABASE\b.*?;\s*$", "", sql)
    sql = re.sub(r"(?im)^\s*USE\b.*?;\s*$", "", sql)
    return sql


def _strip_line_comments(sql: str) -> str:
    return re.sub(r"(?m)^\s*--.*$", "", sql)


def iter_sql_statements(sql: str) -> Iterable[str]:
    # Minimal SQL splitter for schema files (handles ';' inside quotes).
    buf: list[str] = []
    in_single = False
    in_double = False
    escape = False

    for ch in sql:
        if escape:
            buf.append(ch)
            escape = False
            continue

        if ch == "\\":
            buf.append(ch)
            escape = True
            continue

        if ch == "'" and not in_double:
            in_single = not in_single
        elif ch == '"' and not in_single:
            in_double = not in_double
        elif ch == ";" and not in_single and not in_double:
            stmt = "".join(buf).strip()
            buf.clear()
            if stmt:
                yield stmt
            continue

        buf.append(ch)

    tail = "".join(buf).strip()
    if tail:
        yield tail


def ensure_database_exists(db_config: dict) -> None:
    target = _as_target(db_config)
    conn = _connect(target, with_database=False)
    try:
        cur = conn.cursor()
        cur.execute(
            f"CREATE DATABASE IF NOT EXISTS `{target.database}` CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci;"
        )
        conn.commit()
    finally:
        conn.close()


def apply_schema(db_config: dict, *, schema_path: str | Path = DEFAULT_SCHEMA_PATH) -> None:
    ensure_database_exists(db_config)

    sql = _strip_create_db_and_use(Path(schema_path).read_text(encoding="utf-8"))
    sql = _strip_line_comments(sql)

    conn = _connect(_as_target(db_config))
    try:
        cur = conn.cursor()
        for stmt in iter_sql_statements(sql):
            cur.execute(stmt)
        conn.commit()
    finally:
        conn.close()


def seed_demo_data(db_config: dict) -> None:
    """Idempotent demo seed: master data plus one admin, teacher and student."""

    conn = _connect(_as_target(db_config))
    try:
        cur = conn.cursor()

        subjects = [("BAS-101", "Applied Mathematics"), ("BAS-105", "Engineering Physics"), ("CSE-201", "Data Structures")]
        cur.executemany(
            "INSERT INTO subjects(subject_id, name) VALUES(%s,%s) AS new ON DUPLICATE KEY UPDATE name=new.name",
            subjects,
        )

        options = [("course", "BTech", 0), ("year", "1", 0), ("year", "2", 1), ("section", "A", 0), ("section", "B", 1)]
        cur.executemany(
            "INSERT INTO app_options(category, value, sort_order) VALUES(%s,%s,%s) AS new "
            "ON DUPLICATE KEY UPDATE sort_order=new.sort_order",
            options,
        )

        def upsert_user(uid: str, email: str, password: str, role: str, name: str, **fields) -> None:
            cols = ["uid", "email", "password_hash", "role", "name"] + list(fields.keys())
            values = [uid, email, generate_password_hash(password), role, name] + list(fields.values())
            updates = ", ".join(f"{c}=new.{c}" for c in cols if c != "uid")
            cur.execute(
                f"INSERT INTO users({', '.join(cols)}) VALUES({', '.join(['%s'] * len(cols))}) AS new "
                f"ON DUPLICATE KEY UPDATE {updates}",
                tuple(values),
            )

        upsert_user("admin-demo", "admin@presencia.local", "admin123", "admin", "Admin Demo")
        upsert_user(
            "teacher-demo",
            "teacher@presencia.local",
            "teacher123",
            "teacher",
            "R. Sharma",
            subject_id="BAS-101",
            subject_name="Applied Mathematics",
            contact="9000000000",
        )
        upsert_user(
            "student-demo",
            "student@presencia.local",
            "student123",
            "student",
            "Anita Verma",
            father="S. Verma",
            course="BTech",
            year="1",
            section="A",
            roll="1",
            class_id="BTech-1-A",
        )
        cur.execute(
            "INSERT IGNORE INTO teacher_classes(uid, class_id) VALUES(%s,%s)",
            ("teacher-demo", "BTech-1-A"),
        )

        conn.commit()
    finally:
        conn.close()


def list_tables(db_config: dict) -> list[str]:
    conn = _connect(_as_target(db_config))
    try:
        cur = conn.cursor()
        cur.execute("SHOW TABLES")
        return [row[0] for row in cur.fetchall()]
    finally:
        conn.close()
