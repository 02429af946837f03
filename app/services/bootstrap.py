# ABOUTME: Database bootstrap service
# ABOUTME: Creates the database and tables in foreign-key order and seeds reference data

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from sqlalchemy import create_engine, inspect
from sqlalchemy.engine import URL
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from app.exceptions import DatabaseConnectionError, SchemaDependencyError
from app.models.database import Base, KeyGroup, Admin
from app.services.security import hash_password

logger = logging.getLogger(__name__)

_CHARSET_RE = re.compile(r"^\w+$")

# Parents before children: vpn_keys needs key_groups, vpn_accounts needs vpn_keys
TABLE_ORDER = ["key_groups", "admins", "vpn_keys", "vpn_accounts", "account_keys"]

DEFAULT_KEY_GROUPS = [
    ("FBX", "FBX Group", "FBX VPN Keys"),
    ("THX", "THX Group", "THX VPN Keys"),
    ("CTV", "CTV Group", "CTV VPN Keys"),
    ("TEST", "TEST Group", "Test VPN Keys"),
]


@dataclass
class SeedReport:
    created: int = 0
    skipped: int = 0


def check_connection(engine) -> None:
    """Check the database with SELECT 1, raising DatabaseConnectionError on failure."""
    try:
        with engine.connect() as conn:
            conn.exec_driver_sql("SELECT 1")
    except OperationalError as exc:
        raise DatabaseConnectionError(f"Cannot connect to database: {exc.orig}") from exc


def ensure_database(url: URL, charset: str = "utf8mb4") -> bool:
    """
    Create the database named in url if it does not exist yet.

    For SQLite the database file is created on first connect, so only its
    parent directory is made. Never drops or alters anything.

    Args:
        url: SQLAlchemy URL of the application database
        charset: Character set for a newly created MySQL database

    Returns:
        True if a CREATE DATABASE statement was issued
    """
    if url.get_backend_name() == "sqlite":
        if url.database and url.database != ":memory:":
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)
        return False

    if url.get_backend_name() != "mysql":
        raise ValueError(f"Unsupported database backend: {url.get_backend_name()}")

    name = url.database
    if not name:
        raise ValueError("Database URL has no database name")
    if not _CHARSET_RE.match(charset):
        raise ValueError(f"Invalid character set name: {charset!r}")

    server_engine = create_engine(url.set(database=None))
    try:
        check_connection(server_engine)
        quoted = server_engine.dialect.identifier_preparer.quote(name)
        with server_engine.begin() as conn:
            conn.exec_driver_sql(f"CREATE DATABASE IF NOT EXISTS {quoted} CHARACTER SET {charset}")
    finally:
        server_engine.dispose()

    logger.info("Database %s created/verified", name)
    return True


def ensure_schema(engine, tables: Optional[List[str]] = None) -> List[str]:
    """
    Create each table that does not exist yet, in the given order.

    Every table a new table references must already exist in the database;
    otherwise SchemaDependencyError is raised before anything is created for it.

    Args:
        engine: SQLAlchemy engine
        tables: Table names in creation order (defaults to TABLE_ORDER)

    Returns:
        Names of the tables actually created
    """
    check_connection(engine)

    created = []
    for table_name in tables or TABLE_ORDER:
        table = Base.metadata.tables[table_name]
        existing = set(inspect(engine).get_table_names())

        if table_name in existing:
            logger.info("Table %s exists", table_name)
            continue

        missing = sorted(
            fk.column.table.name
            for fk in table.foreign_keys
            if fk.column.table.name != table_name and fk.column.table.name not in existing
        )
        if missing:
            raise SchemaDependencyError(
                f"Cannot create {table_name}: referenced table(s) {', '.join(missing)} missing",
                details={"table": table_name, "missing": missing},
            )

        table.create(bind=engine, checkfirst=True)
        logger.info("Table %s created", table_name)
        created.append(table_name)

    return created


def seed_reference_data(db: Session, settings) -> SeedReport:
    """
    Insert the default key groups and admin unless they already exist.

    Existing rows are matched by code / username and left untouched, so this
    is safe to call on every startup.
    """
    report = SeedReport()

    for code, name, description in DEFAULT_KEY_GROUPS:
        if db.query(KeyGroup).filter_by(code=code).first():
            report.skipped += 1
            continue
        db.add(KeyGroup(code=code, name=name, description=description, is_active=True))
        report.created += 1

    if db.query(Admin).filter_by(username=settings.admin_username).first():
        report.skipped += 1
    else:
        db.add(Admin(
            username=settings.admin_username,
            password=hash_password(settings.admin_password),
            email=settings.admin_email,
            is_active=True,
        ))
        report.created += 1

    db.commit()
    logger.info("Seeded reference data: %d created, %d skipped", report.created, report.skipped)
    return report
