# ABOUTME: SQL migration script runner
# ABOUTME: Lexes scripts into statements (quotes, comments, DELIMITER blocks) and applies them in order

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, List

from sqlalchemy.exc import DBAPIError

from app.exceptions import MigrationError
from app.services.bootstrap import check_connection

logger = logging.getLogger(__name__)

# MySQL error numbers meaning the object is already there:
# table, trigger, duplicate key name, database, procedure
MYSQL_ALREADY_EXISTS = {1050, 1359, 1061, 1007, 1304}

# SQLite and PostgreSQL only report it in the message
_ALREADY_EXISTS_RE = re.compile(r"already exists", re.IGNORECASE)

_DELIMITER_RE = re.compile(r"[ \t]*DELIMITER[ \t]+(\S+)[ \t]*(?:\r?\n|$)", re.IGNORECASE)


def _is_dash_comment(script: str, i: int) -> bool:
    """A `--` opens a comment only when followed by whitespace or end of input."""
    if not script.startswith("--", i):
        return False
    return i + 2 >= len(script) or script[i + 2].isspace()


@dataclass
class MigrationReport:
    """Outcome of one script run."""
    script: str
    executed: List[int] = field(default_factory=list)
    skipped: List[int] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.executed) + len(self.skipped)


def split_statements(script: str) -> Iterator[str]:
    """
    Yield the statements of a SQL script in file order.

    Semicolons inside quoted strings, identifiers and comments never split a
    statement. A line of the form `DELIMITER <token>` changes the terminator
    until the next DELIMITER line, so trigger and procedure bodies stay whole.
    Comments are dropped from the output.
    """
    delimiter = ";"
    buf: List[str] = []
    quote = None
    at_line_start = True
    i = 0
    n = len(script)

    while i < n:
        ch = script[i]

        if quote:
            buf.append(ch)
            if ch == "\\" and quote != "`" and i + 1 < n:
                buf.append(script[i + 1])
                i += 2
                continue
            if ch == quote:
                # Doubled quote is an escaped quote
                if script.startswith(quote, i + 1):
                    buf.append(quote)
                    i += 2
                    continue
                quote = None
            i += 1
            continue

        if at_line_start:
            match = _DELIMITER_RE.match(script, i)
            if match:
                statement = "".join(buf).strip()
                if statement:
                    yield statement
                buf = []
                delimiter = match.group(1)
                i = match.end()
                continue

        if _is_dash_comment(script, i) or ch == "#":
            end = script.find("\n", i)
            i = n if end == -1 else end
            continue

        if script.startswith("/*", i):
            end = script.find("*/", i + 2)
            i = n if end == -1 else end + 2
            continue

        if script.startswith(delimiter, i):
            statement = "".join(buf).strip()
            if statement:
                yield statement
            buf = []
            i += len(delimiter)
            at_line_start = False
            continue

        if ch in ("'", '"', "`"):
            quote = ch

        buf.append(ch)
        at_line_start = ch == "\n"
        i += 1

    statement = "".join(buf).strip()
    if statement:
        yield statement


def is_already_exists(exc: DBAPIError) -> bool:
    """True if a driver error only says the object being created exists."""
    orig = getattr(exc, "orig", None) or exc
    args = getattr(orig, "args", ())
    if args and isinstance(args[0], int):
        return args[0] in MYSQL_ALREADY_EXISTS
    return bool(_ALREADY_EXISTS_RE.search(str(orig)))


def apply_migration(engine, script_path) -> MigrationReport:
    """
    Execute every statement of a migration script, one transaction each.

    Statements failing with "already exists" are logged and skipped. Any
    other error stops the run and is raised as MigrationError; statements
    already executed stay applied.

    Args:
        engine: SQLAlchemy engine of the target database
        script_path: Path to a UTF-8 SQL script

    Returns:
        MigrationReport with the 1-based numbers of executed and skipped statements
    """
    path = Path(script_path)
    script = path.read_text(encoding="utf-8")
    check_connection(engine)

    report = MigrationReport(script=str(path))
    for number, statement in enumerate(split_statements(script), start=1):
        try:
            with engine.begin() as conn:
                conn.exec_driver_sql(statement)
        except DBAPIError as exc:
            if is_already_exists(exc):
                logger.info("%s: statement %d skipped (already exists)", path.name, number)
                report.skipped.append(number)
                continue
            raise MigrationError(
                f"{path.name}: statement {number} failed: {exc.orig}",
                details={"script": str(path), "statement": number},
            ) from exc

        logger.info("%s: statement %d executed", path.name, number)
        report.executed.append(number)

    return report
