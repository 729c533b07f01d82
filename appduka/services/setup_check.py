"""Detect a database that has not been set up yet."""

from __future__ import annotations

import logging

from sqlalchemy import inspect
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from appduka.errors import SETUP_REMEDIATION

logger = logging.getLogger(__name__)

# 42P01 undefined_table, 42883 undefined_function
_SETUP_SQLSTATES = {"42P01", "42883"}
_SETUP_MESSAGES = (
    "does not exist",
    "could not find the table",
    "no such table",
    "no such function",
    "undefinedtable",
)
REQUIRED_TABLES = ("profiles", "apps", "reviews")


def _sqlstate(exc: BaseException) -> str | None:
    orig = getattr(exc, "orig", None)
    for candidate in (orig, exc):
        if candidate is None:
            continue
        code = getattr(candidate, "sqlstate", None) or getattr(candidate, "pgcode", None)
        if code:
            return str(code)
    return None


def is_setup_error(exc: BaseException | None) -> bool:
    if exc is None:
        return False
    if _sqlstate(exc) in _SETUP_SQLSTATES:
        return True
    text = str(getattr(exc, "orig", None) or exc).lower()
    return any(marker in text for marker in _SETUP_MESSAGES)


def schema_status(engine: Engine) -> dict:
    try:
        existing = set(inspect(engine).get_table_names())
    except SQLAlchemyError as exc:
        logger.warning("Schema inspection failed: %s", exc)
        return {"ready": False, "missing": list(REQUIRED_TABLES), "remediation": SETUP_REMEDIATION}
    missing = [name for name in REQUIRED_TABLES if name not in existing]
    if missing:
        logger.error("Database setup incomplete, missing tables: %s", ", ".join(missing))
    return {
        "ready": not missing,
        "missing": missing,
        "remediation": SETUP_REMEDIATION if missing else [],
    }
