"""
Classification of storage-layer failures raised while importing.

Drivers expose uniqueness violations differently: PostgreSQL drivers carry a
SQLSTATE plus a structured detail ("Key (slug, user_id)=(a, b) already exists."),
sqlite carries an extended error name plus the violated column list. Both are
reduced to a UniqueViolation value here so callers never parse messages.
"""

import re
from dataclasses import dataclass
from typing import Any, Dict, Iterator, Optional, Union

UNIQUE_VIOLATION_SQLSTATE = "23505"
SQLITE_UNIQUE_ERRORNAMES = frozenset({"SQLITE_CONSTRAINT_UNIQUE", "SQLITE_CONSTRAINT_PRIMARYKEY"})
UNKNOWN_ERROR_DETAILS = "Unknown error details"

_PG_KEY_DETAIL = re.compile(r"Key \((?P<field>.+?)\)=\((?P<value>.*?)\) already exists")
_SQLITE_UNIQUE_MESSAGE = re.compile(r"(?:UNIQUE|PRIMARY KEY) constraint failed: (?P<columns>.+)$")


@dataclass(frozen=True)
class UniqueViolation:
    """The field(s) and value a rejected write collided on."""

    field: str
    value: Optional[str] = None
    constraint: Optional[str] = None

    def as_details(self) -> Dict[str, Any]:
        return {"constraint_type": "unique", "field": self.field, "value": self.value}


def _driver_errors(exc: BaseException) -> Iterator[BaseException]:
    """The wrapped DBAPI error and whatever it was raised from (asyncpg nests one level)."""
    orig = getattr(exc, "orig", None) or exc
    yield orig
    cause = orig.__cause__
    if cause is not None and cause is not orig:
        yield cause


def _sqlstate(err: BaseException) -> Optional[str]:
    return getattr(err, "sqlstate", None) or getattr(err, "pgcode", None)


def _detail(err: BaseException) -> Optional[str]:
    detail = getattr(err, "detail", None)
    if detail:
        return detail
    diag = getattr(err, "diag", None)
    return getattr(diag, "message_detail", None) if diag is not None else None


def _constraint_name(err: BaseException) -> Optional[str]:
    name = getattr(err, "constraint_name", None)
    if name:
        return name
    diag = getattr(err, "diag", None)
    return getattr(diag, "constraint_name", None) if diag is not None else None


def _sqlite_columns(message: str) -> Optional[str]:
    match = _SQLITE_UNIQUE_MESSAGE.search(message)
    if not match:
        return None
    # "agents.slug, agents.user_id" -> "slug, user_id"
    return ", ".join(part.strip().split(".")[-1] for part in match.group("columns").split(","))


def classify_unique_violation(exc: BaseException) -> Optional[UniqueViolation]:
    """Return the violated field/value if ``exc`` is a uniqueness violation, else None."""
    for err in _driver_errors(exc):
        if _sqlstate(err) == UNIQUE_VIOLATION_SQLSTATE:
            constraint = _constraint_name(err)
            match = _PG_KEY_DETAIL.search(_detail(err) or "")
            if match:
                return UniqueViolation(match.group("field"), match.group("value"), constraint)
            return UniqueViolation(constraint or "unknown", None, constraint)

        errorname = getattr(err, "sqlite_errorname", None)
        if errorname is not None and errorname not in SQLITE_UNIQUE_ERRORNAMES:
            continue
        columns = _sqlite_columns(str(err))
        if columns:
            return UniqueViolation(columns)
    return None


def extract_error_details(exc: BaseException) -> Union[Dict[str, Any], str]:
    """Best-effort description of a failure for the import result envelope."""
    violation = classify_unique_violation(exc)
    if violation is not None:
        return violation.as_details()
    for err in _driver_errors(exc):
        detail = _detail(err)
        if detail:
            return detail
    return UNKNOWN_ERROR_DETAILS
