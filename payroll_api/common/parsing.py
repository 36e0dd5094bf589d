# payroll_api/common/parsing.py
from __future__ import annotations

from datetime import date, datetime
from typing import Iterable, Optional

from flask import request

from payroll_api.common.errors import ValidationFailed

DEFAULT_PAGE = 1
DEFAULT_SIZE = 20
MAX_SIZE = 100


def page_limit():
    try:
        page = max(int(request.args.get("page", DEFAULT_PAGE)), 1)
    except Exception:
        page = DEFAULT_PAGE
    try:
        size = int(request.args.get("size", DEFAULT_SIZE))
        size = max(1, min(size, MAX_SIZE))
    except Exception:
        size = DEFAULT_SIZE
    return page, size


def body() -> dict:
    j = request.get_json(silent=True)
    return j if isinstance(j, dict) else {}


def parse_date(s, field: str, required: bool = False) -> Optional[date]:
    if s is None or s == "":
        if required:
            raise ValidationFailed(f"{field} is required")
        return None
    if isinstance(s, datetime):
        return s.date()
    if isinstance(s, date):
        return s
    raw = str(s)
    try:
        return date.fromisoformat(raw[:10])
    except ValueError:
        raise ValidationFailed(f"{field} must be YYYY-MM-DD")


def parse_int(v, field: str, required: bool = False, lo=None, hi=None) -> Optional[int]:
    if v is None or v == "":
        if required:
            raise ValidationFailed(f"{field} is required")
        return None
    if isinstance(v, bool):
        raise ValidationFailed(f"{field} must be an integer")
    try:
        n = int(v)
    except (TypeError, ValueError):
        raise ValidationFailed(f"{field} must be an integer")
    if isinstance(v, float) and v != n:
        raise ValidationFailed(f"{field} must be an integer")
    if lo is not None and n < lo:
        raise ValidationFailed(f"{field} must be >= {lo}")
    if hi is not None and n > hi:
        raise ValidationFailed(f"{field} must be <= {hi}")
    return n


def parse_bool(x) -> Optional[bool]:
    if isinstance(x, bool):
        return x
    if x is None:
        return None
    return str(x).lower() in ("1", "true", "yes", "y")


def parse_choice(v, field: str, choices: Iterable[str], default=None):
    if v is None or v == "":
        return default
    if v not in choices:
        raise ValidationFailed(f"{field} must be one of: {', '.join(choices)}")
    return v


def paginate(items: list):
    """Slice an already-ordered list by ?page/&size; returns (rows, meta)."""
    page, size = page_limit()
    rows = items[(page - 1) * size: page * size]
    return rows, {"page": page, "size": size, "total": len(items)}
