# payroll_api/common/http.py
from datetime import date, datetime
from decimal import Decimal

from flask import jsonify


def ok(data=None, status=200, **meta):
    payload = {"success": True, "data": data}
    if meta:
        payload["meta"] = meta
    return jsonify(payload), status


def fail(message="Bad Request", status=400, code=None, detail=None, errors=None):
    err = {"message": message}
    if code: err["code"] = code
    if detail: err["detail"] = detail
    if errors: err["errors"] = errors
    return jsonify({"success": False, "error": err}), status


def iso(v):
    """ISO-8601 for dates/datetimes, passthrough for None."""
    if isinstance(v, (date, datetime)):
        return v.isoformat()
    return v


def num(v):
    if v is None:
        return None
    if isinstance(v, Decimal):
        return float(v)
    return v
