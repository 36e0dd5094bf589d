# payroll_api/common/errors.py
from sqlalchemy.exc import IntegrityError
from werkzeug.exceptions import HTTPException

from payroll_api.common.http import fail
from payroll_api.extensions import db


class APIError(Exception):
    """Custom API Error class."""
    code = "API_ERROR"
    status_code = 400

    def __init__(self, message, code=None, status_code=None, payload=None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        if status_code:
            self.status_code = status_code
        self.payload = payload


class NotFound(APIError):
    """Business-scoped entity does not exist under the given business id."""
    code = "NOT_FOUND"
    status_code = 404


class DuplicateConflict(APIError):
    code = "DUPLICATE"
    status_code = 409


class DuplicatePeriod(DuplicateConflict):
    code = "DUPLICATE_PERIOD"


class DuplicateExit(DuplicateConflict):
    code = "DUPLICATE_EXIT"


class Forbidden(APIError):
    code = "FORBIDDEN"
    status_code = 403


class InvalidState(APIError):
    code = "INVALID_STATE"
    status_code = 409


class InvalidRange(APIError):
    code = "INVALID_RANGE"
    status_code = 422


class ValidationFailed(APIError):
    code = "VALIDATION_FAILED"
    status_code = 422


class AssignedStructureConflict(APIError):
    code = "STRUCTURE_ASSIGNED"
    status_code = 409


class CommissionConfigError(APIError):
    """Tier table cannot place a service value in exactly one band."""
    code = "COMMISSION_CONFIG"
    status_code = 422


def register_error_handlers(app):
    @app.errorhandler(APIError)
    def _api_error(e: APIError):
        return fail(message=e.message, status=e.status_code, code=e.code, detail=e.payload)

    @app.errorhandler(HTTPException)
    def _http(e: HTTPException):
        return fail(e.description or e.name, status=e.code or 500)

    @app.errorhandler(IntegrityError)
    def _integrity(e: IntegrityError):
        db.session.rollback()
        app.logger.warning("integrity error: %s", getattr(e, "orig", e))
        return fail("Duplicate or FK constraint failed", status=409, code="CONSTRAINT_ERROR")

    @app.errorhandler(Exception)
    def _500(e: Exception):
        db.session.rollback()
        app.logger.exception(e)
        return fail("Internal server error", status=500)
