"""Error taxonomy and the centralized JSON error responder."""
import logging
import traceback

from flask import has_request_context, request
from sqlalchemy.exc import IntegrityError, NoResultFound
from werkzeug.exceptions import HTTPException, RequestEntityTooLarge

from models import db
from responses import error_envelope

logger = logging.getLogger(__name__)


class ApiError(Exception):
    status_code = 500
    error_code = "INTERNAL_ERROR"
    default_message = "Internal server error."

    def __init__(self, message=None, error_code=None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        if error_code:
            self.error_code = error_code


class ValidationError(ApiError):
    status_code = 400
    error_code = "VALIDATION_ERROR"
    default_message = "Validation failed."


class NotFound(ApiError):
    status_code = 404
    error_code = "NOT_FOUND"
    default_message = "Record not found."


class Forbidden(ApiError):
    status_code = 403
    error_code = "FORBIDDEN"
    default_message = "Access denied."


class Conflict(ApiError):
    status_code = 400
    error_code = "DUPLICATE_ENTRY"
    default_message = "Duplicate entry. This record already exists."


class AuthError(ApiError):
    status_code = 401
    error_code = "AUTH_REQUIRED"
    default_message = "Authentication required."


class RenderError(ApiError):
    status_code = 500
    error_code = "RENDER_FAILED"
    default_message = "Failed to generate PDF"


def form_error(form):
    """Turn the first WTForms field error into a ValidationError."""
    for name, messages in form.errors.items():
        if messages:
            return ValidationError(f"{name}: {messages[0]}")
    return ValidationError()


def register_error_handlers(app):
    @app.errorhandler(ApiError)
    def handle_api_error(err):
        if err.status_code >= 500:
            logger.error("%s on %s: %s", type(err).__name__, _path(), err.message)
        return error_envelope(err.message, err.status_code, err.error_code)

    @app.errorhandler(IntegrityError)
    def handle_integrity_error(err):
        db.session.rollback()
        logger.warning("Integrity error on %s: %s", _path(), err.orig)
        return error_envelope(Conflict.default_message, 400, Conflict.error_code)

    @app.errorhandler(NoResultFound)
    def handle_no_result(err):
        return error_envelope(NotFound.default_message, 404, NotFound.error_code)

    @app.errorhandler(RequestEntityTooLarge)
    def handle_too_large(err):
        return error_envelope(
            "File too large. Maximum size is 5MB.", 400, "FILE_TOO_LARGE"
        )

    @app.errorhandler(HTTPException)
    def handle_http_exception(err):
        return error_envelope(err.description, err.code, err.name.upper().replace(" ", "_"))

    @app.errorhandler(Exception)
    def handle_unexpected(err):
        db.session.rollback()
        logger.exception("Unhandled error on %s", _path())
        detail = traceback.format_exc() if app.debug else "INTERNAL_ERROR"
        return error_envelope(str(err) or ApiError.default_message, 500, detail)


def _path():
    return request.path if has_request_context() else "-"
