import logging

from flask import jsonify
from werkzeug.exceptions import HTTPException

logger = logging.getLogger(__name__)


class SupportBotError(Exception):
    """Base error whose message is safe to show to the caller."""

    status_code = 400

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(SupportBotError):
    status_code = 400


class InvalidRating(ValidationError):
    pass


class DuplicateSubmission(SupportBotError):
    # surfaced as 400 for compatibility with existing clients
    status_code = 400


class NotFound(SupportBotError):
    status_code = 404


def _error_body(message):
    return jsonify({"success": False, "message": message})


def register_error_handlers(app):
    @app.errorhandler(SupportBotError)
    def handle_support_bot_error(err):
        return _error_body(err.message), err.status_code

    @app.errorhandler(HTTPException)
    def handle_http_exception(err):
        return _error_body(err.description or err.name), err.code

    @app.errorhandler(Exception)
    def handle_unexpected(err):
        logger.exception("Unhandled error: %s", err)
        return _error_body("An unexpected error occurred"), 500
