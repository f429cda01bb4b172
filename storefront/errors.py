# --- storefront/errors.py ---
from flask import jsonify, current_app
from werkzeug.exceptions import HTTPException

from .utils.api import api_error


class ApiError(Exception):
    """Base error rendered as {status, message, statusCode, data}."""
    status_code = 500

    def __init__(self, message: str, status_code: int | None = None, data: dict | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.data = data


class ValidationError(ApiError):
    status_code = 400


class BusinessRuleError(ApiError):
    status_code = 400


class InsufficientStock(BusinessRuleError):
    def __init__(self, message="Insufficient stock", data=None):
        super().__init__(message, data=data)


class AuthenticationError(ApiError):
    status_code = 401


class AuthorizationError(ApiError):
    status_code = 403


class NotFoundError(ApiError):
    status_code = 404


class UpstreamError(ApiError):
    """Payment provider, image host or mail server failures."""
    status_code = 500


def error_response(message, status_code, data=None):
    r = jsonify(api_error(message, status_code, data))
    r.status_code = status_code
    return r


def register_error_handlers(app):
    @app.errorhandler(ApiError)
    def handle_api_error(e: ApiError):
        if e.status_code >= 500:
            current_app.logger.error("%s: %s", type(e).__name__, e.message)
        return error_response(e.message, e.status_code, e.data)

    @app.errorhandler(HTTPException)
    def handle_http_error(e: HTTPException):
        return error_response(e.description or e.name, e.code or 500)

    @app.errorhandler(Exception)
    def handle_unexpected(e: Exception):
        current_app.logger.exception("Unhandled error")
        message = str(e) if current_app.debug else "Something went wrong"
        return error_response(message, 500)
