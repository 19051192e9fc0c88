# Overview: Maps domain and database exceptions to client-safe messages and HTTP statuses.

"""
Error mapping

Domain errors carry messages that are safe to show to the user. Database
errors (IntegrityError and friends) are logged with full detail and replaced
by a generic message; raw driver text never reaches the client.
"""

from __future__ import annotations

from flask import current_app, jsonify
from sqlalchemy.exc import DataError, IntegrityError, SQLAlchemyError
from werkzeug.exceptions import HTTPException

from .validation import ValidationError, ConflictError
from .services.ledger_service import ProductNotFoundError, InsufficientStockError
from .services.return_service import SaleNotFoundError, ReturnQuantityExceedsSaleError
from .services.purchase_order_service import PurchaseOrderNotFoundError, PurchaseOrderStateError
from .services.auth_service import UserNotFoundError
from .services.insights_service import UpstreamServiceError


DOMAIN_ERROR_STATUS = (
    (ValidationError, 400),
    (ConflictError, 409),
    (ProductNotFoundError, 404),
    (SaleNotFoundError, 404),
    (PurchaseOrderNotFoundError, 404),
    (UserNotFoundError, 404),
    (InsufficientStockError, 409),
    (ReturnQuantityExceedsSaleError, 409),
    (PurchaseOrderStateError, 409),
)

DOMAIN_ERRORS = tuple(exc_type for exc_type, _ in DOMAIN_ERROR_STATUS)

# (substring in driver message, client message, status); first match wins
CONSTRAINT_MESSAGES = (
    ("foreign key constraint", "Invalid reference: related record not found", 400),
    ("unique constraint", "Duplicate value: record already exists", 409),
    ("duplicate key", "Duplicate value: record already exists", 409),
    ("not null constraint", "Missing required field", 400),
    ("not-null constraint", "Missing required field", 400),
    ("null value", "Missing required field", 400),
    ("check constraint", "Value violates a data rule", 400),
    ("invalid input syntax", "Invalid data format", 400),
    ("is of type", "Invalid data format", 400),
    ("permission denied", "Access denied", 403),
)


def map_error(exc: Exception) -> tuple[str, int]:
    """Return (client_message, http_status) for any exception."""
    for exc_type, status in DOMAIN_ERROR_STATUS:
        if isinstance(exc, exc_type):
            return str(exc), status

    if isinstance(exc, UpstreamServiceError):
        return exc.message, exc.status_code

    if isinstance(exc, (IntegrityError, DataError)):
        detail = str(exc.orig).lower() if exc.orig is not None else str(exc).lower()
        for needle, message, status in CONSTRAINT_MESSAGES:
            if needle in detail:
                return message, status
        return "Invalid data", 400

    return "Operation failed", 500


def client_message(exc: Exception) -> str:
    return map_error(exc)[0]


def error_response(exc: Exception):
    """
    JSON error response for `exc`. Anything that is not a known domain error
    is logged with its traceback first.
    """
    message, status = map_error(exc)
    if status >= 500 or isinstance(exc, SQLAlchemyError):
        current_app.logger.error("Request failed: %s", exc, exc_info=exc)
    return jsonify({"error": message}), status


def register_error_handlers(app) -> None:
    @app.errorhandler(SQLAlchemyError)
    def handle_database_error(exc):
        from .extensions import db
        db.session.rollback()
        return error_response(exc)

    @app.errorhandler(UpstreamServiceError)
    def handle_upstream_error(exc):
        return error_response(exc)

    @app.errorhandler(Exception)
    def handle_unexpected_error(exc):
        if isinstance(exc, HTTPException):
            return jsonify({"error": exc.description}), exc.code
        current_app.logger.exception("Unhandled error")
        return jsonify({"error": "Internal server error"}), 500
