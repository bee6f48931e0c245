from flask import Blueprint, current_app, jsonify
from flask_wtf.csrf import CSRFError

from .errors import AppError, TransactionAbortedError, ValidationError

error_handlers_bp = Blueprint("error_handlers", __name__)


@error_handlers_bp.app_errorhandler(ValidationError)
def handle_validation_error(error):
    """Handles validation errors with the offending field, when known."""
    current_app.logger.warning(f"Validation Error: {error.message}")
    return jsonify(error.to_dict()), error.status_code


@error_handlers_bp.app_errorhandler(TransactionAbortedError)
def handle_transaction_aborted(error):
    """Handles store aborts; the client may retry the whole request."""
    current_app.logger.error(f"Transaction Aborted: {error.message}")
    response = jsonify({**error.to_dict(), "retryable": True})
    return response, error.status_code


@error_handlers_bp.app_errorhandler(AppError)
def handle_app_error(error):
    """Handles not found, conflict, capacity and permission errors."""
    current_app.logger.warning(f"{type(error).__name__}: {error.message}")
    return jsonify(error.to_dict()), error.status_code


@error_handlers_bp.app_errorhandler(404)
def handle_404(e):
    """Handles generic 404 errors for routes that don't exist."""
    return jsonify({"error": "Not found."}), 404


@error_handlers_bp.app_errorhandler(405)
def handle_405(e):
    """Handles requests with an unsupported method."""
    return jsonify({"error": "Method not allowed."}), 405


@error_handlers_bp.app_errorhandler(500)
def handle_500(e):
    """Handles unexpected server errors."""
    current_app.logger.error(f"Internal Server Error: {e}")
    return jsonify({"error": "Internal server error."}), 500


@error_handlers_bp.app_errorhandler(CSRFError)
def handle_csrf_error(e):
    """Handles CSRF errors, which usually indicate a session timeout."""
    current_app.logger.warning(f"CSRF Error: {e.description}")
    return jsonify({"error": "Your session may have expired. Please retry."}), 400
