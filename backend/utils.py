"""Backend utility functions for the property survey API."""
from flask import jsonify, request
from shared.validation import ValidationError
import logging


logger = logging.getLogger(__name__)


def api_error(message, status_code=400, log_level='warning', details=None):
    """
    Standardized API error response with consistent logging.

    Args:
        message (str): Error message for the client
        status_code (int): HTTP status code
        log_level (str): Logging level ('debug', 'info', 'warning', 'error', 'critical')
        details (list|dict, optional): Extra context returned to the client under 'details'

    Returns:
        Flask response: JSON error response
    """
    log_func = getattr(logger, log_level, logger.warning)
    if details:
        log_func(f"API Error ({status_code}): {message} - Details: {details}")
    else:
        log_func(f"API Error ({status_code}): {message}")

    body = {'error': message}
    if details:
        body['details'] = details
    return jsonify(body), status_code


def field_errors(errors, status_code=400):
    """Response for request-body validation failures: ``{'errors': [...]}``."""
    logger.warning(f"API Error ({status_code}): invalid fields {[e.get('field') for e in errors]}")
    return jsonify({'errors': errors}), status_code


def handle_api_exception(e, operation="operation", status_code=500):
    """
    Handle exceptions in API endpoints with consistent logging and responses.

    Args:
        e (Exception): The exception that occurred
        operation (str): Description of the operation being performed
        status_code (int): HTTP status code to return

    Returns:
        Flask response: JSON error response
    """
    logger.error(f"Exception during {operation}: {str(e)}", exc_info=True)
    return api_error(f"Failed to {operation}", status_code, 'error')


def get_json_data():
    """Return the JSON object body of the current request.

    Raises:
        ValidationError: If the body is missing, malformed or not an object
    """
    data = request.get_json(silent=True)
    if data is None:
        raise ValidationError('Request body must contain valid JSON')
    if not isinstance(data, dict):
        raise ValidationError('Request data must be a JSON object')
    return data
