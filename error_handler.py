"""
JSON error handling for the progress dashboard API.
"""

from flask import jsonify, request

from extensions import db
from services.exceptions import DataAccessError, MalformedRecordError


def _error_response(message, status):
    return jsonify({'success': False, 'message': message}), status


def register_error_handlers(app):
    """Attach handlers that turn snapshot engine errors and HTTP errors into JSON."""

    @app.errorhandler(DataAccessError)
    def handle_data_access_error(error):
        db.session.rollback()
        app.logger.error(f"Data access error on {request.path}: {error}")
        return _error_response('Progress data is temporarily unavailable. Please try again later.', 503)

    @app.errorhandler(MalformedRecordError)
    def handle_malformed_record(error):
        db.session.rollback()
        app.logger.warning(f"Malformed activity record for student {error.student_id}: {error}")
        return _error_response(str(error), 422)

    @app.errorhandler(401)
    def unauthorized_error(error):
        return _error_response('Please log in to access this resource.', 401)

    @app.errorhandler(403)
    def forbidden_error(error):
        return _error_response("You don't have permission to access this resource.", 403)

    @app.errorhandler(404)
    def not_found_error(error):
        return _error_response("The resource you're looking for doesn't exist.", 404)

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        app.logger.error(f"Server error on {request.path}: {error}")
        return _error_response('An internal server error occurred. Please try again later.', 500)
