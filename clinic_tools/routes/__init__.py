# clinic_tools/routes/__init__.py
"""
Application routes package
"""

from http import HTTPStatus

from flask import current_app, jsonify

from clinic_tools.errors import ClinicToolsError
from clinic_tools.models import db

from .accounts import accounts_blueprint
from .auth import register_auth_routes
from .data_tools import data_tools_blueprint


def register_error_handlers(app):
    """JSON error bodies for the API"""

    @app.errorhandler(ClinicToolsError)
    def handle_clinic_tools_error(error):
        if error.status_code >= 500:
            current_app.logger.error(f"Data tools error: {error.message}")
        else:
            current_app.logger.info(f"Rejected request: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(404)
    def not_found_error(error):
        return jsonify({"error": "Not found"}), HTTPStatus.NOT_FOUND

    @app.errorhandler(405)
    def method_not_allowed_error(error):
        return jsonify({"error": "Method not allowed"}), HTTPStatus.METHOD_NOT_ALLOWED

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        return jsonify({"error": "Internal server error"}), HTTPStatus.INTERNAL_SERVER_ERROR


def init_routes(app):
    """Initialize all application routes"""
    register_auth_routes(app)
    app.register_blueprint(accounts_blueprint)
    app.register_blueprint(data_tools_blueprint)
    register_error_handlers(app)

    @app.route("/health")
    def health():
        return jsonify({"status": "ok"})
