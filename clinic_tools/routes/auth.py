# clinic_tools/routes/auth.py

"""
Session login for the admin API
"""

from http import HTTPStatus

from flask import current_app, jsonify, request
from flask_login import current_user, login_required, login_user, logout_user

from clinic_tools.models import User


def register_auth_routes(app):
    """Register authentication routes"""

    @app.route("/api/auth/login", methods=["POST"])
    def api_login():
        payload = request.get_json(silent=True) or {}
        email = str(payload.get("email") or "").strip().lower()
        password = payload.get("password") or ""
        if not email or not password:
            return jsonify({"error": "Email and password are required"}), HTTPStatus.BAD_REQUEST

        user = User.query.filter_by(email=email).first()
        if user is None or not user.check_password(password):
            current_app.logger.warning(f"Failed login attempt for {email}")
            return jsonify({"error": "Invalid email or password"}), HTTPStatus.UNAUTHORIZED
        if not user.is_active:
            return jsonify({"error": "Account is disabled"}), HTTPStatus.FORBIDDEN

        login_user(user, remember=bool(payload.get("remember")))
        current_app.logger.info(f"User {user.email} logged in")
        return jsonify({"id": user.id, "email": user.email, "role": user.role.value})

    @app.route("/api/auth/logout", methods=["POST"])
    @login_required
    def api_logout():
        current_app.logger.info(f"User {current_user.email} logged out")
        logout_user()
        return jsonify({"success": True})
