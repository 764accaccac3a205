# clinic_tools/utils/permissions.py

from functools import wraps
from http import HTTPStatus

from flask import jsonify
from flask_login import current_user


def can_access_admin(user):
    """Only active admin and BD team users may use the data tools"""
    if not user or not user.is_authenticated:
        return False
    return bool(getattr(user, "can_access_admin", False))


def admin_required(f):
    """
    Decorator for JSON admin endpoints.

    Answers 401 when nobody is logged in and 403 when the user is not staff,
    instead of redirecting to a login page.
    """

    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not current_user.is_authenticated:
            return jsonify({"error": "Unauthorized"}), HTTPStatus.UNAUTHORIZED
        if not can_access_admin(current_user):
            return jsonify({"error": "Forbidden"}), HTTPStatus.FORBIDDEN
        return f(*args, **kwargs)

    return decorated_function
