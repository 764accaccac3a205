# config/validation.py

"""
Environment variable validation for the Clinic Tools application.
Validates required environment variables at startup.
"""

import os
import sys
from typing import List, Tuple

VALID_MATCH_MODES = ("name", "address", "both")


def _validate_data_tools(errors: List[str]) -> None:
    raw_similarity = os.environ.get("DATA_TOOLS_MIN_SIMILARITY")
    if raw_similarity:
        try:
            similarity = float(raw_similarity)
        except ValueError:
            errors.append("DATA_TOOLS_MIN_SIMILARITY must be a number between 0 and 1.")
        else:
            if not 0.0 <= similarity <= 1.0:
                errors.append("DATA_TOOLS_MIN_SIMILARITY must be between 0 and 1.")

    mode = os.environ.get("DATA_TOOLS_DEFAULT_MODE")
    if mode and mode.strip().lower() not in VALID_MATCH_MODES:
        errors.append(f"DATA_TOOLS_DEFAULT_MODE must be one of: {', '.join(VALID_MATCH_MODES)}.")

    raw_rows = os.environ.get("DATA_TOOLS_MAX_UPLOAD_ROWS")
    if raw_rows:
        try:
            if int(raw_rows) < 1:
                raise ValueError(raw_rows)
        except ValueError:
            errors.append("DATA_TOOLS_MAX_UPLOAD_ROWS must be a positive integer.")


def validate_environment(flask_env: str = None) -> Tuple[bool, List[str]]:
    """
    Validate required environment variables.

    Args:
        flask_env: Flask environment (development, production, testing)
                  If None, reads from FLASK_ENV environment variable

    Returns:
        Tuple of (is_valid, list_of_errors)
    """
    if flask_env is None:
        flask_env = os.environ.get("FLASK_ENV", "development")

    errors = []
    _validate_data_tools(errors)

    if flask_env != "production":
        return len(errors) == 0, errors

    secret_key = os.environ.get("SECRET_KEY", "")
    if not secret_key or secret_key in ("your-secret-key", "your_secret_key"):
        errors.append(
            "SECRET_KEY is required in production and must not be the default value. "
            'Generate a secure key: python -c "import secrets; print(secrets.token_hex(32))"'
        )

    if not os.environ.get("DATABASE_URL"):
        errors.append("DATABASE_URL is required in production. Set it to your PostgreSQL connection string.")

    is_valid = len(errors) == 0
    return is_valid, errors


def validate_and_exit(flask_env: str = None) -> None:
    """
    Validate environment variables and exit with error if validation fails.
    Intended to be called at application startup.
    """
    is_valid, errors = validate_environment(flask_env)

    if not is_valid:
        print("=" * 80, file=sys.stderr)
        print("ENVIRONMENT VALIDATION FAILED", file=sys.stderr)
        print("=" * 80, file=sys.stderr)
        print("\nThe following environment variables are missing or invalid:\n", file=sys.stderr)

        for i, error in enumerate(errors, 1):
            print(f"{i}. {error}", file=sys.stderr)

        print("\n" + "=" * 80, file=sys.stderr)
        print("Please check your .env file or environment variables.", file=sys.stderr)
        print("=" * 80, file=sys.stderr)

        sys.exit(1)
