# conftest.py

import os
from datetime import datetime, timedelta, timezone

import pytest
from werkzeug.security import generate_password_hash

# Set testing environment BEFORE importing app so app.py uses TestingConfig
os.environ["FLASK_ENV"] = "testing"

from app import app as flask_app  # noqa: E402
from clinic_tools.models import Account, AccountType, Location, User, UserRole, db  # noqa: E402
from clinic_tools.utils.logging_config import setup_logging  # noqa: E402

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


@pytest.fixture(scope="function")
def app():
    """Configured Flask application with freshly created tables"""
    flask_app.config.update(
        {
            "TESTING": True,
            "SECRET_KEY": "test-secret-key-for-testing-only",
            "ENABLE_FILE_LOGGING": False,
            "ENABLE_CONSOLE_LOGGING": False,
            "LOG_LEVEL": "DEBUG",
            "DATA_TOOLS_MIN_SIMILARITY": 0.7,
            "DATA_TOOLS_DEFAULT_MODE": "name",
            "DATA_TOOLS_MAX_UPLOAD_ROWS": 5000,
        }
    )
    setup_logging(flask_app)

    with flask_app.app_context():
        db.drop_all()
        db.create_all()
        yield flask_app
        db.session.remove()
        db.drop_all()


@pytest.fixture(autouse=True)
def app_context(app):
    """Automatically provide app context for all tests"""
    with app.app_context():
        yield


@pytest.fixture
def client(app):
    """Create a test client for the Flask application"""
    return app.test_client()


@pytest.fixture
def runner(app):
    """Create a test CLI runner for the Flask application"""
    return app.test_cli_runner()


@pytest.fixture
def admin_user(app):
    """Persisted admin user"""
    user = User(
        email="admin@example.com",
        full_name="Admin User",
        password_hash=generate_password_hash("adminpass123"),
        role=UserRole.ADMIN,
        is_active=True,
    )
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def customer_user(app):
    """Persisted non-staff user"""
    user = User(
        email="customer@example.com",
        full_name="Customer User",
        password_hash=generate_password_hash("customerpass123"),
        role=UserRole.CUSTOMER,
        is_active=True,
    )
    db.session.add(user)
    db.session.commit()
    return user


def _login(client, user):
    with client.session_transaction() as session:
        session["_user_id"] = str(user.id)
        session["_fresh"] = True
    return client


@pytest.fixture
def admin_client(client, admin_user):
    """Test client logged in as the admin user"""
    return _login(client, admin_user)


@pytest.fixture
def customer_client(client, customer_user):
    """Test client logged in as a non-staff user"""
    return _login(client, customer_user)


@pytest.fixture
def make_account(app):
    """Factory for accounts; ``age_days`` pushes the default created_at into the past"""
    counter = {"value": 0}

    def _factory(name, *, age_days=0, created_at=None, locations=(), account_type=None, **fields):
        counter["value"] += 1
        if created_at is None:
            created_at = BASE_TIME + timedelta(days=counter["value"]) - timedelta(days=age_days)
        account = Account(
            name=name,
            account_type=account_type
            or (AccountType.MULTI_LOCATION if len(locations) > 1 else AccountType.SINGLE_LOCATION),
            created_at=created_at,
            **fields,
        )
        for index, location_fields in enumerate(locations):
            location_fields = dict(location_fields)
            location_fields.setdefault("name", name)
            location_fields.setdefault("is_primary", index == 0)
            account.locations.append(
                Location(created_at=created_at + timedelta(minutes=index), **location_fields)
            )
        db.session.add(account)
        db.session.commit()
        return account

    return _factory


def pytest_configure(config):
    """Register markers and make sure the testing config is used"""
    os.environ["FLASK_ENV"] = "testing"

    config.addinivalue_line("markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')")
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
    config.addinivalue_line("markers", "unit: marks tests as unit tests")
