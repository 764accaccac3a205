# clinic_tools/models/__init__.py
"""
Database models package
"""

from .account import ADDRESS_FIELDS, Account, Location
from .audit import AccountUpload, ChangeLogEntry
from .base import BaseModel, db
from .enums import (
    AccountStatus,
    AccountType,
    ActivityType,
    AgreementStatus,
    AgreementType,
    ChangeActionType,
    LocationStatus,
    UploadStatus,
    UserRole,
)
from .records import Activity, Agreement, LocationContact, Note
from .user import User

__all__ = [
    "db",
    "BaseModel",
    "User",
    "Account",
    "Location",
    "LocationContact",
    "Agreement",
    "Activity",
    "Note",
    "AccountUpload",
    "ChangeLogEntry",
    "ADDRESS_FIELDS",
    # Enums
    "AccountType",
    "AccountStatus",
    "LocationStatus",
    "AgreementType",
    "AgreementStatus",
    "ActivityType",
    "UploadStatus",
    "UserRole",
    "ChangeActionType",
]
