# clinic_tools/models/enums.py
"""
Enums for CRM models.
"""

from enum import Enum as PyEnum


class AccountType(PyEnum):
    """Whether an account owns one clinic site or several"""

    SINGLE_LOCATION = "single_location"
    MULTI_LOCATION = "multi_location"


class AccountStatus(PyEnum):
    """Account status enumeration"""

    ACTIVE = "active"
    INACTIVE = "inactive"
    ARCHIVED = "archived"


class LocationStatus(PyEnum):
    """Location status enumeration"""

    ACTIVE = "active"
    INACTIVE = "inactive"


class AgreementType(PyEnum):
    """Agreement type enumeration"""

    PARTNERSHIP = "partnership"
    VENDOR = "vendor"
    REFERRAL = "referral"
    OTHER = "other"


class AgreementStatus(PyEnum):
    """Agreement lifecycle enumeration"""

    DRAFT = "draft"
    ACTIVE = "active"
    EXPIRED = "expired"
    TERMINATED = "terminated"


class ActivityType(PyEnum):
    """Activity type enumeration"""

    CALL = "call"
    EMAIL = "email"
    MEETING = "meeting"
    NOTE = "note"
    TASK = "task"
    OTHER = "other"


class UploadStatus(PyEnum):
    """CSV upload lifecycle"""

    COMPLETED = "completed"
    REVERTED = "reverted"


class UserRole(PyEnum):
    """Application roles; only staff roles reach the admin tools"""

    CUSTOMER = "customer"
    BD_TEAM = "bd_team"
    ADMIN = "admin"


class ChangeActionType(PyEnum):
    """Data-tool actions recorded in the change log"""

    MERGE_ACCOUNTS = "merge_accounts"
    MERGE_LOCATIONS = "merge_locations"
    ADD_LOCATION = "add_location"
    REMOVE_LOCATION = "remove_location"
    IMPORT_ACCOUNTS = "import_accounts"
    REVERT_UPLOAD = "revert_upload"
