# clinic_tools/models/account.py

from sqlalchemy import Enum, Index

from .base import BaseModel, db, new_id
from .enums import AccountStatus, AccountType, LocationStatus

ADDRESS_FIELDS = ("address_line1", "address_line2", "city", "state", "zip_code")


class Account(BaseModel):
    """Corporate or clinic customer; owns one or more locations"""

    __tablename__ = "accounts"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    name = db.Column(db.String(255), nullable=False, index=True)
    account_type = db.Column(
        Enum(AccountType, name="account_type_enum"),
        default=AccountType.SINGLE_LOCATION,
        nullable=False,
        index=True,
    )
    status = db.Column(
        Enum(AccountStatus, name="account_status_enum"),
        default=AccountStatus.ACTIVE,
        nullable=False,
        index=True,
    )

    # Accounting system ("sage") code
    external_code = db.Column(db.String(50), nullable=True)
    website = db.Column(db.String(500), nullable=True)
    industry = db.Column(db.String(100), nullable=True)

    # Contact information
    primary_contact_name = db.Column(db.String(200), nullable=True)
    primary_contact_email = db.Column(db.String(255), nullable=True)
    primary_contact_phone = db.Column(db.String(50), nullable=True)
    phone = db.Column(db.String(50), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    # Account-level address, used when no location rows exist yet
    address_line1 = db.Column(db.String(255), nullable=True)
    address_line2 = db.Column(db.String(255), nullable=True)
    city = db.Column(db.String(100), nullable=True)
    state = db.Column(db.String(50), nullable=True)
    zip_code = db.Column(db.String(20), nullable=True)
    country = db.Column(db.String(100), nullable=True)

    # Provenance for revertable CSV uploads
    upload_id = db.Column(
        db.String(36), db.ForeignKey("account_uploads.id", ondelete="SET NULL"), nullable=True, index=True
    )
    upload_list_name = db.Column(db.String(255), nullable=True)

    version = db.Column(db.Integer, nullable=False, default=1)

    # Relationships
    locations = db.relationship(
        "Location",
        back_populates="account",
        cascade="all, delete-orphan",
        order_by="Location.created_at",
    )
    agreements = db.relationship("Agreement", back_populates="account", cascade="all, delete-orphan")
    activities = db.relationship("Activity", back_populates="account", cascade="all, delete-orphan")
    account_notes = db.relationship("Note", back_populates="account", cascade="all, delete-orphan")
    upload = db.relationship("AccountUpload", back_populates="accounts")

    __mapper_args__ = {"version_id_col": version}
    __table_args__ = (Index("idx_account_type_status", "account_type", "status"),)

    def __repr__(self):
        return f"<Account {self.name}>"

    def has_address(self):
        return any(getattr(self, field) for field in ADDRESS_FIELDS)

    def get_primary_location(self):
        """Primary location, else the oldest one, else None"""
        return next((loc for loc in self.locations if loc.is_primary), None) or next(iter(self.locations), None)


class Location(BaseModel):
    """Physical clinic site belonging to exactly one account"""

    __tablename__ = "locations"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    account_id = db.Column(
        db.String(36), db.ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = db.Column(db.String(255), nullable=False)
    address_line1 = db.Column(db.String(255), nullable=True)
    address_line2 = db.Column(db.String(255), nullable=True)
    city = db.Column(db.String(100), nullable=True)
    state = db.Column(db.String(50), nullable=True)
    zip_code = db.Column(db.String(20), nullable=True)
    country = db.Column(db.String(100), default="USA", nullable=True)
    phone = db.Column(db.String(50), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    contact_name = db.Column(db.String(200), nullable=True)
    contact_title = db.Column(db.String(100), nullable=True)
    is_primary = db.Column(db.Boolean, default=False, nullable=False)
    status = db.Column(
        Enum(LocationStatus, name="location_status_enum"),
        default=LocationStatus.ACTIVE,
        nullable=False,
    )
    notes = db.Column(db.Text, nullable=True)
    clinic_code = db.Column(db.String(50), nullable=True)
    external_code = db.Column(db.String(50), nullable=True)
    pending_contract_sent = db.Column(db.Boolean, default=False, nullable=False)

    # Set only on locations written by a CSV upload; revert deletes by this tag
    upload_id = db.Column(
        db.String(36), db.ForeignKey("account_uploads.id", ondelete="SET NULL"), nullable=True, index=True
    )

    # Relationships
    account = db.relationship("Account", back_populates="locations")
    upload = db.relationship("AccountUpload", back_populates="locations")
    contacts = db.relationship(
        "LocationContact", back_populates="location", cascade="all, delete-orphan"
    )

    def __repr__(self):
        return f"<Location {self.name} ({self.city}, {self.state})>"
