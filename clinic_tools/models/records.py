# clinic_tools/models/records.py
"""
Records that hang off an account and/or one of its locations.

Agreements, activities and notes always reference an account and may also
reference a location; location contacts reference a location only.
"""

from sqlalchemy import Enum

from .base import BaseModel, db, new_id
from .enums import ActivityType, AgreementStatus, AgreementType


class LocationContact(BaseModel):
    """Person to reach at a clinic location"""

    __tablename__ = "location_contacts"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    location_id = db.Column(
        db.String(36), db.ForeignKey("locations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = db.Column(db.String(200), nullable=False)
    title = db.Column(db.String(100), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(50), nullable=True)
    is_primary = db.Column(db.Boolean, default=False, nullable=False)

    location = db.relationship("Location", back_populates="contacts")

    def __repr__(self):
        return f"<LocationContact {self.name}>"


class Agreement(BaseModel):
    """Contract between the bank and an account (optionally one location)"""

    __tablename__ = "agreements"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    account_id = db.Column(
        db.String(36), db.ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    location_id = db.Column(
        db.String(36), db.ForeignKey("locations.id", ondelete="SET NULL"), nullable=True, index=True
    )
    agreement_type = db.Column(
        Enum(AgreementType, name="agreement_type_enum"), default=AgreementType.OTHER, nullable=False
    )
    status = db.Column(
        Enum(AgreementStatus, name="agreement_status_enum"), default=AgreementStatus.DRAFT, nullable=False
    )
    title = db.Column(db.String(255), nullable=False)
    start_date = db.Column(db.Date, nullable=True)
    end_date = db.Column(db.Date, nullable=True)
    terms = db.Column(db.Text, nullable=True)
    document_url = db.Column(db.String(500), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    account = db.relationship("Account", back_populates="agreements")
    location = db.relationship("Location")

    def __repr__(self):
        return f"<Agreement {self.title}>"


class Activity(BaseModel):
    """Call, meeting or other touchpoint logged against an account"""

    __tablename__ = "activities"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    account_id = db.Column(
        db.String(36), db.ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    location_id = db.Column(
        db.String(36), db.ForeignKey("locations.id", ondelete="SET NULL"), nullable=True, index=True
    )
    activity_type = db.Column(
        Enum(ActivityType, name="activity_type_enum"), default=ActivityType.OTHER, nullable=False
    )
    subject = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    activity_date = db.Column(db.DateTime(timezone=True), nullable=True)

    account = db.relationship("Account", back_populates="activities")
    location = db.relationship("Location")

    def __repr__(self):
        return f"<Activity {self.activity_type.value}: {self.subject}>"


class Note(BaseModel):
    """Free-form note on an account or location"""

    __tablename__ = "notes"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    account_id = db.Column(
        db.String(36), db.ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    location_id = db.Column(
        db.String(36), db.ForeignKey("locations.id", ondelete="SET NULL"), nullable=True, index=True
    )
    title = db.Column(db.String(255), nullable=True)
    content = db.Column(db.Text, nullable=False)
    is_private = db.Column(db.Boolean, default=False, nullable=False)

    account = db.relationship("Account", back_populates="account_notes")
    location = db.relationship("Location")

    def __repr__(self):
        return f"<Note {self.title or self.id}>"
