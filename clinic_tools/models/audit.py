# clinic_tools/models/audit.py
"""
Upload provenance and change history for the data tools.
"""

from sqlalchemy import CheckConstraint, Enum, Index

from .base import BaseModel, db, new_id
from .enums import ChangeActionType, UploadStatus


class AccountUpload(BaseModel):
    """One CSV upload; every account and location it created points back here so it can be reverted"""

    __tablename__ = "account_uploads"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    name = db.Column(db.String(255), nullable=False)
    file_name = db.Column(db.String(255), nullable=False)
    uploaded_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    account_count = db.Column(db.Integer, default=0, nullable=False)
    location_count = db.Column(db.Integer, default=0, nullable=False)
    column_mapping = db.Column(db.JSON, nullable=True)
    status = db.Column(
        Enum(UploadStatus, name="upload_status_enum"),
        default=UploadStatus.COMPLETED,
        nullable=False,
        index=True,
    )
    reverted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    reverted_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    accounts = db.relationship("Account", back_populates="upload")
    locations = db.relationship("Location", back_populates="upload")

    def __repr__(self):
        return f"<AccountUpload {self.name} ({self.status.value})>"

    @property
    def is_reverted(self):
        return self.status == UploadStatus.REVERTED


class ChangeLogEntry(BaseModel):
    """Audit entry for a data-tool action (merges, moves, imports, reverts)"""

    __tablename__ = "change_log"

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    action_type = db.Column(Enum(ChangeActionType, name="change_action_type_enum"), nullable=False, index=True)
    entity_type = db.Column(db.String(50), nullable=False, index=True)
    entity_id = db.Column(db.String(36), nullable=True, index=True)
    entity_name = db.Column(db.String(255), nullable=True)
    description = db.Column(db.Text, nullable=False)
    details = db.Column(db.JSON, nullable=True)

    user = db.relationship("User", foreign_keys=[user_id])

    __table_args__ = (
        Index("idx_change_log_entity", "entity_type", "entity_id"),
        CheckConstraint("description <> ''", name="ck_change_log_description_non_empty"),
    )

    def __repr__(self):
        return f"<ChangeLogEntry {self.action_type.value} {self.entity_type}:{self.entity_id}>"
