# clinic_tools/models/user.py

from flask_login import UserMixin
from sqlalchemy import Enum
from werkzeug.security import check_password_hash, generate_password_hash

from .base import BaseModel, db
from .enums import UserRole

STAFF_ROLES = (UserRole.ADMIN, UserRole.BD_TEAM)


class User(UserMixin, BaseModel):
    """Application user; staff roles may use the Clinic Tools admin"""

    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    full_name = db.Column(db.String(200), nullable=True)
    password_hash = db.Column(db.String(255), nullable=False)
    role = db.Column(Enum(UserRole, name="user_role_enum"), default=UserRole.CUSTOMER, nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    def __repr__(self):
        return f"<User {self.email}>"

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)

    @property
    def can_access_admin(self):
        return bool(self.is_active) and self.role in STAFF_ROLES
