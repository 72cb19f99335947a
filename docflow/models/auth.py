"""
User accounts.

Two roles only: ADMIN manages accounts and can read or edit everything;
USER sees what they own, what is PUBLIC, and what is shared with them.
Accounts are created by an admin (self-registration is disabled) and the
first admin is seeded from ADMIN_EMAIL / ADMIN_PASSWORD at startup.
"""

from docflow.core.enums import UserRole
from docflow.models import db
from docflow.models.base import UUIDModel, iso


class User(UUIDModel):
    __tablename__ = "users"

    email = db.Column(db.String(200), nullable=False, unique=True, index=True)
    password_hash = db.Column(db.String(256), nullable=False)
    role = db.Column(db.String(20), nullable=False, default=UserRole.USER.value)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value

    def to_dict(self):
        return {
            "id": self.id,
            "email": self.email,
            "role": self.role,
            "created_at": iso(self.created_at),
        }

    def __repr__(self):
        return f"<User {self.email} ({self.role})>"
