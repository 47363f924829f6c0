from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow
from . import new_id


class AppUser(db.Model):
    """
    Dashboard login account.

    is_master marks the account allowed to grant or revoke the superuser
    role (including its own).
    """
    __tablename__ = "app_users"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    username = db.Column(db.String(255), nullable=False, unique=True, index=True)

    # bcrypt hash; legacy rows may hold a SHA-256 hex digest
    password = db.Column(db.String(255), nullable=False)

    role = db.Column(db.String(16), nullable=False, default="cashier")  # superuser, admin, cashier
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    is_master = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "password": self.password,
            "role": self.role,
            "is_active": self.is_active,
            "is_master": self.is_master,
            "created_at": to_utc_z(self.created_at),
        }
