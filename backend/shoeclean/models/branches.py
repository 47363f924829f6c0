from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow
from . import new_id


class Branch(db.Model):
    """Physical service location. Orders with no branch belong to the central store."""
    __tablename__ = "branches"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    name = db.Column(db.String(255), nullable=False)
    address = db.Column(db.Text, nullable=False, default="")
    phone = db.Column(db.String(32), nullable=False, default="")
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<Branch id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "address": self.address,
            "phone": self.phone,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }
