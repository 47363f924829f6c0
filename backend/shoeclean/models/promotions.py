from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow
from . import new_id


class Discount(db.Model):
    """
    Discount selectable per line item.

    type=percentage: value is a percent of the unit price.
    type=fixed: value is a rupiah amount.
    """
    __tablename__ = "discounts"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    name = db.Column(db.String(255), nullable=False)
    type = db.Column(db.String(16), nullable=False)  # percentage, fixed
    value = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "value": self.value,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }
