from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow
from . import new_id


class Customer(db.Model):
    """
    Customer looked up by phone number at checkout.

    total_orders / total_spent are denormalized running aggregates written
    by the dashboard when an order is confirmed.
    """
    __tablename__ = "customers"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=False, index=True)

    total_orders = db.Column(db.Integer, nullable=False, default=0)
    total_spent = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "total_orders": self.total_orders,
            "total_spent": self.total_spent,
            "created_at": to_utc_z(self.created_at),
        }
