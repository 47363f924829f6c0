from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow
from . import new_id


class CashFlow(db.Model):
    """Income or expense entry; order payments reference their order."""
    __tablename__ = "cash_flows"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    type = db.Column(db.String(16), nullable=False)  # income, expense
    category = db.Column(db.String(128), nullable=False)
    description = db.Column(db.Text, nullable=False, default="")
    amount = db.Column(db.Integer, nullable=False)
    date = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)
    order_id = db.Column(db.String(36), nullable=True, index=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "type": self.type,
            "category": self.category,
            "description": self.description,
            "amount": self.amount,
            "date": to_utc_z(self.date),
            "order_id": self.order_id,
            "created_at": to_utc_z(self.created_at),
        }
