from __future__ import annotations

from ..extensions import db
from ..time_utils import to_iso_date, to_utc_z, utcnow
from . import new_id


class Order(db.Model):
    """
    A shoe-cleaning order (invoice).

    Line items live in a JSON column; each carries its own unit price and
    discount snapshot plus its process status.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_created_at", "created_at"),
        db.Index("ix_orders_branch_created", "branch_id", "created_at"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    invoice_number = db.Column(db.String(32), nullable=False, index=True)

    customer_id = db.Column(db.String(36), nullable=True, index=True)
    customer_name = db.Column(db.String(255), nullable=False)
    customer_phone = db.Column(db.String(32), nullable=False)

    shoes = db.Column(db.JSON, nullable=False, default=list)

    entry_date = db.Column(db.Date, nullable=True)
    estimated_date = db.Column(db.Date, nullable=True)
    pickup_date = db.Column(db.Date, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    payment_status = db.Column(db.String(16), nullable=False, default="unpaid")  # unpaid, paid, cancelled
    payment_method = db.Column(db.String(16), nullable=True)  # cash, transfer, qris

    subtotal = db.Column(db.Integer, nullable=False, default=0)
    discount = db.Column(db.Integer, nullable=False, default=0)
    total = db.Column(db.Integer, nullable=False, default=0)

    # NULL means the central store
    branch_id = db.Column(db.String(36), nullable=True, index=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def __repr__(self) -> str:
        return f"<Order id={self.id} invoice={self.invoice_number!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_number": self.invoice_number,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "shoes": list(self.shoes or []),
            "entry_date": to_iso_date(self.entry_date),
            "estimated_date": to_iso_date(self.estimated_date),
            "pickup_date": to_iso_date(self.pickup_date),
            "notes": self.notes,
            "payment_status": self.payment_status,
            "payment_method": self.payment_method,
            "subtotal": self.subtotal,
            "discount": self.discount,
            "total": self.total,
            "branch_id": self.branch_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
