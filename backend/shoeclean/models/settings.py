from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow
from . import new_id


class StoreSettings(db.Model):
    """
    Store profile printed on invoices. Exactly one row is expected; the
    routes refuse to create a second one.
    """
    __tablename__ = "store_settings"

    id = db.Column(db.String(36), primary_key=True, default=new_id)

    name = db.Column(db.String(255), nullable=False)
    tagline = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(64), nullable=True)
    address = db.Column(db.Text, nullable=True)
    email = db.Column(db.String(255), nullable=True)
    website = db.Column(db.String(255), nullable=True)

    bank_name = db.Column(db.String(128), nullable=True)
    bank_account = db.Column(db.String(64), nullable=True)
    account_holder = db.Column(db.String(255), nullable=True)

    qr_payment = db.Column(db.Text, nullable=True)
    logo = db.Column(db.Text, nullable=True)
    whatsapp_notification_enabled = db.Column(db.Boolean, nullable=True, default=False)

    sidebar_bg_color = db.Column(db.String(16), nullable=True)
    sidebar_text_color = db.Column(db.String(16), nullable=True)
    sidebar_hover_color = db.Column(db.String(16), nullable=True)
    sidebar_active_color = db.Column(db.String(16), nullable=True)

    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "tagline": self.tagline,
            "phone": self.phone,
            "address": self.address,
            "email": self.email,
            "website": self.website,
            "bank_name": self.bank_name,
            "bank_account": self.bank_account,
            "account_holder": self.account_holder,
            "qr_payment": self.qr_payment,
            "logo": self.logo,
            "whatsapp_notification_enabled": self.whatsapp_notification_enabled,
            "sidebar_bg_color": self.sidebar_bg_color,
            "sidebar_text_color": self.sidebar_text_color,
            "sidebar_hover_color": self.sidebar_hover_color,
            "sidebar_active_color": self.sidebar_active_color,
            "updated_at": to_utc_z(self.updated_at),
        }
