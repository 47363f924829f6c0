from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class ChangeEvent(db.Model):
    """
    Append-only journal of committed writes, polled by dashboards as their
    realtime feed. Only the table and the kind of change are recorded.
    """
    __tablename__ = "change_events"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    table_name = db.Column(db.String(64), nullable=False)
    event_type = db.Column(db.String(8), nullable=False)  # INSERT, UPDATE, DELETE
    occurred_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "table": self.table_name,
            "event_type": self.event_type,
            "occurred_at": to_utc_z(self.occurred_at),
        }
