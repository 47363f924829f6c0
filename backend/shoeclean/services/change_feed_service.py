# Overview: Change journal; records one event per committed write so dashboards can poll for changes.

from __future__ import annotations

from sqlalchemy import event

from ..extensions import db
from ..models import TABLE_MODELS, ChangeEvent

EVENT_INSERT = "INSERT"
EVENT_UPDATE = "UPDATE"
EVENT_DELETE = "DELETE"

DEFAULT_PAGE_SIZE = 500

_JOURNALED_TABLES = frozenset(TABLE_MODELS)
_registered = False


def _table_of(obj) -> str | None:
    name = getattr(obj, "__tablename__", None)
    return name if name in _JOURNALED_TABLES else None


def _journal_before_flush(session, flush_context, instances):
    pending: list[tuple[str, str]] = []
    for obj in session.new:
        table = _table_of(obj)
        if table:
            pending.append((table, EVENT_INSERT))
    for obj in session.dirty:
        table = _table_of(obj)
        if table and session.is_modified(obj, include_collections=False):
            pending.append((table, EVENT_UPDATE))
    for obj in session.deleted:
        table = _table_of(obj)
        if table:
            pending.append((table, EVENT_DELETE))

    for table, event_type in pending:
        session.add(ChangeEvent(table_name=table, event_type=event_type))


def register_change_journal() -> None:
    """Hook the journal into Flask-SQLAlchemy's session. Safe to call more than once."""
    global _registered
    if _registered:
        return
    event.listen(db.session, "before_flush", _journal_before_flush)
    _registered = True


def events_after(after_id: int = 0, limit: int = DEFAULT_PAGE_SIZE) -> list[ChangeEvent]:
    return (
        db.session.query(ChangeEvent)
        .filter(ChangeEvent.id > after_id)
        .order_by(ChangeEvent.id.asc())
        .limit(limit)
        .all()
    )


def latest_event_id() -> int:
    last = db.session.query(db.func.max(ChangeEvent.id)).scalar()
    return int(last or 0)


def prune(keep: int) -> int:
    """Delete all but the newest `keep` journal rows. Returns rows removed."""
    if keep < 0:
        raise ValueError("keep must be >= 0")
    cutoff = latest_event_id() - keep
    if cutoff <= 0:
        return 0
    removed = db.session.query(ChangeEvent).filter(ChangeEvent.id <= cutoff).delete(
        synchronize_session=False
    )
    db.session.commit()
    return int(removed)
