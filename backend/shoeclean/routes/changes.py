# Overview: Flask API route for the change journal that dashboards poll for realtime updates.

from flask import Blueprint, request

from ..decorators import require_api_key
from ..services import change_feed_service

changes_bp = Blueprint("changes", __name__, url_prefix="/api/changes")

MAX_PAGE_SIZE = 1000


@changes_bp.get("")
@require_api_key
def list_changes():
    """
    Journal entries with id > after, oldest first.

    Query params:
    - after: int (default 0)
    - limit: int (default 500, max 1000; 0 returns only last_id)
    """
    after = request.args.get("after", default=0, type=int)
    limit = request.args.get("limit", default=change_feed_service.DEFAULT_PAGE_SIZE, type=int)
    if after < 0 or limit < 0:
        return {"error": "after and limit must be >= 0", "code": "invalid"}, 400
    limit = min(limit, MAX_PAGE_SIZE)

    events = change_feed_service.events_after(after, limit) if limit else []
    return {
        "events": [e.to_dict() for e in events],
        "last_id": change_feed_service.latest_event_id(),
    }
