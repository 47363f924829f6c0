# Overview: Flask API routes for the dashboard collections; parses input and returns JSON responses.

"""
Collection routes

Generic row CRUD for orders, customers, discounts, cash_flows, app_users,
branches and the store_settings singleton. Response envelopes:

- list   -> {"rows": [...]}
- create -> 201 {"row": {...}}
- update -> {"row": {...}}
- delete -> {"deleted": "<id>"}

Errors are {"error": message, "code": ...} with 400/404/409.
"""

from flask import Blueprint, current_app, request
from sqlalchemy.exc import SQLAlchemyError

from ..decorators import require_api_key
from ..extensions import db
from ..services import records_service
from ..validation import ConflictError, NotFoundError, ValidationError

rest_bp = Blueprint("rest", __name__, url_prefix="/api")


def _error(message: str, code: str, status: int):
    return {"error": message, "code": code}, status


def _run(action, *args, success_status: int = 200):
    try:
        return action(*args), success_status
    except ValidationError as e:
        db.session.rollback()
        return _error(str(e), "invalid", 400)
    except NotFoundError as e:
        db.session.rollback()
        return _error(str(e), "not_found", 404)
    except ConflictError as e:
        db.session.rollback()
        return _error(str(e), "conflict", 409)
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Database error on %s %s", request.method, request.path)
        return _error("Database error", "database", 500)


@rest_bp.get("/store_settings")
@require_api_key
def get_store_settings():
    return _run(lambda: {"row": records_service.get_settings()})


@rest_bp.get("/<table>")
@require_api_key
def list_rows(table: str):
    """Bulk read. Query params are column equality filters (booleans as true/false)."""
    filters = request.args.to_dict()
    return _run(lambda: {"rows": records_service.list_rows(table, filters)})


@rest_bp.post("/<table>")
@require_api_key
def create_row(table: str):
    payload = request.get_json(silent=True)
    return _run(lambda: {"row": records_service.create_row(table, payload)}, success_status=201)


@rest_bp.patch("/<table>/<row_id>")
@require_api_key
def update_row(table: str, row_id: str):
    payload = request.get_json(silent=True) or {}
    return _run(lambda: {"row": records_service.update_row(table, row_id, payload)})


@rest_bp.delete("/<table>/<row_id>")
@require_api_key
def delete_row(table: str, row_id: str):
    return _run(lambda: {"deleted": records_service.delete_row(table, row_id)})
