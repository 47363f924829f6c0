# Overview: Public order tracking by invoice number; no API key required.

from flask import Blueprint

from ..catalog import PROCESS_STATUSES
from ..services import records_service
from ..services.invoice_service import overall_process_status, process_label

tracking_bp = Blueprint("tracking", __name__, url_prefix="/api/tracking")


@tracking_bp.get("/<invoice>")
def track_order(invoice: str):
    order = records_service.find_order_by_invoice(invoice)
    if order is None:
        return {"error": "Order not found", "code": "not_found"}, 404

    status = overall_process_status(shoe.get("process_status") for shoe in order.shoes or [])
    payload = order.to_dict()
    # Customers see their name and shoes, not the internal ids
    for key in ("customer_id", "branch_id"):
        payload.pop(key, None)
    payload["overall_status"] = status
    payload["overall_status_label"] = process_label(status)
    payload["stages"] = [{"value": value, "label": label} for value, label in PROCESS_STATUSES]
    return {"order": payload}
