# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/tillbook/routes/sales.py
"""Sales API routes"""

from flask import Blueprint, current_app, request

from ..errors import LedgerError, ValidationError
from ..extensions import get_store
from ..services import sales_service
from ..time_utils import parse_iso_datetime


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("")
def finalize_sale_route():
    """
    Finalize a cash sale.

    Body: {"cart": [{"product_id", "qty", "unit_price_cents"}, ...], "cash_received_cents"}
    Returns 201 with {"sale_id", "subtotal_cents", "change_cents"}.
    """
    data = request.get_json(silent=True) or {}

    try:
        if "cart" not in data or "cash_received_cents" not in data:
            raise ValidationError("cart and cash_received_cents required")

        result = sales_service.finalize_sale(
            get_store(),
            cart=data["cart"],
            cash_received_cents=data["cash_received_cents"],
        )
    except LedgerError as e:
        return e.to_dict(), e.status_code
    except Exception:
        current_app.logger.exception("Failed to finalize sale")
        return {"error": "Internal server error"}, 500

    return result, 201


@sales_bp.get("/<int:sale_id>")
def get_sale_route(sale_id: int):
    sale = sales_service.get_sale(get_store(), sale_id)
    return {"sale": sale.to_dict(include_items=True)}


@sales_bp.get("")
def list_sales_route():
    """
    Query params:
    - start, end: ISO-8601 datetimes (inclusive)
    - limit: int (default 100, max 500)
    """
    try:
        start = parse_iso_datetime(request.args.get("start"))
        end = parse_iso_datetime(request.args.get("end"))
    except ValueError:
        raise ValidationError("start/end must be ISO-8601 datetimes")

    limit = max(1, min(request.args.get("limit", default=100, type=int), 500))
    sales = sales_service.list_sales(get_store(), start=start, end=end, limit=limit)
    return {"items": [s.to_dict() for s in sales], "count": len(sales)}
