# backend/tillbook/routes/inventory.py
"""
Inventory routes: receipts, manual adjustments, ledger inspection.

Time semantics:
- Stock moves are stamped server-side (UTC); clients never supply timestamps.
- Responses serialize datetimes as ISO-8601 'Z' strings.
"""
from flask import Blueprint, current_app, request

from ..errors import LedgerError, ValidationError
from ..extensions import get_store
from ..services import inventory_service


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


def _require(payload: dict, *fields: str) -> None:
    missing = [f for f in fields if payload.get(f) is None]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")


@inventory_bp.post("/receive")
def receive_stock_route():
    """Receive stock at a unit cost; updates the weighted average cost."""
    payload = request.get_json(silent=True) or {}

    try:
        _require(payload, "product_id", "quantity", "unit_cost_cents")
        store = get_store()
        move = inventory_service.receive_stock(
            store,
            product_id=payload["product_id"],
            quantity=payload["quantity"],
            unit_cost_cents=payload["unit_cost_cents"],
            comment=payload.get("comment"),
        )
        summary = inventory_service.get_inventory_summary(store, product_id=move.product_id)
    except LedgerError as e:
        return e.to_dict(), e.status_code
    except Exception:
        current_app.logger.exception("Failed to receive stock")
        return {"error": "Internal server error"}, 500

    return {"move": move.to_dict(), "summary": summary}, 201


@inventory_bp.post("/adjust")
def adjust_stock_route():
    """Manual correction (shrink, count fix). Never changes average cost."""
    payload = request.get_json(silent=True) or {}

    try:
        _require(payload, "product_id", "delta")
        store = get_store()
        move = inventory_service.adjust_stock(
            store,
            product_id=payload["product_id"],
            delta=payload["delta"],
            comment=payload.get("comment"),
        )
        summary = inventory_service.get_inventory_summary(store, product_id=move.product_id)
    except LedgerError as e:
        return e.to_dict(), e.status_code
    except Exception:
        current_app.logger.exception("Failed to adjust stock")
        return {"error": "Internal server error"}, 500

    return {"move": move.to_dict(), "summary": summary}, 201


@inventory_bp.get("/<int:product_id>/summary")
def inventory_summary_route(product_id: int):
    return inventory_service.get_inventory_summary(get_store(), product_id=product_id)


@inventory_bp.get("/<int:product_id>/moves")
def stock_moves_route(product_id: int):
    limit = request.args.get("limit", default=200, type=int)
    limit = max(1, min(limit, 1000))
    moves = inventory_service.list_stock_moves(get_store(), product_id=product_id, limit=limit)
    return {"items": [m.to_dict() for m in moves], "count": len(moves)}


@inventory_bp.get("/reconcile")
def reconcile_route():
    """Report products whose stock disagrees with SUM(stock_moves.delta)."""
    mismatches = inventory_service.reconcile(get_store())
    return {"consistent": not mismatches, "mismatches": mismatches}
