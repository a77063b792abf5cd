# Overview: Flask API routes for catalog operations; parses input and returns JSON responses.

# backend/tillbook/routes/products.py
"""
Product catalog routes.

stock and avg_cost_cents are read-only here; they change only through
/api/inventory and /api/sales.
"""
from flask import Blueprint, request

from ..extensions import get_store
from ..models import Product
from ..services import catalog_service
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
)

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({"name", "sku", "price_cents", "category", "notes"}),
    required_on_create=frozenset({"name", "price_cents"}),
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
def list_products():
    """
    List products.

    Query params:
    - q: str (optional) - substring match on name or SKU
    - category: str (optional) - exact category
    - in_stock: "true" to hide products with zero stock
    """
    return catalog_service.list_products(
        get_store(),
        query=request.args.get("q"),
        category=request.args.get("category"),
        in_stock_only=request.args.get("in_stock", "false").lower() == "true",
    )


@products_bp.post("")
def create_product_route():
    payload = request.get_json(silent=True) or {}

    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
    enforce_rules_product(patch)

    created = catalog_service.create_product(get_store(), patch=patch)
    return created, 201


@products_bp.get("/<int:product_id>")
def get_product_route(product_id: int):
    return catalog_service.get_product(get_store(), product_id).to_dict()


@products_bp.patch("/<int:product_id>")
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}

    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
    enforce_rules_product(patch)

    return catalog_service.update_product(get_store(), product_id=product_id, patch=patch)


@products_bp.delete("/<int:product_id>")
def delete_product_route(product_id: int):
    """Delete a product that has no ledger history."""
    catalog_service.remove_product(get_store(), product_id=product_id)
    return {"deleted": True, "product_id": product_id}
