from __future__ import annotations

from ..extensions import db


class Product(db.Model):
    """
    Product master data plus the two ledger-maintained balances.

    BALANCES:
    - stock: units on hand, never negative. Always equals SUM(stock_moves.delta).
    - avg_cost_cents: weighted average acquisition cost per unit, in (fractional) cents.
      Moved only by receipts; sales and adjustments leave it untouched.

    Neither balance is writable through catalog updates; see inventory_service
    and sales_service.

    SKU is optional. When present it is unique; NULL SKUs may repeat.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),
        db.CheckConstraint("avg_cost_cents >= 0", name="ck_products_avg_cost_non_negative"),
        db.Index("ix_products_name", "name"),
        db.Index("ix_products_category", "category"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    sku = db.Column(db.String(64), nullable=True, unique=True)

    # Authoritative storage in cents (frontend may only format for display)
    price_cents = db.Column(db.Integer, nullable=False, default=0)

    avg_cost_cents = db.Column(db.Float, nullable=False, default=0.0)
    stock = db.Column(db.Integer, nullable=False, default=0)

    category = db.Column(db.String(120), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} name={self.name!r} stock={self.stock}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "sku": self.sku,
            "price_cents": self.price_cents,
            "avg_cost_cents": self.avg_cost_cents,
            "stock": self.stock,
            "category": self.category,
            "notes": self.notes,
        }
