from __future__ import annotations

from sqlalchemy import event

from ..extensions import db
from ..time_utils import to_utc_z


class Sale(db.Model):
    """
    Finalized sale (a "check"). Immutable once created.

    change_cents = cash_received_cents - subtotal_cents, never negative.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.CheckConstraint("change_cents >= 0", name="ck_sales_change_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    created_at = db.Column(db.DateTime, nullable=False, index=True)
    subtotal_cents = db.Column(db.Integer, nullable=False)
    cash_received_cents = db.Column(db.Integer, nullable=False)
    change_cents = db.Column(db.Integer, nullable=False)

    items = db.relationship("SaleItem", backref="sale", lazy=True, order_by="SaleItem.id")

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "created_at": to_utc_z(self.created_at),
            "subtotal_cents": self.subtotal_cents,
            "cash_received_cents": self.cash_received_cents,
            "change_cents": self.change_cents,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class SaleItem(db.Model):
    """
    Sale line with frozen price and cost.

    price_cents and unit_cost_cents are snapshots taken when the sale was
    finalized; later catalog or cost changes never reach them.
    """
    __tablename__ = "sale_items"
    __table_args__ = (
        db.CheckConstraint("qty > 0", name="ck_sale_items_qty_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    qty = db.Column(db.Integer, nullable=False)
    price_cents = db.Column(db.Integer, nullable=False)
    unit_cost_cents = db.Column(db.Float, nullable=False)

    product = db.relationship("Product")

    @property
    def line_total_cents(self) -> int:
        return self.qty * self.price_cents

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "qty": self.qty,
            "price_cents": self.price_cents,
            "unit_cost_cents": self.unit_cost_cents,
            "line_total_cents": self.line_total_cents,
        }


@event.listens_for(Sale, "before_update")
@event.listens_for(SaleItem, "before_update")
def _refuse_sale_update(mapper, connection, target):
    raise ValueError(f"{mapper.local_table.name} rows are immutable once created")
