from __future__ import annotations

from sqlalchemy import event

from ..extensions import db
from ..time_utils import to_utc_z

REASON_PURCHASE = "purchase"
REASON_SALE = "sale"
REASON_ADJUST = "adjust"
VALID_REASONS = (REASON_PURCHASE, REASON_SALE, REASON_ADJUST)


class StockMove(db.Model):
    """
    Append-only stock movement ledger.

    - delta > 0: receipt or adjustment in; delta < 0: sale or adjustment out.
    - unit_cost_cents is the receipt cost for purchases and the frozen
      average cost for sales; NULL for adjustments.
    - Rows are never updated or deleted (enforced by mapper events below).
    """
    __tablename__ = "stock_moves"
    __table_args__ = (
        db.CheckConstraint("delta <> 0", name="ck_stock_moves_delta_non_zero"),
        db.CheckConstraint(
            "reason IN ('purchase', 'sale', 'adjust')",
            name="ck_stock_moves_reason",
        ),
        db.Index("ix_stock_moves_product_created", "product_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    delta = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.String(16), nullable=False, index=True)
    unit_cost_cents = db.Column(db.Float, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, index=True)
    comment = db.Column(db.String(255), nullable=True)

    product = db.relationship("Product", backref=db.backref("stock_moves", lazy="dynamic"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "delta": self.delta,
            "reason": self.reason,
            "unit_cost_cents": self.unit_cost_cents,
            "created_at": to_utc_z(self.created_at),
            "comment": self.comment,
        }


@event.listens_for(StockMove, "before_update")
def _refuse_stock_move_update(mapper, connection, target):
    raise ValueError("stock_moves is append-only; rows cannot be updated")


@event.listens_for(StockMove, "before_delete")
def _refuse_stock_move_delete(mapper, connection, target):
    raise ValueError("stock_moves is append-only; rows cannot be deleted")
