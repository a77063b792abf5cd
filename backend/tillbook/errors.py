# Overview: Domain error taxonomy shared by services, routes and the CLI.

from __future__ import annotations


class LedgerError(Exception):
    """Base class for domain errors; carries an HTTP status and a details payload."""
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": self.message, "details": self.details}


class ValidationError(LedgerError):
    """400-level input problem, raised before any I/O."""


class ConflictError(LedgerError):
    """409-level business rule conflict (e.g., duplicate SKU)."""
    status_code = 409


class NotFound(LedgerError):
    status_code = 404


class InsufficientPayment(LedgerError):
    """Cash received is below the cart subtotal."""

    def __init__(self, *, subtotal_cents: int, cash_received_cents: int):
        super().__init__(
            "Insufficient payment",
            details={
                "subtotal_cents": subtotal_cents,
                "cash_received_cents": cash_received_cents,
                "missing_cents": subtotal_cents - cash_received_cents,
            },
        )


class InsufficientStock(LedgerError):
    """A stock decrement would take on-hand below zero."""
    status_code = 409

    def __init__(self, *, product_id: int, requested: int, available: int, name: str | None = None):
        super().__init__(
            f"Insufficient stock for product {name or product_id}",
            details={
                "product_id": product_id,
                "requested": requested,
                "available": available,
                "shortfall": requested - available,
            },
        )
        self.product_id = product_id
        self.requested = requested
        self.available = available

    @property
    def shortfall(self) -> int:
        return self.requested - self.available


class PersistenceFailure(LedgerError):
    """A store operation failed mid-transaction; the unit of work was rolled back."""
    status_code = 500


class NotificationFailure(LedgerError):
    """Outbound report delivery failed or timed out."""
    status_code = 502
