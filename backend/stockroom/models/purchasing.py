from __future__ import annotations

from ..extensions import db
from stockroom.time_utils import to_utc_z, to_iso_date


PO_STATUS_PENDING = "pending"
PO_STATUS_RECEIVED = "received"
PO_STATUS_CANCELLED = "cancelled"

PO_STATUSES = (PO_STATUS_PENDING, PO_STATUS_RECEIVED, PO_STATUS_CANCELLED)


class PurchaseOrder(db.Model):
    """
    Request to a supplier for more stock of one product.

    LIFECYCLE: pending -> received (credits stock once) or
    pending -> cancelled (no stock effect). Both are terminal.
    """
    __tablename__ = "purchase_orders"
    __table_args__ = (
        db.Index("ix_purchase_orders_status", "status"),
        db.Index("ix_purchase_orders_invoice", "invoice_number"),
        db.CheckConstraint("quantity >= 1", name="ck_purchase_orders_quantity_positive"),
        db.CheckConstraint(
            "status IN ('pending', 'received', 'cancelled')",
            name="ck_purchase_orders_status",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=True, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    expected_delivery_date = db.Column(db.Date, nullable=False)

    status = db.Column(db.String(16), nullable=False, default=PO_STATUS_PENDING)

    invoice_number = db.Column(db.String(64), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    store = db.Column(db.String(100), nullable=True)

    received_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    product = db.relationship("Product", backref=db.backref("purchase_orders", lazy="dynamic"))
    supplier = db.relationship("Supplier")

    @property
    def is_terminal(self) -> bool:
        return self.status in (PO_STATUS_RECEIVED, PO_STATUS_CANCELLED)

    @property
    def reference(self) -> str:
        return self.invoice_number or f"#{self.id}"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "supplier_id": self.supplier_id,
            "quantity": self.quantity,
            "expected_delivery_date": to_iso_date(self.expected_delivery_date),
            "status": self.status,
            "invoice_number": self.invoice_number,
            "notes": self.notes,
            "store": self.store,
            "received_at": to_utc_z(self.received_at) if self.received_at else None,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "product": self.product.to_dict(include_related=False) if self.product else None,
            "supplier": self.supplier.to_dict() if self.supplier else None,
        }
