from __future__ import annotations

from ..extensions import db
from stockroom.time_utils import to_utc_z, to_iso_date


class Sale(db.Model):
    """
    A recorded sale of one product.

    total_amount_cents snapshots quantity * retail_price_cents at the time of
    the sale so later price changes never alter history or refunds.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_date_sold", "date_sold"),
        db.Index("ix_sales_product_date", "product_id", "date_sold"),
        db.CheckConstraint("quantity >= 1", name="ck_sales_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    total_amount_cents = db.Column(db.Integer, nullable=False)

    date_sold = db.Column(db.Date, nullable=False)
    store = db.Column(db.String(100), nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product", backref=db.backref("sales", lazy="dynamic"))

    @property
    def returned_quantity(self) -> int:
        return sum(r.quantity for r in self.returns)

    def to_dict(self, *, include_product: bool = False) -> dict:
        data = {
            "id": self.id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "total_amount_cents": self.total_amount_cents,
            "date_sold": to_iso_date(self.date_sold),
            "store": self.store,
            "returned_quantity": self.returned_quantity,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }
        if include_product:
            data["product"] = self.product.to_dict(include_related=False) if self.product else None
        return data


class Return(db.Model):
    __tablename__ = "returns"
    __table_args__ = (
        db.CheckConstraint("quantity >= 1", name="ck_returns_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    # Denormalized from the sale
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    refund_amount_cents = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.String(255), nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    sale = db.relationship("Sale", backref=db.backref("returns", lazy=True))
    product = db.relationship("Product")

    def to_dict(self, *, include_sale: bool = False) -> dict:
        data = {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "refund_amount_cents": self.refund_amount_cents,
            "reason": self.reason,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }
        if include_sale:
            data["sale"] = self.sale.to_dict(include_product=True) if self.sale else None
        return data
