from __future__ import annotations

from ..extensions import db
from stockroom.time_utils import to_utc_z


class Movement(db.Model):
    """
    Append-only record of one signed change to Product.quantity.

    entity_type/entity_id point at the sale, return or purchase order that
    caused the change (None for manual adjustments). Rows are never updated
    or deleted.
    """
    __tablename__ = "movements"
    __table_args__ = (
        db.Index("ix_movements_product_created", "product_id", "created_at"),
        db.Index("ix_movements_entity", "entity_type", "entity_id"),
        db.CheckConstraint("qty_change <> 0", name="ck_movements_qty_change_non_zero"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    qty_change = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.String(255), nullable=False)

    entity_type = db.Column(db.String(32), nullable=True)
    entity_id = db.Column(db.Integer, nullable=True)

    actor_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    product = db.relationship("Product", backref=db.backref("movements", lazy="dynamic"))

    def to_dict(self, *, include_product: bool = False) -> dict:
        data = {
            "id": self.id,
            "product_id": self.product_id,
            "qty_change": self.qty_change,
            "reason": self.reason,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "actor_user_id": self.actor_user_id,
            "created_at": to_utc_z(self.created_at),
        }
        if include_product:
            data["product"] = self.product.to_dict(include_related=False) if self.product else None
        return data
