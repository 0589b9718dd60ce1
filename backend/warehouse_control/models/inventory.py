from __future__ import annotations

from enum import Enum

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class HistoryAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class Item(db.Model):
    """
    Stock item master data.

    id is immutable after creation. Every other column changes only through
    the merge policy in items_service, and every change appends an
    ItemHistory row in the same transaction.
    """
    __tablename__ = "items"
    __table_args__ = (
        db.UniqueConstraint("sku", name="uq_items_sku"),
        db.CheckConstraint("quantity >= 0", name="ck_items_quantity_nonnegative"),
        db.CheckConstraint("price >= 0", name="ck_items_price_nonnegative"),
        db.Index("ix_items_created_at", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    sku = db.Column(db.String(64), nullable=False)
    quantity = db.Column(db.Integer, nullable=False, default=0)
    price = db.Column(db.Float, nullable=False, default=0.0)
    category = db.Column(db.String(120), nullable=True)
    location = db.Column(db.String(120), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def snapshot(self) -> dict:
        """State captured into history rows."""
        return {
            "id": self.id,
            "name": self.name,
            "sku": self.sku,
            "quantity": self.quantity,
            "price": self.price,
            "category": self.category,
            "location": self.location,
        }

    def to_dict(self) -> dict:
        data = self.snapshot()
        data["created_at"] = to_utc_z(self.created_at)
        data["updated_at"] = to_utc_z(self.updated_at)
        return data


class ItemHistory(db.Model):
    """
    Append-only record of item mutations.

    old_data is NULL for create, new_data is NULL for delete. There is no
    foreign key to items so rows outlive the item they describe.
    """
    __tablename__ = "items_history"
    __table_args__ = (
        db.Index("ix_items_history_item_id", "item_id"),
        db.Index("ix_items_history_changed_at", "changed_at"),
        db.Index("ix_items_history_changed_by", "changed_by"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    item_id = db.Column(db.Integer, nullable=False)
    action = db.Column(db.String(16), nullable=False)
    old_data = db.Column(db.JSON, nullable=True)
    new_data = db.Column(db.JSON, nullable=True)
    changed_by = db.Column(db.String(64), nullable=False)
    changed_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_id": self.item_id,
            "action": self.action,
            "old_data": self.old_data,
            "new_data": self.new_data,
            "changed_by": self.changed_by,
            "changed_at": to_utc_z(self.changed_at),
        }
