# Overview: Service-layer operations for items; encapsulates business logic and database work.

"""
Items Service

Invariants:
- Item.id never changes after creation.
- Every create/update/delete appends exactly one items_history row in the
  same transaction (see history_service.record_history).
- Persisted items always satisfy enforce_rules_item: non-blank name and
  sku, quantity >= 0, price >= 0.

Update semantics:
- Updates are sparse patches merged over the stored item. A field is
  taken from the patch only when the caller supplied it: strings must be
  non-empty, numbers must be non-null. Everything else keeps its stored
  value.
- The merged result is validated like a new item and written back as a
  full row, so an empty patch is a legal no-op that still touches
  updated_at and appends history.
- No locking: concurrent updates to one item race at the database and the
  last commit wins.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields as dataclass_fields
from typing import Any, Mapping

from sqlalchemy.exc import IntegrityError

from ..errors import Conflict, InvalidInput, ItemNotFound
from ..extensions import db
from ..models import HistoryAction, Item
from ..time_utils import utcnow
from ..validation import enforce_rules_item, is_db_int
from .concurrency import run_with_retry
from .history_service import record_history

logger = logging.getLogger(__name__)

STRING_FIELDS = ("name", "sku", "category", "location")
NUMERIC_FIELDS = ("quantity", "price")
ITEM_MUTABLE_FIELDS = ("name", "sku", "quantity", "price", "category", "location")


class _Unset:
    """Marks a patch field the caller did not send."""
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()


@dataclass(frozen=True)
class ItemPatch:
    """Sparse update; each field is either UNSET or the value sent."""
    name: Any = UNSET
    sku: Any = UNSET
    quantity: Any = UNSET
    price: Any = UNSET
    category: Any = UNSET
    location: Any = UNSET

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ItemPatch":
        """Build a patch from already-validated fields; absent keys stay UNSET."""
        return cls(**{k: data[k] for k in ITEM_MUTABLE_FIELDS if k in data})

    def supplied(self) -> dict:
        return {f.name: getattr(self, f.name) for f in dataclass_fields(self) if getattr(self, f.name) is not UNSET}


def _is_present(field_name: str, value: Any) -> bool:
    if value is UNSET or value is None:
        return False
    if field_name in STRING_FIELDS:
        return isinstance(value, str) and value != ""
    return True


def _fields_of(existing: Item | Mapping[str, Any]) -> dict:
    if isinstance(existing, Mapping):
        return dict(existing)
    return {k: getattr(existing, k) for k in ITEM_MUTABLE_FIELDS}


def merge_item(existing: Item | Mapping[str, Any], patch: ItemPatch) -> dict:
    """
    Resolve patch over existing, field by field.

    Returns a new dict; existing is not modified. Keys of existing that
    are not mutable item fields pass through untouched. Applying the same
    patch twice gives the same result as applying it once.
    """
    merged = _fields_of(existing)
    for field_name in ITEM_MUTABLE_FIELDS:
        value = getattr(patch, field_name)
        if _is_present(field_name, value):
            merged[field_name] = value
    return merged


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------

def fetch_item(item_id: int) -> Item:
    item = db.session.get(Item, item_id)
    if item is None:
        raise ItemNotFound(f"item {item_id} not found")
    return item


def insert_item(values: dict) -> int:
    item = Item(**{k: values.get(k) for k in ITEM_MUTABLE_FIELDS})
    db.session.add(item)
    db.session.flush()
    return item.id


def update_item_row(item_id: int, values: dict) -> int:
    row = {k: values.get(k) for k in ITEM_MUTABLE_FIELDS}
    row["updated_at"] = utcnow()
    return db.session.query(Item).filter(Item.id == item_id).update(row, synchronize_session="fetch")


def delete_item_row(item_id: int) -> int:
    return db.session.query(Item).filter(Item.id == item_id).delete(synchronize_session="fetch")


def _ensure_sku_free(sku: str, *, exclude_id: int | None = None) -> None:
    query = db.session.query(Item.id).filter(Item.sku == sku)
    if exclude_id is not None:
        query = query.filter(Item.id != exclude_id)
    if query.first() is not None:
        raise Conflict("SKU already exists")


def _require_positive_id(item_id: int) -> None:
    if not is_db_int(item_id) or item_id <= 0:
        raise InvalidInput("item id must be a positive integer")


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------

def list_items() -> list[Item]:
    """All items, newest first."""
    def _op():
        return db.session.query(Item).order_by(Item.created_at.desc(), Item.id.desc()).all()

    items = run_with_retry(_op)
    logger.info("Retrieved %d items", len(items))
    return items


def get_item(item_id: int) -> Item:
    _require_positive_id(item_id)
    return run_with_retry(lambda: fetch_item(item_id))


def create_item(values: dict, actor: str) -> Item:
    """
    Create an item from validated fields and record a 'create' history row.

    quantity defaults to 0 and price to 0.0 when omitted.
    """
    fields = {k: values.get(k) for k in ITEM_MUTABLE_FIELDS}
    if fields["quantity"] is None:
        fields["quantity"] = 0
    if fields["price"] is None:
        fields["price"] = 0.0
    enforce_rules_item(fields)

    logger.info("Creating item sku=%s by %s", fields["sku"], actor)

    def _op():
        _ensure_sku_free(fields["sku"])
        try:
            item_id = insert_item(fields)
        except IntegrityError as exc:
            raise Conflict("SKU already exists") from exc
        item = fetch_item(item_id)
        record_history(
            item_id=item_id,
            action=HistoryAction.CREATE,
            actor=actor,
            new_data=item.snapshot(),
        )
        db.session.commit()
        return item

    item = run_with_retry(_op)
    logger.info("Item %d created by %s", item.id, actor)
    return item


def update_item(item_id: int, patch: ItemPatch, actor: str) -> Item:
    """
    Merge patch over the stored item, validate, write the full row and
    record an 'update' history row.
    """
    _require_positive_id(item_id)
    logger.info("Updating item %d by %s", item_id, actor)

    def _op():
        existing = fetch_item(item_id)
        old_snapshot = existing.snapshot()
        merged = merge_item(existing, patch)
        enforce_rules_item(merged)
        if merged["sku"] != old_snapshot["sku"]:
            _ensure_sku_free(merged["sku"], exclude_id=item_id)

        try:
            affected = update_item_row(item_id, merged)
        except IntegrityError as exc:
            raise Conflict("SKU already exists") from exc
        if affected == 0:
            raise ItemNotFound(f"item {item_id} not found")

        item = fetch_item(item_id)
        record_history(
            item_id=item_id,
            action=HistoryAction.UPDATE,
            actor=actor,
            old_data=old_snapshot,
            new_data=item.snapshot(),
        )
        db.session.commit()
        return item

    item = run_with_retry(_op)
    logger.info("Item %d updated by %s", item_id, actor)
    return item


def delete_item(item_id: int, actor: str) -> None:
    """Delete an item and record a 'delete' history row."""
    _require_positive_id(item_id)
    logger.info("Deleting item %d by %s", item_id, actor)

    def _op():
        existing = fetch_item(item_id)
        old_snapshot = existing.snapshot()
        if delete_item_row(item_id) == 0:
            raise ItemNotFound(f"item {item_id} not found")
        record_history(
            item_id=item_id,
            action=HistoryAction.DELETE,
            actor=actor,
            old_data=old_snapshot,
        )
        db.session.commit()

    run_with_retry(_op)
    logger.info("Item %d deleted by %s", item_id, actor)
