# Overview: Service-layer operations for item history; query building, reads, append and export.

"""
Item History Invariants (authoritative)

- items_history is append-only: rows are written once per item mutation,
  inside the same DB transaction as the mutation, and never updated or
  deleted.
- old_data is absent for create; new_data is absent for delete.
- Reads are ordered newest first (changed_at DESC, id DESC).
- date_from and date_to are both inclusive.

Query building:
- Optional predicates are appended as (clause, argument) pairs in a fixed
  order: item_id, action, username, date_from, date_to.
- Placeholders are positional slots :p1..:pN. Slot N binds args[N-1];
  limit and offset always hold the last two slots.
- Argument values are never interpolated into the query text.
"""

from __future__ import annotations

import csv
import io
import logging
from dataclasses import dataclass
from datetime import datetime

from flask import current_app, has_app_context
from sqlalchemy import bindparam, select, text

from ..errors import InvalidInput
from ..extensions import db
from ..models import HistoryAction, ItemHistory
from ..time_utils import to_utc_z, utcnow
from ..validation import is_db_int
from .concurrency import run_with_retry

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 100
EXPORT_LIMIT = 1000

HISTORY_COLUMN_NAMES = ("id", "item_id", "action", "old_data", "new_data", "changed_by", "changed_at")
HISTORY_COLUMNS = ", ".join(HISTORY_COLUMN_NAMES)
BASE_QUERY = f"SELECT {HISTORY_COLUMNS} FROM items_history WHERE 1=1"

CSV_HEADER = ["ID", "Item ID", "Action", "Changed By", "Changed At", "Old Name", "New Name"]


@dataclass
class HistoryFilter:
    item_id: int | None = None
    action: str | None = None
    username: str | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None
    limit: int = DEFAULT_LIMIT
    offset: int = 0


class _PositionalQuery:
    """Accumulates clauses and their arguments so slot numbers cannot drift."""

    def __init__(self, base: str):
        self._parts = [base]
        self.args: list = []

    def slot(self, value) -> str:
        self.args.append(value)
        return f":p{len(self.args)}"

    def append(self, clause_template: str, *values) -> None:
        self._parts.append(clause_template.format(*(self.slot(v) for v in values)))

    def render(self) -> str:
        return "".join(self._parts)


def build_history_query(history_filter: HistoryFilter) -> tuple[str, list]:
    """
    Compose the history SELECT for history_filter.

    Returns (query_text, args). Performs no defaulting: limit and offset are
    bound exactly as given.
    """
    q = _PositionalQuery(BASE_QUERY)

    if history_filter.item_id is not None:
        q.append(" AND item_id = {}", history_filter.item_id)
    if history_filter.action is not None:
        q.append(" AND action = {}", history_filter.action)
    if history_filter.username is not None:
        q.append(" AND changed_by = {}", history_filter.username)
    if history_filter.date_from is not None:
        q.append(" AND changed_at >= {}", history_filter.date_from)
    if history_filter.date_to is not None:
        q.append(" AND changed_at <= {}", history_filter.date_to)

    q.append(
        " ORDER BY changed_at DESC, id DESC LIMIT {} OFFSET {}",
        history_filter.limit,
        history_filter.offset,
    )

    return q.render(), q.args


def query_history(query_text: str, args: list) -> list[ItemHistory]:
    """Execute a built history query, binding slot pN to args[N-1]."""
    stmt = (
        text(query_text)
        .bindparams(*(bindparam(f"p{i}", value) for i, value in enumerate(args, start=1)))
        .columns(*(getattr(ItemHistory, name) for name in HISTORY_COLUMN_NAMES))
    )

    def _op():
        return list(db.session.execute(select(ItemHistory).from_statement(stmt)).scalars().all())

    return run_with_retry(_op)


def _config_value(key: str, default: int) -> int:
    if has_app_context():
        return current_app.config.get(key, default)
    return default


def normalize_filter(history_filter: HistoryFilter) -> HistoryFilter:
    """Apply business defaults before the filter reaches the builder."""
    for name in ("item_id", "limit", "offset"):
        value = getattr(history_filter, name)
        if value is not None and not is_db_int(value):
            raise InvalidInput(f"{name} must be an integer within range")
    if history_filter.action is not None:
        try:
            HistoryAction(history_filter.action)
        except ValueError:
            raise InvalidInput(f"action must be one of: {', '.join(a.value for a in HistoryAction)}")
    if history_filter.limit is None or history_filter.limit <= 0:
        history_filter.limit = _config_value("HISTORY_DEFAULT_LIMIT", DEFAULT_LIMIT)
    if history_filter.offset is None or history_filter.offset < 0:
        history_filter.offset = 0
    if (
        history_filter.date_from is not None
        and history_filter.date_to is not None
        and history_filter.date_from > history_filter.date_to
    ):
        raise InvalidInput("date_from must not be after date_to")
    return history_filter


def list_history(history_filter: HistoryFilter) -> list[ItemHistory]:
    """Filtered, paginated history, newest first."""
    history_filter = normalize_filter(history_filter)
    query_text, args = build_history_query(history_filter)
    logger.info("Getting history (%d bound args)", len(args))
    records = query_history(query_text, args)
    logger.info("Retrieved %d history records", len(records))
    return records


def list_item_history(item_id: int) -> list[ItemHistory]:
    """The most recent history rows for one item."""
    if not is_db_int(item_id) or item_id <= 0:
        raise InvalidInput("item_id must be a positive integer")
    return list_history(HistoryFilter(
        item_id=item_id,
        limit=_config_value("HISTORY_DEFAULT_LIMIT", DEFAULT_LIMIT),
        offset=0,
    ))


def record_history(
    *,
    item_id: int,
    action: HistoryAction,
    actor: str,
    old_data: dict | None = None,
    new_data: dict | None = None,
    changed_at: datetime | None = None,
) -> ItemHistory:
    """
    Append a history row to the current session without committing.

    The caller commits it together with the item change it describes.
    """
    if action == HistoryAction.CREATE and old_data is not None:
        raise ValueError("create history must not carry old_data")
    if action == HistoryAction.DELETE and new_data is not None:
        raise ValueError("delete history must not carry new_data")

    entry = ItemHistory(
        item_id=item_id,
        action=action.value,
        old_data=old_data,
        new_data=new_data,
        changed_by=actor,
        changed_at=changed_at or utcnow(),
    )
    db.session.add(entry)
    db.session.flush()
    return entry


def export_history_csv(history_filter: HistoryFilter | None = None) -> str:
    """Render history as CSV (newest first, capped at HISTORY_EXPORT_LIMIT rows)."""
    history_filter = history_filter or HistoryFilter()
    history_filter.limit = _config_value("HISTORY_EXPORT_LIMIT", EXPORT_LIMIT)
    history_filter.offset = 0
    records = list_history(history_filter)

    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for rec in records:
        writer.writerow([
            rec.id,
            rec.item_id,
            rec.action,
            rec.changed_by,
            to_utc_z(rec.changed_at),
            (rec.old_data or {}).get("name", ""),
            (rec.new_data or {}).get("name", ""),
        ])
    return buf.getvalue()
