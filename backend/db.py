"""
Data store abstraction for Postgres and an in-memory test implementation.

Every table is stored as JSON documents keyed by (table, id). Filters use a
small lookup syntax on record fields: ``{"status": "pending"}`` for equality
and ``{"amount__lt": 0}``, ``{"transaction_date__gte": "2025-01-01"}``,
``{"status__in": [...]}`` for comparisons.
"""

from __future__ import annotations

import copy
from datetime import timedelta
from typing import Any, Dict, Iterable, Optional, Protocol

from sqlalchemy import JSON, Column, String, create_engine, select
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from backend.records import Record, record_from_dict, record_type
from shared.types import AlertStatus
from shared.utils import now_iso, utc_now

ALERT_QUEUE_TABLE = "transaction_alert_queue"

_LOOKUPS = {
    "eq": lambda value, arg: value == arg,
    "ne": lambda value, arg: value != arg,
    "lt": lambda value, arg: value is not None and value < arg,
    "lte": lambda value, arg: value is not None and value <= arg,
    "gt": lambda value, arg: value is not None and value > arg,
    "gte": lambda value, arg: value is not None and value >= arg,
    "in": lambda value, arg: value in arg,
}


class DbClient(Protocol):
    """Interface for data store access."""

    def insert(self, table: str, record: Record) -> Record:
        ...

    def get(self, table: str, record_id: str) -> Optional[Record]:
        ...

    def update(self, table: str, record_id: str, **changes: Any) -> Optional[Record]:
        ...

    def delete(self, table: str, record_id: str) -> bool:
        ...

    def query(
        self,
        table: str,
        *,
        user_id: Optional[str] = None,
        filters: Optional[dict] = None,
        order_by: Optional[str] = "created_at",
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[Record]:
        ...

    def count(
        self,
        table: str,
        *,
        user_id: Optional[str] = None,
        filters: Optional[dict] = None,
    ) -> int:
        ...

    def claim_pending_alerts(self, limit: int) -> list[Record]:
        ...

    def requeue_stale_alerts(self, lock_timeout_seconds: float = 900) -> int:
        ...


def _split_lookup(key: str) -> tuple[str, str]:
    field_name, _, op = key.partition("__")
    op = op or "eq"
    if op not in _LOOKUPS:
        raise ValueError(f"Unsupported filter lookup: {key}")
    return field_name, op


def matches_filters(doc: dict, filters: Optional[dict]) -> bool:
    """Returns True when a stored document satisfies every filter."""
    if not filters:
        return True
    for key, arg in filters.items():
        field_name, op = _split_lookup(key)
        if not _LOOKUPS[op](doc.get(field_name), arg):
            return False
    return True


def sort_and_limit(
    docs: Iterable[dict],
    order_by: Optional[str],
    descending: bool,
    limit: Optional[int],
) -> list[dict]:
    docs = list(docs)
    if order_by:
        # Missing values always sort last.
        present = [d for d in docs if d.get(order_by) is not None]
        missing = [d for d in docs if d.get(order_by) is None]
        present.sort(key=lambda d: d[order_by], reverse=descending)
        docs = present + missing
    if limit is not None:
        docs = docs[:limit]
    return docs


def _apply_changes(table: str, doc: dict, changes: dict) -> dict:
    fields = record_type(table).__dataclass_fields__
    unknown = [key for key in changes if key not in fields]
    if unknown:
        raise ValueError(f"Unknown fields for {table}: {', '.join(sorted(unknown))}")
    updated = dict(doc)
    updated.update(changes)
    updated["id"] = doc["id"]
    updated["updated_at"] = now_iso()
    return updated


def _check_record(table: str, record: Record) -> None:
    expected = record_type(table)
    if not isinstance(record, expected):
        raise TypeError(
            f"Table {table} stores {expected.__name__}, got {type(record).__name__}"
        )


class InMemoryDbClient:
    """Simple in-memory data store for development and tests."""

    def __init__(self):
        self.tables: Dict[str, Dict[str, dict]] = {}

    def _table(self, table: str) -> Dict[str, dict]:
        record_type(table)
        return self.tables.setdefault(table, {})

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.tables.clear()

    def insert(self, table: str, record: Record) -> Record:
        _check_record(table, record)
        self._table(table)[record.id] = copy.deepcopy(record.as_dict())
        return record

    def get(self, table: str, record_id: str) -> Optional[Record]:
        doc = self._table(table).get(record_id)
        return record_from_dict(table, copy.deepcopy(doc)) if doc else None

    def update(self, table: str, record_id: str, **changes: Any) -> Optional[Record]:
        rows = self._table(table)
        doc = rows.get(record_id)
        if doc is None:
            return None
        rows[record_id] = _apply_changes(table, doc, copy.deepcopy(changes))
        return record_from_dict(table, copy.deepcopy(rows[record_id]))

    def delete(self, table: str, record_id: str) -> bool:
        return self._table(table).pop(record_id, None) is not None

    def _select(self, table: str, user_id: Optional[str], filters: Optional[dict]):
        for doc in self._table(table).values():
            if user_id is not None and doc.get("user_id") != user_id:
                continue
            if matches_filters(doc, filters):
                yield doc

    def query(
        self,
        table: str,
        *,
        user_id: Optional[str] = None,
        filters: Optional[dict] = None,
        order_by: Optional[str] = "created_at",
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[Record]:
        docs = sort_and_limit(
            self._select(table, user_id, filters), order_by, descending, limit
        )
        return [record_from_dict(table, copy.deepcopy(doc)) for doc in docs]

    def count(
        self,
        table: str,
        *,
        user_id: Optional[str] = None,
        filters: Optional[dict] = None,
    ) -> int:
        return sum(1 for _ in self._select(table, user_id, filters))

    def claim_pending_alerts(self, limit: int) -> list[Record]:
        pending = sort_and_limit(
            self._select(ALERT_QUEUE_TABLE, None, {"status": AlertStatus.PENDING.value}),
            "created_at",
            False,
            limit,
        )
        claimed = []
        for doc in pending:
            claimed.append(
                self.update(
                    ALERT_QUEUE_TABLE, doc["id"], status=AlertStatus.PROCESSING.value
                )
            )
        return claimed

    def requeue_stale_alerts(self, lock_timeout_seconds: float = 900) -> int:
        cutoff = (utc_now() - timedelta(seconds=lock_timeout_seconds)).isoformat()
        stale = list(
            self._select(
                ALERT_QUEUE_TABLE,
                None,
                {"status": AlertStatus.PROCESSING.value, "updated_at__lt": cutoff},
            )
        )
        for doc in stale:
            self.update(ALERT_QUEUE_TABLE, doc["id"], status=AlertStatus.PENDING.value)
        return len(stale)


class PostgresDbClient:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for PostgresDbClient")
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    @staticmethod
    def _write_row(row: "RecordRow", doc: dict) -> None:
        # Assign a fresh dict so SQLAlchemy sees the JSON column change.
        row.data = dict(doc)
        row.user_id = doc.get("user_id")
        status = doc.get("status")
        row.status = status if isinstance(status, str) else None
        row.created_at = doc["created_at"]
        row.updated_at = doc["updated_at"]

    def _candidates(
        self,
        session: Session,
        table: str,
        user_id: Optional[str],
        filters: Optional[dict],
    ):
        record_type(table)
        stmt = select(RecordRow).where(RecordRow.table_name == table)
        if user_id is not None:
            stmt = stmt.where(RecordRow.user_id == user_id)
        status = (filters or {}).get("status")
        if isinstance(status, str):
            stmt = stmt.where(RecordRow.status == status)
        for row in session.execute(stmt).scalars():
            if matches_filters(row.data, filters):
                yield row

    def insert(self, table: str, record: Record) -> Record:
        _check_record(table, record)
        with self.Session() as session:
            row = RecordRow(table_name=table, id=record.id)
            self._write_row(row, record.as_dict())
            session.add(row)
            session.commit()
        return record

    def get(self, table: str, record_id: str) -> Optional[Record]:
        record_type(table)
        with self.Session() as session:
            row = session.get(RecordRow, (table, record_id))
            return record_from_dict(table, row.data) if row else None

    def update(self, table: str, record_id: str, **changes: Any) -> Optional[Record]:
        with self.Session() as session:
            row = session.get(RecordRow, (table, record_id))
            if not row:
                return None
            doc = _apply_changes(table, row.data, changes)
            self._write_row(row, doc)
            session.commit()
            return record_from_dict(table, doc)

    def delete(self, table: str, record_id: str) -> bool:
        with self.Session() as session:
            row = session.get(RecordRow, (table, record_id))
            if not row:
                return False
            session.delete(row)
            session.commit()
            return True

    def query(
        self,
        table: str,
        *,
        user_id: Optional[str] = None,
        filters: Optional[dict] = None,
        order_by: Optional[str] = "created_at",
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[Record]:
        with self.Session() as session:
            docs = [
                row.data for row in self._candidates(session, table, user_id, filters)
            ]
        docs = sort_and_limit(docs, order_by, descending, limit)
        return [record_from_dict(table, doc) for doc in docs]

    def count(
        self,
        table: str,
        *,
        user_id: Optional[str] = None,
        filters: Optional[dict] = None,
    ) -> int:
        with self.Session() as session:
            return sum(1 for _ in self._candidates(session, table, user_id, filters))

    def claim_pending_alerts(self, limit: int) -> list[Record]:
        with self.Session() as session:
            stmt = (
                select(RecordRow)
                .where(
                    RecordRow.table_name == ALERT_QUEUE_TABLE,
                    RecordRow.status == AlertStatus.PENDING.value,
                )
                .order_by(RecordRow.created_at.asc())
                .limit(limit)
                .with_for_update(skip_locked=True)
            )
            rows = session.execute(stmt).scalars().all()
            claimed = []
            for row in rows:
                doc = _apply_changes(
                    ALERT_QUEUE_TABLE, row.data, {"status": AlertStatus.PROCESSING.value}
                )
                self._write_row(row, doc)
                claimed.append(record_from_dict(ALERT_QUEUE_TABLE, doc))
            session.commit()
            return claimed

    def requeue_stale_alerts(self, lock_timeout_seconds: float = 900) -> int:
        cutoff = (utc_now() - timedelta(seconds=lock_timeout_seconds)).isoformat()
        with self.Session() as session:
            stmt = select(RecordRow).where(
                RecordRow.table_name == ALERT_QUEUE_TABLE,
                RecordRow.status == AlertStatus.PROCESSING.value,
                RecordRow.updated_at < cutoff,
            )
            rows = session.execute(stmt).scalars().all()
            for row in rows:
                doc = _apply_changes(
                    ALERT_QUEUE_TABLE, row.data, {"status": AlertStatus.PENDING.value}
                )
                self._write_row(row, doc)
            session.commit()
            return len(rows)


Base = declarative_base()


class RecordRow(Base):
    __tablename__ = "records"

    table_name = Column(String, primary_key=True)
    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=True, index=True)
    status = Column(String, nullable=True, index=True)
    created_at = Column(String, nullable=False, index=True)
    updated_at = Column(String, nullable=False)
    data = Column(JSON, nullable=False)
