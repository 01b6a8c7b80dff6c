"""
Data exports: a user's rows rendered as CSV or JSON and uploaded to object storage.
"""

from __future__ import annotations

import json
import logging
from datetime import timedelta
from typing import Optional

from backend.db import DbClient
from backend.records import ExportJobRecord
from backend.storage import StorageClient
from shared.types import ExportFormat, ExportType
from shared.utils import now_iso, utc_now

logger = logging.getLogger(__name__)

CONTENT_TYPES = {
    "csv": "text/csv",
    "json": "application/json",
}

TRANSACTION_COLUMNS = ("transaction_date", "amount", "merchant", "category", "is_recurring", "notes")
BUDGET_COLUMNS = ("category", "total_limit", "period", "is_active", "created_at")
GOAL_COLUMNS = ("name", "target_amount", "current_amount", "deadline", "is_active", "created_at")
TAX_COLUMNS = ("transaction_date", "amount", "merchant", "category")
BACKUP_TABLES = ("transactions", "budgets", "goals", "pots", "debts")


def csv_escape(value) -> str:
    if value is None:
        return ""
    text = str(value)
    if "," in text or "\n" in text or '"' in text:
        return '"' + text.replace('"', '""') + '"'
    return text


def generate_csv(rows: list[dict], columns: Optional[tuple] = None) -> str:
    if not rows:
        return ""
    headers = list(columns or rows[0].keys())
    lines = [",".join(headers)]
    for row in rows:
        lines.append(",".join(csv_escape(row.get(col)) for col in headers))
    return "\n".join(lines)


def generate_json(rows: list) -> str:
    return json.dumps(rows, indent=2, default=str)


def _select(rows: list[dict], columns: tuple) -> list[dict]:
    return [{col: row.get(col) for col in columns} for row in rows]


def collect_rows(
    db: DbClient,
    user_id: str,
    export_type: ExportType,
    *,
    date_range_start: Optional[str] = None,
    date_range_end: Optional[str] = None,
    category: Optional[str] = None,
) -> tuple[list[dict], Optional[tuple], str]:
    """Returns ``(rows, columns, file stem)`` for an export type."""
    if export_type == ExportType.TRANSACTIONS:
        filters: dict = {}
        if date_range_start:
            filters["transaction_date__gte"] = date_range_start
        if date_range_end:
            filters["transaction_date__lte"] = date_range_end
        if category:
            filters["category"] = category
        records = db.query(
            "transactions",
            user_id=user_id,
            filters=filters,
            order_by="transaction_date",
            descending=True,
        )
        rows = _select([r.as_dict() for r in records], TRANSACTION_COLUMNS)
        return rows, TRANSACTION_COLUMNS, (
            f"transactions_{date_range_start or 'all'}_{date_range_end or 'now'}"
        )

    if export_type == ExportType.BUDGETS:
        records = db.query("budgets", user_id=user_id)
        return _select([r.as_dict() for r in records], BUDGET_COLUMNS), BUDGET_COLUMNS, "budgets"

    if export_type == ExportType.GOALS:
        records = db.query("goals", user_id=user_id)
        return _select([r.as_dict() for r in records], GOAL_COLUMNS), GOAL_COLUMNS, "goals"

    if export_type == ExportType.TAX_REPORT:
        year = (date_range_start or "")[:4] or str(utc_now().year)
        records = db.query(
            "transactions",
            user_id=user_id,
            filters={
                "transaction_date__gte": f"{year}-01-01",
                "transaction_date__lte": f"{year}-12-31T23:59:59",
            },
            order_by="transaction_date",
        )
        rows = _select([r.as_dict() for r in records], TAX_COLUMNS)
        # Stable sort keeps date order inside each category.
        rows.sort(key=lambda r: r.get("category") or "")
        return rows, TAX_COLUMNS, f"tax_report_{year}"

    backup = {"exported_at": now_iso()}
    for table in BACKUP_TABLES:
        backup[table] = [r.as_dict() for r in db.query(table, user_id=user_id)]
    return [backup], None, "full_backup"


def generate_export(
    db: DbClient,
    storage: StorageClient,
    user_id: str,
    export_type: ExportType,
    export_format: ExportFormat,
    *,
    date_range_start: Optional[str] = None,
    date_range_end: Optional[str] = None,
    category: Optional[str] = None,
    expires_in: int = 3600,
) -> dict:
    job = db.insert(
        "export_jobs",
        ExportJobRecord(
            user_id=user_id,
            export_type=export_type.value,
            format=export_format.value,
            status="processing",
        ),
    )
    logger.info(
        "Generating export job %s for user %s: %s as %s",
        job.id,
        user_id,
        export_type.value,
        export_format.value,
    )
    try:
        rows, columns, stem = collect_rows(
            db,
            user_id,
            export_type,
            date_range_start=date_range_start,
            date_range_end=date_range_end,
            category=category,
        )
        # A full backup is nested, so it is always written as JSON.
        if export_format == ExportFormat.CSV and export_type != ExportType.FULL_BACKUP:
            content = generate_csv(rows, columns)
            extension = "csv"
        else:
            content = generate_json(rows)
            extension = "json"
        file_name = f"{stem}_{utc_now().date().isoformat()}.{extension}"
        path = f"exports/{user_id}/{file_name}"
        data = content.encode("utf-8")
        storage.upload_bytes(path, data, CONTENT_TYPES[extension])
        url = storage.presign_get(path, expires_in=expires_in)
    except Exception as e:
        logger.exception("Export job %s failed", job.id)
        db.update("export_jobs", job.id, status="failed", error_message=str(e))
        raise

    db.update(
        "export_jobs", job.id, status="completed", storage_path=path, row_count=len(rows)
    )
    expires_at = utc_now() + timedelta(seconds=expires_in)
    logger.info("Export complete: %d records, %d bytes", len(rows), len(data))
    return {
        "success": True,
        "jobId": job.id,
        "fileUrl": url,
        "fileName": file_name,
        "recordCount": len(rows),
        "fileSize": len(data),
        "expiresAt": expires_at.isoformat(),
    }
