"""
HTTP routes for the per-user records: CRUD plus a few read and write helpers.
"""

from __future__ import annotations

import logging
from typing import Any, Literal

from dacite import DaciteError
from fastapi import APIRouter, Body, Depends, HTTPException, Query

from backend.db import ALERT_QUEUE_TABLE, DbClient
from backend.dependencies import get_current_user_id, get_db_client, get_queue_client
from backend.queue import PROCESS_ALERTS_JOB, Job, JobQueue
from backend.records import (
    USER_TABLES,
    AlertQueueRecord,
    Record,
    WalletNotificationRecord,
    record_from_dict,
    record_type,
    validate_record_fields,
)
from backend.schemas import AmountRequest
from engagement.celebrations import progress_celebrations, streak_achievements
from engagement.dashboard import savings_streak
from shared.utils import parse_date, progress_percent, utc_now

logger = logging.getLogger(__name__)

router = APIRouter()

TABLE_PATHS = {
    "accounts": "accounts",
    "transactions": "transactions",
    "goals": "goals",
    "budgets": "budgets",
    "pots": "pots",
    "debts": "debts",
    "debt_payments": "debt-payments",
    "wishlist_items": "wishlist",
    "wallets": "wallets",
    "investments": "investments",
    "credit_scores": "credit-scores",
}

READ_ONLY_FIELDS = {"id", "user_id", "created_at", "updated_at"}


def _writable_fields(table: str, body: dict) -> dict:
    fields = record_type(table).__dataclass_fields__
    invalid = sorted(key for key in body if key not in fields or key in READ_ONLY_FIELDS)
    if invalid:
        raise HTTPException(status_code=400, detail=f"Invalid fields: {', '.join(invalid)}")
    try:
        validate_record_fields(table, body)
    except DaciteError as e:
        raise HTTPException(status_code=400, detail=f"Invalid field value: {e}") from e
    return body


def _owned(db: DbClient, table: str, record_id: str, user_id: str) -> Record:
    record = db.get(table, record_id)
    # Another user's row is reported exactly like a missing one.
    if record is None or getattr(record, "user_id", None) != user_id:
        raise HTTPException(status_code=404, detail="Not found")
    return record


def _create(db: DbClient, table: str, user_id: str, body: dict) -> Record:
    fields = _writable_fields(table, body)
    return db.insert(table, record_from_dict(table, {**fields, "user_id": user_id}))


# Wishlist helpers are registered before the generic routes so /stats is not
# captured as a record id.


def _wishlist_progress(item: dict) -> float:
    target = item.get("target_amount") or 0
    return (item.get("saved_amount") or 0) / target if target > 0 else 0


@router.get("/wishlist")
def list_wishlist(
    sort_by: Literal["priority", "progress", "amount", "date"] = Query(default="priority"),
    user_id: str = Depends(get_current_user_id),
    db: DbClient = Depends(get_db_client),
):
    items = [
        r.as_dict()
        for r in db.query("wishlist_items", user_id=user_id, filters={"is_purchased": False})
    ]
    if sort_by == "priority":
        items.sort(key=lambda i: i.get("priority") or 3)
    elif sort_by == "progress":
        items.sort(key=_wishlist_progress, reverse=True)
    elif sort_by == "amount":
        items.sort(key=lambda i: i.get("target_amount") or 0, reverse=True)
    else:
        dated = sorted((i for i in items if i.get("target_date")), key=lambda i: i["target_date"])
        items = dated + [i for i in items if not i.get("target_date")]
    return items


@router.get("/wishlist/stats")
def wishlist_stats(
    user_id: str = Depends(get_current_user_id),
    db: DbClient = Depends(get_db_client),
):
    items = db.query("wishlist_items", user_id=user_id)
    active = [i for i in items if not i.is_purchased]
    total_target = sum(i.target_amount for i in active)
    total_saved = sum(i.saved_amount for i in active)
    return {
        "totalItems": len(active),
        "purchasedCount": len(items) - len(active),
        "totalTarget": total_target,
        "totalSaved": total_saved,
        "overallProgress": total_saved / total_target * 100 if total_target > 0 else 0,
        "highPriorityCount": sum(1 for i in active if i.priority <= 2),
        "remainingToSave": total_target - total_saved,
    }


def _contribute(
    db: DbClient, table: str, record: Record, payload: AmountRequest, *, amount_field: str
) -> dict:
    current = getattr(record, amount_field) or 0
    target = record.target_amount
    updated = db.update(table, record.id, **{amount_field: current + payload.amount})
    celebrations = progress_celebrations(
        progress_percent(current, target),
        progress_percent(current + payload.amount, target),
        item_name=record.name,
        reduced_motion=payload.reduced_motion,
    )
    if celebrations:
        logger.info(
            "[Celebrations] %d fired for %s %s", len(celebrations), table, record.id
        )
    return {
        "record": updated.as_dict(),
        "celebrations": [c.as_dict() for c in celebrations],
    }


@router.post("/goals/{record_id}/contribute")
def contribute_to_goal(
    record_id: str,
    payload: AmountRequest,
    user_id: str = Depends(get_current_user_id),
    db: DbClient = Depends(get_db_client),
):
    goal = _owned(db, "goals", record_id, user_id)
    return _contribute(db, "goals", goal, payload, amount_field="current_amount")


@router.post("/pots/{record_id}/deposit")
def deposit_to_pot(
    record_id: str,
    payload: AmountRequest,
    user_id: str = Depends(get_current_user_id),
    db: DbClient = Depends(get_db_client),
):
    pot = _owned(db, "pots", record_id, user_id)
    return _contribute(db, "pots", pot, payload, amount_field="current_amount")


@router.post("/wishlist/{record_id}/save")
def save_toward_wishlist_item(
    record_id: str,
    payload: AmountRequest,
    user_id: str = Depends(get_current_user_id),
    db: DbClient = Depends(get_db_client),
):
    item = _owned(db, "wishlist_items", record_id, user_id)
    return _contribute(db, "wishlist_items", item, payload, amount_field="saved_amount")


def _income_dates(db: DbClient, user_id: str, exclude_id: str) -> list[dict]:
    return [
        r.as_dict()
        for r in db.query("transactions", user_id=user_id, filters={"amount__gt": 0})
        if r.id != exclude_id
    ]


def _record_streak_achievements(db: DbClient, user_id: str, record: Record) -> None:
    today = utc_now().date()
    if parse_date(record.transaction_date) != today:
        return
    previous = _income_dates(db, user_id, record.id)
    before = savings_streak(previous, today)
    after = savings_streak(previous + [record.as_dict()], today)
    for achievement in streak_achievements(before, after):
        db.insert(
            "wallet_notifications",
            WalletNotificationRecord(
                user_id=user_id,
                notification_type="achievement",
                title=achievement.title,
                message=achievement.message,
                metadata=achievement.as_dict(),
            ),
        )


@router.post("/transactions", status_code=201)
def create_transaction(
    body: dict[str, Any] = Body(...),
    user_id: str = Depends(get_current_user_id),
    db: DbClient = Depends(get_db_client),
    queue: JobQueue = Depends(get_queue_client),
):
    """Spending is queued for anomaly analysis; income may extend the savings streak."""
    record = _create(db, "transactions", user_id, body)
    if record.amount < 0:
        db.insert(
            ALERT_QUEUE_TABLE,
            AlertQueueRecord(
                user_id=user_id,
                transaction_data={
                    "id": record.id,
                    "merchant": record.merchant,
                    "amount": record.amount,
                    "category": record.category,
                    "transaction_date": record.transaction_date,
                },
            ),
        )
        queue.enqueue(Job(PROCESS_ALERTS_JOB))
    elif record.amount > 0:
        _record_streak_achievements(db, user_id, record)
    return record.as_dict()


def _register_crud(table: str, path: str) -> None:
    def list_records(
        user_id: str = Depends(get_current_user_id),
        db: DbClient = Depends(get_db_client),
    ):
        return [r.as_dict() for r in db.query(table, user_id=user_id, descending=True)]

    def create_record(
        body: dict[str, Any] = Body(...),
        user_id: str = Depends(get_current_user_id),
        db: DbClient = Depends(get_db_client),
    ):
        return _create(db, table, user_id, body).as_dict()

    def get_record(
        record_id: str,
        user_id: str = Depends(get_current_user_id),
        db: DbClient = Depends(get_db_client),
    ):
        return _owned(db, table, record_id, user_id).as_dict()

    def update_record(
        record_id: str,
        body: dict[str, Any] = Body(...),
        user_id: str = Depends(get_current_user_id),
        db: DbClient = Depends(get_db_client),
    ):
        _owned(db, table, record_id, user_id)
        return db.update(table, record_id, **_writable_fields(table, body)).as_dict()

    def delete_record(
        record_id: str,
        user_id: str = Depends(get_current_user_id),
        db: DbClient = Depends(get_db_client),
    ):
        _owned(db, table, record_id, user_id)
        db.delete(table, record_id)
        return {"status": "ok"}

    if path != "wishlist":
        router.add_api_route(f"/{path}", list_records, methods=["GET"], name=f"list_{table}")
    if path != "transactions":
        router.add_api_route(
            f"/{path}", create_record, methods=["POST"], status_code=201, name=f"create_{table}"
        )
    router.add_api_route(f"/{path}/{{record_id}}", get_record, methods=["GET"], name=f"get_{table}")
    router.add_api_route(
        f"/{path}/{{record_id}}", update_record, methods=["PATCH"], name=f"update_{table}"
    )
    router.add_api_route(
        f"/{path}/{{record_id}}", delete_record, methods=["DELETE"], name=f"delete_{table}"
    )


for _table in USER_TABLES:
    _register_crud(_table, TABLE_PATHS[_table])
