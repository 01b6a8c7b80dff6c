"""
Admin redirect manager plus the public resolver the client calls on navigation.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from backend.db import DbClient
from backend.dependencies import get_db_client, require_admin
from backend.records import RedirectRecord
from backend.schemas import RedirectCreateRequest, RedirectUpdateRequest

logger = logging.getLogger(__name__)

REDIRECTS_TABLE = "custom_redirects"

router = APIRouter()


def _validate_paths(
    db: DbClient, from_path: str, to_path: str, *, exclude_id: Optional[str] = None
) -> None:
    if not from_path.startswith("/") or not to_path.startswith("/"):
        raise HTTPException(status_code=400, detail="Paths must start with '/'")
    if from_path == to_path:
        raise HTTPException(status_code=400, detail="A redirect cannot point to itself")
    existing = db.query(REDIRECTS_TABLE, filters={"from_path": from_path})
    if any(r.id != exclude_id for r in existing):
        raise HTTPException(
            status_code=400, detail=f"A redirect from {from_path} already exists"
        )


def _get_redirect(db: DbClient, redirect_id: str) -> RedirectRecord:
    record = db.get(REDIRECTS_TABLE, redirect_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Redirect not found")
    return record


@router.get("/admin/redirects")
def list_redirects(
    _: str = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
):
    records = db.query(REDIRECTS_TABLE, order_by="usage_count", descending=True)
    return [r.as_dict() for r in records]


@router.post("/admin/redirects", status_code=201)
def create_redirect(
    payload: RedirectCreateRequest,
    admin_id: str = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
):
    _validate_paths(db, payload.from_path, payload.to_path)
    record = db.insert(
        REDIRECTS_TABLE,
        RedirectRecord(
            from_path=payload.from_path,
            to_path=payload.to_path,
            description=payload.description,
            is_active=payload.is_active,
            created_by=admin_id,
        ),
    )
    logger.info("[Redirects] %s created %s -> %s", admin_id, record.from_path, record.to_path)
    return record.as_dict()


@router.patch("/admin/redirects/{redirect_id}")
def update_redirect(
    redirect_id: str,
    payload: RedirectUpdateRequest,
    _: str = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
):
    record = _get_redirect(db, redirect_id)
    changes = payload.model_dump(exclude_none=True)
    if "from_path" in changes or "to_path" in changes:
        _validate_paths(
            db,
            changes.get("from_path", record.from_path),
            changes.get("to_path", record.to_path),
            exclude_id=redirect_id,
        )
    return db.update(REDIRECTS_TABLE, redirect_id, **changes).as_dict()


@router.post("/admin/redirects/{redirect_id}/toggle")
def toggle_redirect(
    redirect_id: str,
    _: str = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
):
    record = _get_redirect(db, redirect_id)
    return db.update(REDIRECTS_TABLE, redirect_id, is_active=not record.is_active).as_dict()


@router.delete("/admin/redirects/{redirect_id}")
def delete_redirect(
    redirect_id: str,
    _: str = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
):
    _get_redirect(db, redirect_id)
    db.delete(REDIRECTS_TABLE, redirect_id)
    return {"status": "ok"}


@router.get("/redirects/resolve")
def resolve_redirect(
    path: str = Query(..., min_length=1),
    db: DbClient = Depends(get_db_client),
):
    matches = db.query(
        REDIRECTS_TABLE, filters={"from_path": path, "is_active": True}, limit=1
    )
    if not matches:
        raise HTTPException(status_code=404, detail="No redirect for path")
    record = matches[0]
    db.update(REDIRECTS_TABLE, record.id, usage_count=record.usage_count + 1)
    return {"fromPath": record.from_path, "toPath": record.to_path}
