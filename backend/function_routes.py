"""
Named functions served under ``/functions/<name>``.

Each handler validates its camelCase body, delegates to the package that
owns the behaviour and returns that package's JSON payload unchanged.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from alerts import processing
from backend.cache import Cache
from backend.config import get_settings
from backend.db import DbClient
from backend.dependencies import (
    get_ai_services,
    get_cache,
    get_current_user_id,
    get_db_client,
    get_storage_client,
)
from backend.exports import generate_export
from backend.schemas import (
    ClassifyQueryRequest,
    DashboardLayoutRequest,
    ExportRequest,
    InstantAlertRequest,
    OptimizeDebtRequest,
    PortfolioScenarioRequest,
    TimeToGoalRequest,
)
from backend.storage import StorageClient
from engagement.dashboard import get_dashboard
from insights.debt_freedom import predict_debt_freedom
from insights.debt_strategy import optimize_debt_strategy
from insights.health_score import calculate_financial_health
from insights.portfolio_scenario import simulate_portfolio_scenario
from insights.time_to_goal import GoalNotFoundError, calculate_time_to_goal
from models import router as query_router
from models.services import AiServices
from models.tracing import TraceMetadata

logger = logging.getLogger(__name__)

QUOTA_STATUS_CACHE_KEY = "ai-quota-status"
QUOTA_STATUS_TTL_SECONDS = 10

router = APIRouter(prefix="/functions")


@router.post("/classify-query")
def classify_query(
    payload: ClassifyQueryRequest,
    user_id: str = Depends(get_current_user_id),
    ai: AiServices = Depends(get_ai_services),
):
    classification = query_router.classify_query(
        payload.query,
        conversation_history=payload.conversation_history,
        has_attachment=payload.has_attachment,
    )
    try:
        classification = query_router.apply_overrides(
            classification,
            force_model=payload.force_model,
            user_tier=payload.user_tier,
            previous_errors=payload.previous_errors,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    _, trace_id = ai.tracer.trace_routing(
        classification.type,
        classification.model,
        TraceMetadata(
            model=classification.model,
            user_id=user_id,
            query_type=classification.type,
            query_length=len(payload.query),
        ),
        lambda: classification,
    )
    logger.info(
        "[Router] %s -> %s (%.2f)",
        classification.type,
        classification.model,
        classification.confidence,
    )
    return {**classification.as_dict(), "traceId": trace_id}


@router.get("/ai-quota-status")
def ai_quota_status(
    _: str = Depends(get_current_user_id),
    ai: AiServices = Depends(get_ai_services),
    cache: Cache = Depends(get_cache),
):
    status, cached = cache.get_or_set(
        QUOTA_STATUS_CACHE_KEY,
        lambda: {limiter.provider: limiter.status() for limiter in ai.limiters()},
        QUOTA_STATUS_TTL_SECONDS,
    )
    return {"providers": status, "cached": cached}


@router.post("/instant-transaction-alert")
def instant_transaction_alert(
    payload: InstantAlertRequest,
    user_id: str = Depends(get_current_user_id),
    db: DbClient = Depends(get_db_client),
    ai: AiServices = Depends(get_ai_services),
):
    if not payload.transaction:
        raise HTTPException(status_code=400, detail="Transaction is required")
    return processing.instant_transaction_alert(db, ai, user_id, payload.transaction)


@router.post("/process-transaction-alerts")
def process_transaction_alerts(
    _: str = Depends(get_current_user_id),
    db: DbClient = Depends(get_db_client),
    ai: AiServices = Depends(get_ai_services),
):
    return {"success": True, **processing.process_transaction_alerts(db, ai)}


@router.post("/batch-process-alerts")
def batch_process_alerts(
    _: str = Depends(get_current_user_id),
    db: DbClient = Depends(get_db_client),
    ai: AiServices = Depends(get_ai_services),
):
    return {"success": True, **processing.batch_process_alerts(db, ai)}


@router.post("/predict-debt-freedom-date")
def predict_debt_freedom_date(
    user_id: str = Depends(get_current_user_id),
    db: DbClient = Depends(get_db_client),
    ai: AiServices = Depends(get_ai_services),
):
    return predict_debt_freedom(db, ai, user_id)


@router.post("/optimize-debt-strategy")
def optimize_debt(
    payload: OptimizeDebtRequest,
    user_id: str = Depends(get_current_user_id),
    db: DbClient = Depends(get_db_client),
    ai: AiServices = Depends(get_ai_services),
):
    try:
        return optimize_debt_strategy(
            db,
            ai,
            user_id,
            [d.model_dump(by_alias=True) for d in payload.debts],
            extra_payment=payload.extra_payment,
            preferred_strategy=payload.preferred_strategy,
            target_payoff_months=payload.target_payoff_months,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e


@router.post("/simulate-portfolio-scenario")
def portfolio_scenario(
    payload: PortfolioScenarioRequest,
    user_id: str = Depends(get_current_user_id),
    ai: AiServices = Depends(get_ai_services),
):
    try:
        return simulate_portfolio_scenario(
            ai,
            user_id,
            [item.model_dump(exclude_none=True) for item in payload.portfolio_data],
            payload.scenario,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e


@router.post("/calculate-time-to-goal")
def time_to_goal(
    payload: TimeToGoalRequest,
    user_id: str = Depends(get_current_user_id),
    db: DbClient = Depends(get_db_client),
    ai: AiServices = Depends(get_ai_services),
):
    if not payload.goal_id:
        raise HTTPException(status_code=400, detail="Goal ID and user ID are required")
    try:
        return calculate_time_to_goal(db, ai, user_id, payload.goal_id)
    except GoalNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e


@router.post("/calculate-financial-health")
def financial_health(
    user_id: str = Depends(get_current_user_id),
    db: DbClient = Depends(get_db_client),
):
    return calculate_financial_health(db, user_id)


@router.post("/generate-dashboard-layout")
def dashboard_layout(
    payload: Optional[DashboardLayoutRequest] = None,
    user_id: str = Depends(get_current_user_id),
    db: DbClient = Depends(get_db_client),
    ai: AiServices = Depends(get_ai_services),
    cache: Cache = Depends(get_cache),
):
    payload = payload or DashboardLayoutRequest()
    return get_dashboard(
        db,
        ai,
        cache,
        user_id,
        pinned=payload.pinned_widgets,
        force_refresh=payload.force_refresh,
    )


@router.post("/generate-export")
def export_data(
    payload: ExportRequest,
    user_id: str = Depends(get_current_user_id),
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
):
    return generate_export(
        db,
        storage,
        user_id,
        payload.export_type,
        payload.format,
        date_range_start=payload.date_range_start,
        date_range_end=payload.date_range_end,
        category=payload.filters.category if payload.filters else None,
        expires_in=get_settings().export_url_expires_seconds,
    )

