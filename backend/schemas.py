"""
Pydantic request schemas for the $ave+ API.

Function bodies use camelCase keys; the models expose snake_case attributes.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from shared.types import ExportFormat, ExportType


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AmountRequest(BaseModel):
    amount: float = Field(..., gt=0)
    reduced_motion: bool = False


class RedirectCreateRequest(BaseModel):
    from_path: str = Field(..., min_length=1)
    to_path: str = Field(..., min_length=1)
    description: Optional[str] = None
    is_active: bool = True


class RedirectUpdateRequest(BaseModel):
    from_path: Optional[str] = None
    to_path: Optional[str] = None
    description: Optional[str] = None
    is_active: Optional[bool] = None


class ClassifyQueryRequest(CamelModel):
    query: str = Field(..., min_length=1)
    conversation_history: Optional[list] = None
    has_attachment: bool = False
    force_model: Optional[str] = None
    user_tier: Optional[str] = None
    previous_errors: Optional[list[str]] = None


class InstantAlertRequest(CamelModel):
    transaction: dict


class DebtInput(CamelModel):
    id: Optional[str] = None
    name: str = "Debt"
    balance: float = Field(..., ge=0)
    interest_rate: float = Field(..., ge=0)
    minimum_payment: float = Field(..., ge=0)
    type: Optional[str] = None


class OptimizeDebtRequest(CamelModel):
    debts: list[DebtInput] = Field(default_factory=list)
    extra_payment: float = Field(default=0.0, ge=0)
    preferred_strategy: Optional[str] = None
    target_payoff_months: Optional[int] = None


class PortfolioItem(CamelModel):
    name: str
    value: float
    change: Optional[float] = None


class PortfolioScenarioRequest(CamelModel):
    portfolio_data: list[PortfolioItem] = Field(default_factory=list)
    scenario: str = ""


class TimeToGoalRequest(CamelModel):
    goal_id: Optional[str] = None


class DashboardLayoutRequest(CamelModel):
    pinned_widgets: list[str] = Field(default_factory=list)
    force_refresh: bool = False


class ExportFilters(BaseModel):
    category: Optional[str] = None


class ExportRequest(CamelModel):
    export_type: ExportType
    format: ExportFormat = ExportFormat.CSV
    date_range_start: Optional[str] = None
    date_range_end: Optional[str] = None
    filters: Optional[ExportFilters] = None
