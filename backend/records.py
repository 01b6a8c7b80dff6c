"""
Record types for every table the backend persists.

Records are plain dataclasses. They are stored as JSON documents and rebuilt
with dacite, so every field must be JSON-compatible (dates are ISO strings).
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional, Type

from dacite import Config, from_dict

from shared.utils import get_unique_id, now_iso


@dataclass
class Record:
    id: str = field(default_factory=get_unique_id)
    created_at: str = field(default_factory=now_iso)
    updated_at: str = field(default_factory=now_iso)

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass
class UserRecord(Record):
    user_id: str = ""


# User-owned entities


@dataclass
class AccountRecord(UserRecord):
    name: str = ""
    account_type: str = "checking"
    balance: float = 0.0
    currency: str = "USD"
    institution: Optional[str] = None
    is_active: bool = True


@dataclass
class TransactionRecord(UserRecord):
    amount: float = 0.0
    merchant: Optional[str] = None
    category: Optional[str] = None
    transaction_date: str = field(default_factory=now_iso)
    account_id: Optional[str] = None
    is_recurring: bool = False
    notes: Optional[str] = None


@dataclass
class GoalRecord(UserRecord):
    name: str = ""
    target_amount: float = 0.0
    current_amount: float = 0.0
    deadline: Optional[str] = None
    icon: Optional[str] = None
    is_active: bool = True


@dataclass
class BudgetRecord(UserRecord):
    category: str = ""
    total_limit: float = 0.0
    spent_amount: float = 0.0
    period: str = "monthly"
    is_active: bool = True


@dataclass
class PotRecord(UserRecord):
    name: str = ""
    target_amount: Optional[float] = None
    current_amount: float = 0.0
    color: Optional[str] = None
    is_active: bool = True


@dataclass
class DebtRecord(UserRecord):
    debt_name: str = ""
    debt_type: str = "credit_card"
    current_balance: float = 0.0
    original_balance: Optional[float] = None
    interest_rate: float = 0.0
    minimum_payment: float = 0.0
    actual_payment: Optional[float] = None
    status: str = "active"
    due_day: Optional[int] = None


@dataclass
class DebtPaymentRecord(UserRecord):
    debt_id: str = ""
    amount: float = 0.0
    payment_date: str = field(default_factory=now_iso)


@dataclass
class WishlistItemRecord(UserRecord):
    name: str = ""
    description: Optional[str] = None
    target_amount: float = 0.0
    saved_amount: float = 0.0
    currency: str = "USD"
    priority: int = 3
    category: str = "general"
    product_url: Optional[str] = None
    target_date: Optional[str] = None
    is_purchased: bool = False
    purchased_at: Optional[str] = None
    notes: Optional[str] = None


@dataclass
class WalletRecord(UserRecord):
    name: str = ""
    chain: str = "ethereum"
    address: str = ""
    balance: float = 0.0
    token_symbol: str = "ETH"
    is_primary: bool = False


@dataclass
class InvestmentRecord(UserRecord):
    name: str = ""
    asset_class: str = "equity"
    total_value: float = 0.0
    gains_losses: float = 0.0


@dataclass
class CreditScoreRecord(UserRecord):
    score: int = 0
    rating: Optional[str] = None
    score_date: str = field(default_factory=now_iso)


# Admin


@dataclass
class RedirectRecord(Record):
    from_path: str = ""
    to_path: str = ""
    description: Optional[str] = None
    is_active: bool = True
    usage_count: int = 0
    created_by: Optional[str] = None


# Written by functions


@dataclass
class AlertQueueRecord(UserRecord):
    transaction_data: Dict[str, Any] = field(default_factory=dict)
    status: str = "pending"
    error_message: Optional[str] = None
    processed_at: Optional[str] = None


@dataclass
class WalletNotificationRecord(UserRecord):
    notification_type: str = ""
    title: str = ""
    message: str = ""
    priority: str = "low"
    read: bool = False
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class PushNotificationRecord(UserRecord):
    notification_type: str = ""
    subject: str = ""
    content: Dict[str, Any] = field(default_factory=dict)
    status: str = "pending"


@dataclass
class RoutingAnalyticsRecord(UserRecord):
    query_type: str = ""
    model_used: str = ""
    response_time_ms: int = 0
    confidence_score: Optional[float] = None
    estimated_cost: Optional[float] = None
    query_length: Optional[int] = None
    token_count: Optional[int] = None
    reasoning_tokens: Optional[int] = None


@dataclass
class BatchAnalyticsRecord(Record):
    batch_id: str = ""
    queue_depth: int = 0
    batch_size: int = 0
    transactions_processed: int = 0
    anomalies_detected: int = 0
    groq_latency_ms: int = 0
    total_processing_ms: int = 0
    tokens_used: int = 0
    error_message: Optional[str] = None


@dataclass
class HealthScoreRecord(UserRecord):
    overall_score: int = 0
    credit_score_component: float = 0.0
    debt_component: float = 0.0
    savings_component: float = 0.0
    goals_component: float = 0.0
    investment_component: float = 0.0
    emergency_fund_component: float = 0.0
    recommendations: list = field(default_factory=list)


@dataclass
class ExportJobRecord(UserRecord):
    export_type: str = ""
    format: str = "csv"
    status: str = "pending"
    storage_path: Optional[str] = None
    row_count: int = 0
    error_message: Optional[str] = None


TABLES: Dict[str, Type[Record]] = {
    "accounts": AccountRecord,
    "transactions": TransactionRecord,
    "goals": GoalRecord,
    "budgets": BudgetRecord,
    "pots": PotRecord,
    "debts": DebtRecord,
    "debt_payments": DebtPaymentRecord,
    "wishlist_items": WishlistItemRecord,
    "wallets": WalletRecord,
    "investments": InvestmentRecord,
    "credit_scores": CreditScoreRecord,
    "custom_redirects": RedirectRecord,
    "transaction_alert_queue": AlertQueueRecord,
    "wallet_notifications": WalletNotificationRecord,
    "notification_queue": PushNotificationRecord,
    "ai_model_routing_analytics": RoutingAnalyticsRecord,
    "batch_processing_analytics": BatchAnalyticsRecord,
    "financial_health_scores": HealthScoreRecord,
    "export_jobs": ExportJobRecord,
}

# Tables exposed through the per-user CRUD routes.
USER_TABLES = (
    "accounts",
    "transactions",
    "goals",
    "budgets",
    "pots",
    "debts",
    "debt_payments",
    "wishlist_items",
    "wallets",
    "investments",
    "credit_scores",
)

_DACITE_CONFIG = Config(check_types=False)


def record_type(table: str) -> Type[Record]:
    try:
        return TABLES[table]
    except KeyError:
        raise ValueError(f"Unknown table: {table}") from None


def record_from_dict(table: str, data: dict) -> Record:
    return from_dict(record_type(table), data, config=_DACITE_CONFIG)


def _json_number_to_float(value: Any) -> Any:
    # JSON has one number type; integers are valid for float fields.
    if isinstance(value, int) and not isinstance(value, bool):
        return float(value)
    return value


_STRICT_DACITE_CONFIG = Config(check_types=True, type_hooks={float: _json_number_to_float})


def validate_record_fields(table: str, data: dict) -> None:
    """Raises ``dacite.DaciteError`` when a value does not match its field type."""
    from_dict(record_type(table), data, config=_STRICT_DACITE_CONFIG)
