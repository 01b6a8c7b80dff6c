# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================
"""Enumerations shared across the backend, the AI clients and the functions."""

from enum import StrEnum


class AlertStatus(StrEnum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class RiskLevel(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class AlertType(StrEnum):
    UNUSUAL_AMOUNT = "unusual_amount"
    UNUSUAL_MERCHANT = "unusual_merchant"
    UNUSUAL_TIME = "unusual_time"
    BUDGET_WARNING = "budget_warning"
    DUPLICATE_CHARGE = "duplicate_charge"
    NORMAL = "normal"


class AdaptiveStrategy(StrEnum):
    AGGRESSIVE = "aggressive"
    MODERATE = "moderate"
    CONSERVATIVE = "conservative"
    CRITICAL = "critical"


class CircuitState(StrEnum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half-open"


class DebtStatus(StrEnum):
    ACTIVE = "active"
    PAID_OFF = "paid_off"


class Mood(StrEnum):
    CALM = "calm"
    ENERGETIC = "energetic"
    CAUTIONARY = "cautionary"
    CELEBRATORY = "celebratory"


class Rarity(StrEnum):
    COMMON = "common"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"


class CelebrationType(StrEnum):
    MILESTONE = "milestone"
    GOAL_COMPLETE = "goal_complete"
    ACHIEVEMENT = "achievement"


class ExportType(StrEnum):
    TRANSACTIONS = "transactions"
    BUDGETS = "budgets"
    GOALS = "goals"
    TAX_REPORT = "tax_report"
    FULL_BACKUP = "full_backup"


class ExportFormat(StrEnum):
    CSV = "csv"
    JSON = "json"
