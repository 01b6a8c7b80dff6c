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

import calendar
import uuid
from datetime import date, datetime, timedelta, timezone


def get_unique_id() -> str:
    return uuid.uuid4().hex


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def now_iso() -> str:
    return utc_now().isoformat()


def days_ago_iso(days: int) -> str:
    return (utc_now() - timedelta(days=days)).isoformat()


def parse_date(value: str | None) -> date | None:
    """Parses an ISO date or datetime string, returning just the date."""
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).date()
    except ValueError:
        return date.fromisoformat(value[:10])


def add_months(start: date, months: int) -> date:
    """Adds calendar months, clamping the day to the target month's length."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def progress_percent(current: float | None, target: float | None) -> float:
    """Progress toward a target, clamped to [0, 100] for presentation."""
    if not target or target <= 0:
        return 0.0
    return clamp((current or 0) / target * 100)


def days_ago_date(days: int) -> str:
    """ISO date ``days`` before today, for comparing against date-only fields."""
    return (utc_now() - timedelta(days=days)).date().isoformat()
