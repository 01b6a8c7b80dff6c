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
"""
Adaptive rate limiting and circuit breaking around a chat gateway.

Each provider keeps a quota state refreshed from ``x-ratelimit-*`` response
headers. The remaining share of the quota picks a throttle strategy, and
repeated failures or a 429 open the circuit for a recovery window.
"""

import json
import logging
import time
from dataclasses import asdict, dataclass, field
from typing import Callable, Dict, Optional, Protocol

import redis

from models import api_config
from models.gateway import (
    ChatResult,
    GatewayError,
    GatewayRateLimitedError,
    GatewayUnavailableError,
    LlmGateway,
)
from shared.types import AdaptiveStrategy, CircuitState

logger = logging.getLogger(__name__)

FAILURE_THRESHOLD = 3
RECOVERY_TIME_SECONDS = 60
MIN_REQUESTS_REMAINING = 5
MIN_TOKENS_REMAINING = 1000
QUOTA_WINDOW_SECONDS = 60
LATENCY_SMOOTHING = 0.2

STRATEGY_THRESHOLDS = (
    (0.7, AdaptiveStrategy.AGGRESSIVE),
    (0.3, AdaptiveStrategy.MODERATE),
    (0.1, AdaptiveStrategy.CONSERVATIVE),
)

STRATEGY_DELAYS_MS = {
    AdaptiveStrategy.AGGRESSIVE: 0,
    AdaptiveStrategy.MODERATE: 100,
    AdaptiveStrategy.CONSERVATIVE: 500,
    AdaptiveStrategy.CRITICAL: 2000,
}

# (requests limit, tokens limit) assumed before any headers are seen.
PROVIDER_DEFAULTS = {
    api_config.SPEED_PROVIDER: (14400, 6000),
    api_config.REASONING_PROVIDER: (60, 1_000_000),
    api_config.GENERAL_PROVIDER: (60, 1_000_000),
}


@dataclass
class QuotaState:
    provider: str
    requests_remaining: int
    requests_limit: int
    tokens_remaining: int
    tokens_limit: int
    avg_latency_ms: float = 0.0
    consecutive_failures: int = 0
    circuit_state: str = CircuitState.CLOSED.value
    circuit_opened_at: Optional[float] = None
    reasoning_tokens_used: int = 0
    total_cost_estimate: float = 0.0
    total_requests: int = 0
    window_started_at: Optional[float] = None

    @classmethod
    def default(cls, provider: str) -> "QuotaState":
        requests_limit, tokens_limit = PROVIDER_DEFAULTS.get(provider, (60, 1_000_000))
        return cls(
            provider=provider,
            requests_remaining=requests_limit,
            requests_limit=requests_limit,
            tokens_remaining=tokens_limit,
            tokens_limit=tokens_limit,
        )

    def ratios(self) -> tuple[float, float]:
        requests_ratio = (
            self.requests_remaining / self.requests_limit if self.requests_limit else 0.0
        )
        tokens_ratio = self.tokens_remaining / self.tokens_limit if self.tokens_limit else 0.0
        return requests_ratio, tokens_ratio


def calculate_strategy(requests_ratio: float, tokens_ratio: float) -> AdaptiveStrategy:
    min_ratio = min(requests_ratio, tokens_ratio)
    for threshold, strategy in STRATEGY_THRESHOLDS:
        if min_ratio > threshold:
            return strategy
    return AdaptiveStrategy.CRITICAL


def should_allow_request(state: QuotaState, now: float) -> tuple[bool, Optional[str]]:
    if state.circuit_state == CircuitState.OPEN.value:
        opened_at = state.circuit_opened_at or 0.0
        if now - opened_at < RECOVERY_TIME_SECONDS:
            return False, "Circuit breaker open"
        return True, "Testing half-open state"
    if state.requests_remaining < MIN_REQUESTS_REMAINING:
        return False, "Request quota near limit"
    if state.tokens_remaining < MIN_TOKENS_REMAINING:
        return False, "Token quota near limit"
    return True, None


def reset_expired_window(state: QuotaState, now: float) -> bool:
    """Restores the full quota once the window the counters belong to has passed."""
    if state.window_started_at is None or now - state.window_started_at < QUOTA_WINDOW_SECONDS:
        return False
    state.requests_remaining = state.requests_limit
    state.tokens_remaining = state.tokens_limit
    state.window_started_at = None
    return True


def apply_rate_limit_headers(
    state: QuotaState, headers: dict, now: Optional[float] = None
) -> None:
    """Refreshes quota counters from ``x-ratelimit-*`` headers when present.

    The first header seen in a window stamps ``window_started_at`` so the
    counters can be reset by ``reset_expired_window``.
    """
    mapping = {
        "x-ratelimit-limit-requests": "requests_limit",
        "x-ratelimit-remaining-requests": "requests_remaining",
        "x-ratelimit-limit-tokens": "tokens_limit",
        "x-ratelimit-remaining-tokens": "tokens_remaining",
    }
    for header, attr in mapping.items():
        value = headers.get(header)
        if value is None:
            continue
        try:
            setattr(state, attr, int(float(value)))
        except ValueError:
            logger.warning("Ignoring malformed %s header: %r", header, value)
            continue
        if now is not None and state.window_started_at is None:
            state.window_started_at = now


class QuotaStore(Protocol):
    def load(self, provider: str) -> QuotaState:
        ...

    def save(self, state: QuotaState) -> None:
        ...


@dataclass
class InMemoryQuotaStore:
    states: Dict[str, QuotaState] = field(default_factory=dict)

    def load(self, provider: str) -> QuotaState:
        state = self.states.get(provider)
        if state is None:
            return QuotaState.default(provider)
        return QuotaState(**asdict(state))

    def save(self, state: QuotaState) -> None:
        self.states[state.provider] = QuotaState(**asdict(state))


@dataclass
class RedisQuotaStore:
    url: str
    key_prefix: str = "saveplus:quota"

    def __post_init__(self):
        self.client = redis.Redis.from_url(self.url)

    def load(self, provider: str) -> QuotaState:
        raw = self.client.get(f"{self.key_prefix}:{provider}")
        if raw is None:
            return QuotaState.default(provider)
        return QuotaState(**json.loads(raw))

    def save(self, state: QuotaState) -> None:
        self.client.set(f"{self.key_prefix}:{state.provider}", json.dumps(asdict(state)))


class AdaptiveLimiter:
    """Wraps one provider's gateway with quota tracking and a circuit breaker."""

    def __init__(
        self,
        provider: str,
        gateway: LlmGateway,
        store: QuotaStore,
        *,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.time,
    ):
        self.provider = provider
        self.gateway = gateway
        self.store = store
        self._sleep = sleep
        self._clock = clock

    def status(self) -> dict:
        state = self.store.load(self.provider)
        reset_expired_window(state, self._clock())
        strategy = calculate_strategy(*state.ratios())
        return {**asdict(state), "strategy": strategy.value}

    def _record_failure(self, state: QuotaState, latency_ms: int, *, open_circuit: bool) -> None:
        state.consecutive_failures += 1
        state.total_requests += 1
        if latency_ms:
            state.avg_latency_ms = self._smooth(state.avg_latency_ms, latency_ms)
        reopen = state.circuit_state == CircuitState.HALF_OPEN.value
        if open_circuit or reopen or state.consecutive_failures >= FAILURE_THRESHOLD:
            state.circuit_state = CircuitState.OPEN.value
            state.circuit_opened_at = self._clock()
            logger.error(
                "[%s Limiter] Circuit breaker opened after %d failures",
                self.provider,
                state.consecutive_failures,
            )
        self.store.save(state)

    @staticmethod
    def _smooth(avg: float, latency_ms: float) -> float:
        if not avg:
            return float(latency_ms)
        return avg * (1 - LATENCY_SMOOTHING) + latency_ms * LATENCY_SMOOTHING

    def chat(self, messages: list[dict], *, model: str, **kwargs) -> ChatResult:
        state = self.store.load(self.provider)
        now = self._clock()
        if reset_expired_window(state, now):
            logger.info("[%s Limiter] Quota window elapsed - counters reset", self.provider)
            self.store.save(state)
        allowed, reason = should_allow_request(state, now)
        if not allowed:
            logger.warning("[%s Limiter] Request blocked: %s", self.provider, reason)
            raise GatewayUnavailableError(
                f"{self.provider} API temporarily unavailable: {reason}"
            )
        if state.circuit_state == CircuitState.OPEN.value:
            logger.info("[%s Limiter] Circuit transitioning to half-open", self.provider)
            state.circuit_state = CircuitState.HALF_OPEN.value
            self.store.save(state)

        strategy = calculate_strategy(*state.ratios())
        delay_ms = STRATEGY_DELAYS_MS[strategy]
        if delay_ms > 0:
            logger.info(
                "[%s Limiter] Applying %s throttle: %dms", self.provider, strategy.value, delay_ms
            )
            self._sleep(delay_ms / 1000)

        start = time.monotonic()
        try:
            result = self.gateway.chat(messages, model=model, **kwargs)
        except GatewayRateLimitedError as e:
            apply_rate_limit_headers(state, e.headers, self._clock())
            self._record_failure(
                state, int((time.monotonic() - start) * 1000), open_circuit=True
            )
            raise
        except GatewayError as e:
            apply_rate_limit_headers(state, e.headers, self._clock())
            self._record_failure(
                state, int((time.monotonic() - start) * 1000), open_circuit=False
            )
            raise

        apply_rate_limit_headers(state, result.headers, self._clock())
        state.avg_latency_ms = self._smooth(state.avg_latency_ms, result.latency_ms)
        state.consecutive_failures = 0
        state.total_requests += 1
        reasoning_tokens = int(result.usage.get("reasoning_tokens") or 0)
        state.reasoning_tokens_used += reasoning_tokens
        if self.provider == api_config.REASONING_PROVIDER:
            state.total_cost_estimate += api_config.estimate_deepseek_cost(
                int(result.usage.get("prompt_tokens") or 0),
                int(result.usage.get("completion_tokens") or 0),
                reasoning_tokens,
            )
        if state.circuit_state != CircuitState.CLOSED.value:
            logger.info("[%s Limiter] Request succeeded - closing circuit breaker", self.provider)
            state.circuit_state = CircuitState.CLOSED.value
            state.circuit_opened_at = None
        self.store.save(state)
        return result
