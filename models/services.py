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

from dataclasses import dataclass
from typing import Optional

from models import api_config
from models.gateway import InMemoryGateway, LlmGateway
from models.limiter import AdaptiveLimiter, InMemoryQuotaStore
from models.tracing import Tracer


@dataclass
class AiServices:
    """The AI clients a function may use, one limiter per provider."""

    speed: AdaptiveLimiter
    reasoning: AdaptiveLimiter
    general: AdaptiveLimiter
    tracer: Tracer

    def limiters(self) -> list[AdaptiveLimiter]:
        return [self.speed, self.reasoning, self.general]

    @classmethod
    def in_memory(cls, gateway: Optional[LlmGateway] = None) -> "AiServices":
        """All three providers share one gateway and an in-memory quota store; tracing is off."""
        gateway = gateway or InMemoryGateway()
        store = InMemoryQuotaStore()
        return cls(
            speed=AdaptiveLimiter(api_config.SPEED_PROVIDER, gateway, store),
            reasoning=AdaptiveLimiter(api_config.REASONING_PROVIDER, gateway, store),
            general=AdaptiveLimiter(api_config.GENERAL_PROVIDER, gateway, store),
            tracer=Tracer(api_key=None),
        )
