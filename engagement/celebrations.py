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
Milestone and achievement celebrations.

A celebration is a descriptor the client turns into confetti, a sound and a
haptic pulse. Progress milestones fire once per crossed threshold; streak
achievements fire when a streak reaches one of the tracked lengths.
"""

from dataclasses import asdict, dataclass, field
from typing import Optional

from shared.types import CelebrationType, Rarity
from shared.utils import clamp

PROGRESS_THRESHOLDS = (25, 50, 75, 100)
STREAK_THRESHOLDS = (7, 30, 100, 365)

THRESHOLD_RARITY = {
    25: Rarity.COMMON,
    50: Rarity.RARE,
    75: Rarity.EPIC,
    100: Rarity.LEGENDARY,
}
STREAK_RARITY = {
    7: Rarity.COMMON,
    30: Rarity.RARE,
    100: Rarity.EPIC,
    365: Rarity.LEGENDARY,
}
RARITY_POINTS = {
    Rarity.COMMON: 10,
    Rarity.RARE: 25,
    Rarity.EPIC: 50,
    Rarity.LEGENDARY: 100,
}
RARITY_CONFETTI = {
    Rarity.COMMON: 30,
    Rarity.RARE: 30,
    Rarity.EPIC: 45,
    Rarity.LEGENDARY: 60,
}
RARITY_SOUND = {
    Rarity.COMMON: "chime",
    Rarity.RARE: "sparkle",
    Rarity.EPIC: "fanfare",
    Rarity.LEGENDARY: "triumph",
}
MILESTONE_DURATION_MS = 4000
DEFAULT_DURATION_MS = 3000


@dataclass
class Effects:
    confetti: bool
    confetti_count: int
    duration_ms: int
    sound: bool
    sound_name: Optional[str]
    haptic: bool
    haptic_pattern: list[int] = field(default_factory=list)


@dataclass
class Celebration:
    type: CelebrationType
    title: str
    message: str
    rarity: Rarity
    points: int
    threshold: int
    effects: Effects

    def as_dict(self) -> dict:
        data = asdict(self)
        data["type"] = self.type.value
        data["rarity"] = self.rarity.value
        return data


def build_effects(
    celebration_type: CelebrationType, rarity: Rarity, reduced_motion: bool = False
) -> Effects:
    """Effects for a celebration. Reduced motion keeps only the haptic pulse."""
    duration_ms = (
        MILESTONE_DURATION_MS
        if celebration_type == CelebrationType.MILESTONE
        else DEFAULT_DURATION_MS
    )
    # Longer pulses for rarer celebrations.
    haptic_pattern = [50] * (list(Rarity).index(rarity) + 1)
    if reduced_motion:
        return Effects(
            confetti=False,
            confetti_count=0,
            duration_ms=duration_ms,
            sound=False,
            sound_name=None,
            haptic=True,
            haptic_pattern=haptic_pattern,
        )
    return Effects(
        confetti=True,
        confetti_count=RARITY_CONFETTI[rarity],
        duration_ms=duration_ms,
        sound=True,
        sound_name=RARITY_SOUND[rarity],
        haptic=True,
        haptic_pattern=haptic_pattern,
    )


def crossed_thresholds(previous: float, current: float, thresholds=PROGRESS_THRESHOLDS) -> list[int]:
    previous = clamp(previous)
    current = clamp(current)
    if current <= previous:
        return []
    return [t for t in thresholds if previous < t <= current]


def progress_celebrations(
    previous_progress: float,
    current_progress: float,
    *,
    item_name: str,
    reduced_motion: bool = False,
) -> list[Celebration]:
    """
    One celebration per crossed 25/50/75/100 threshold.

    Progress values are percentages and are clamped to [0, 100] first, so an
    over-funded goal still celebrates completion exactly once.
    """
    celebrations = []
    for threshold in crossed_thresholds(previous_progress, current_progress):
        rarity = THRESHOLD_RARITY[threshold]
        if threshold == 100:
            celebration_type = CelebrationType.GOAL_COMPLETE
            title = f"{item_name} complete!"
            message = f"You reached 100% of {item_name}. Time to celebrate!"
        else:
            celebration_type = CelebrationType.MILESTONE
            title = f"{threshold}% milestone"
            message = f"You're {threshold}% of the way to {item_name}."
        celebrations.append(
            Celebration(
                type=celebration_type,
                title=title,
                message=message,
                rarity=rarity,
                points=RARITY_POINTS[rarity],
                threshold=threshold,
                effects=build_effects(celebration_type, rarity, reduced_motion),
            )
        )
    return celebrations


def streak_achievements(
    previous_streak: int, current_streak: int, *, reduced_motion: bool = False
) -> list[Celebration]:
    achievements = []
    for days in STREAK_THRESHOLDS:
        if not previous_streak < days <= current_streak:
            continue
        rarity = STREAK_RARITY[days]
        achievements.append(
            Celebration(
                type=CelebrationType.ACHIEVEMENT,
                title=f"{days}-day streak",
                message=f"You've saved {days} days in a row.",
                rarity=rarity,
                points=RARITY_POINTS[rarity],
                threshold=days,
                effects=build_effects(CelebrationType.ACHIEVEMENT, rarity, reduced_motion),
            )
        )
    return achievements
