"""Rule configuration, settings and computer difficulty table for Kalaha."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Dict, NamedTuple

from kalaha_engine import InvalidArgument

MIN_HOUSES = 3
MAX_HOUSES = 7


class SowingDirection(IntEnum):
    COUNTERCLOCKWISE = 0
    CLOCKWISE = 1
    # Odd seed counts are sown clockwise, even counts counterclockwise.
    CROSS_KALAH = 2


class CaptureType(IntEnum):
    # Own seed and opposite house are captured when the opposite house has seeds.
    STANDARD = 0
    # Only the own seed is captured.
    EMPTY = 1
    NONE = 2
    # Like STANDARD, but the own seed is captured even when the opposite house is empty.
    ALWAYS = 3


class ComputerStrength(IntEnum):
    EASY = 0
    MEDIUM = 1
    HARD = 2


class CapturePermission(NamedTuple):
    may_capture: bool
    may_capture_opponent_house: bool


@dataclass
class Rules:
    direction_of_sowing: SowingDirection = SowingDirection.COUNTERCLOCKWISE
    capture_type: CaptureType = CaptureType.STANDARD
    collect_remaining_seeds_at_end: bool = True
    play_again_when_last_seed_in_own_store: bool = True
    # Stored for callers; the engine does not apply the pie rule.
    pie_rule_enabled: bool = False

    def set_defaults(self) -> None:
        defaults = Rules()
        self.direction_of_sowing = defaults.direction_of_sowing
        self.capture_type = defaults.capture_type
        self.collect_remaining_seeds_at_end = defaults.collect_remaining_seeds_at_end
        self.play_again_when_last_seed_in_own_store = defaults.play_again_when_last_seed_in_own_store
        self.pie_rule_enabled = defaults.pie_rule_enabled

    def sowing_is_clockwise(self, seed_count: int) -> bool:
        if self.direction_of_sowing == SowingDirection.CLOCKWISE:
            return True
        return self.direction_of_sowing == SowingDirection.CROSS_KALAH and seed_count % 2 == 1

    def decide_capture(self, opponent_house_count: int) -> CapturePermission:
        has_seeds = opponent_house_count > 0
        if self.capture_type == CaptureType.STANDARD:
            return CapturePermission(has_seeds, has_seeds)
        if self.capture_type == CaptureType.EMPTY:
            return CapturePermission(True, False)
        if self.capture_type == CaptureType.ALWAYS:
            return CapturePermission(True, has_seeds)
        return CapturePermission(False, False)


# Rows: computer strength. Columns: houses per player (3..7).
RECURSION_DEPTH: Dict[ComputerStrength, Dict[int, int]] = {
    ComputerStrength.EASY: {3: 3, 4: 3, 5: 3, 6: 3, 7: 3},
    ComputerStrength.MEDIUM: {3: 6, 4: 6, 5: 6, 6: 6, 7: 5},
    ComputerStrength.HARD: {3: 15, 4: 11, 5: 10, 6: 9, 7: 8},
}


def recursion_depth(strength: ComputerStrength, houses_per_player: int) -> int:
    if houses_per_player < MIN_HOUSES or houses_per_player > MAX_HOUSES:
        raise InvalidArgument(f"recursion_depth: unexpected number of houses: {houses_per_player}")
    return RECURSION_DEPTH[ComputerStrength(strength)][houses_per_player]


@dataclass
class Settings:
    houses_per_player: int = 6
    seeds_per_house: int = 4

    def validate(self) -> None:
        if self.houses_per_player < MIN_HOUSES or self.houses_per_player > MAX_HOUSES:
            raise InvalidArgument(
                f"houses_per_player must be {MIN_HOUSES}..{MAX_HOUSES}, got {self.houses_per_player}"
            )
        if self.seeds_per_house <= 0:
            raise InvalidArgument(f"seeds_per_house must be positive, got {self.seeds_per_house}")

    def set_defaults(self) -> None:
        self.houses_per_player = 6
        self.seeds_per_house = 4
