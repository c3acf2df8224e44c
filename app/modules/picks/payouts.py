"""
Multiplier tables for picks.

Full Throttle pays only when every pick is correct. Safety Car pays a reduced
multiplier at registration time and, at settlement, a table keyed by how many
picks were correct.
"""

from typing import Dict

MIN_PICKS = 2
MAX_PICKS = 8
MIN_SAFETY_PICKS = 3

FULL_THROTTLE_MULTIPLIERS: Dict[int, int] = {2: 3, 3: 6, 4: 10, 5: 20, 6: 35, 7: 60, 8: 100}
SAFETY_CAR_MULTIPLIERS: Dict[int, int] = {3: 2, 4: 5, 5: 10, 6: 20, 7: 30, 8: 50}

SAFETY_CAR_SETTLEMENT: Dict[int, Dict[int, int]] = {
    3: {3: 5, 2: 1},
    4: {4: 8, 3: 2},
    5: {5: 15, 4: 5, 3: 1},
    6: {6: 30, 5: 10, 4: 2},
    7: {7: 60, 6: 20, 5: 5},
    8: {8: 100, 7: 40, 6: 10},
}


def is_safety_mode(mode: str) -> bool:
    return mode in ("safety", "Safety Car")


def mode_label(mode: str) -> str:
    return "Safety Car" if is_safety_mode(mode) else "Full Throttle"


def calc_multiplier(pick_count: int, mode: str) -> int:
    if is_safety_mode(mode):
        return SAFETY_CAR_MULTIPLIERS.get(pick_count, 0)
    return FULL_THROTTLE_MULTIPLIERS.get(pick_count, 0)


def safety_settlement_table(pick_count: int) -> Dict[int, int]:
    return SAFETY_CAR_SETTLEMENT.get(pick_count, {})


def wallet_rewards(wager_amount: float) -> Dict[str, int]:
    """Coins credited for a paid wager: 1 MMC per 1,000 COP, 1 Fuel per peso."""
    return {
        "mmc_amount": round(wager_amount / 1000),
        "fuel_amount": int(wager_amount),
        "cop_amount": round(wager_amount),
    }
