# =============================================================================
# tests/test_settlement.py - Multipliers and pick settlement
# =============================================================================

import pytest

from app.modules.picks.payouts import calc_multiplier, mode_label, wallet_rewards
from app.modules.picks.settlement import is_selection_correct, settle_pick

DRIVER_RESULTS = [
    {"driver": "Max Verstappen", "race_position": 1, "qualy_position": 2},
    {"driver": "Lando Norris", "race_position": 4, "qualy_position": 1},
    {"driver": "Charles Leclerc", "race_position": 9, "qualy_position": 3},
    {"driver": "Lewis Hamilton", "race_position": None, "qualy_position": 7},
]


def selection(driver, line, direction, session_type="race"):
    return {"driver": driver, "line": line, "betterOrWorse": direction, "session_type": session_type}


class TestMultipliers:
    @pytest.mark.parametrize("count,mode,expected", [
        (2, "full", 3), (5, "full", 20), (8, "full", 100),
        (3, "safety", 2), (8, "safety", 50), (2, "safety", 0), (9, "full", 0),
    ])
    def test_calc_multiplier(self, count, mode, expected):
        assert calc_multiplier(count, mode) == expected

    def test_display_label_counts_as_safety(self):
        assert calc_multiplier(4, "Safety Car") == 5
        assert mode_label("safety") == "Safety Car"
        assert mode_label("full") == "Full Throttle"

    def test_wallet_rewards(self):
        assert wallet_rewards(25000) == {"mmc_amount": 25, "fuel_amount": 25000, "cop_amount": 25000}


class TestSelection:
    def test_better_wins_when_ahead_of_line(self):
        assert is_selection_correct(selection("Max Verstappen", 3.5, "mejor"), DRIVER_RESULTS)

    def test_worse_wins_when_behind_line(self):
        assert is_selection_correct(selection("Charles Leclerc", 5.5, "peor"), DRIVER_RESULTS)

    def test_equal_to_line_loses(self):
        assert not is_selection_correct(selection("Lando Norris", 4, "mejor"), DRIVER_RESULTS)
        assert not is_selection_correct(selection("Lando Norris", 4, "peor"), DRIVER_RESULTS)

    def test_qualy_uses_qualy_position(self):
        assert is_selection_correct(selection("Lando Norris", 1.5, "mejor", "qualy"), DRIVER_RESULTS)

    def test_missing_driver_or_position_loses(self):
        assert not is_selection_correct(selection("Nobody", 10, "mejor"), DRIVER_RESULTS)
        assert not is_selection_correct(selection("Lewis Hamilton", 10, "mejor"), DRIVER_RESULTS)


class TestSettlePick:
    def test_full_throttle_all_correct_pays_multiplier(self):
        pick = {
            "mode": "full", "multiplier": 3, "wager_amount": 10000,
            "picks": [selection("Max Verstappen", 2.5, "mejor"), selection("Charles Leclerc", 5.5, "peor")],
        }
        outcome = settle_pick(pick, DRIVER_RESULTS)
        assert outcome == {"correct_count": 2, "total_picks": 2, "result": "won", "payout": 30000}

    def test_full_throttle_one_miss_loses(self):
        pick = {
            "mode": "full", "multiplier": 3, "wager_amount": 10000,
            "picks": [selection("Max Verstappen", 2.5, "mejor"), selection("Charles Leclerc", 5.5, "mejor")],
        }
        outcome = settle_pick(pick, DRIVER_RESULTS)
        assert outcome["result"] == "lost"
        assert outcome["payout"] == 0

    def test_safety_partial_payout(self):
        pick = {
            "mode": "safety", "multiplier": 2, "wager_amount": 10000,
            "picks": [
                selection("Max Verstappen", 2.5, "mejor"),
                selection("Charles Leclerc", 5.5, "peor"),
                selection("Lando Norris", 2.5, "mejor"),
            ],
        }
        outcome = settle_pick(pick, DRIVER_RESULTS)
        assert outcome["correct_count"] == 2
        assert outcome["result"] == "partial"
        assert outcome["payout"] == 10000

    def test_safety_all_correct_wins(self):
        pick = {
            "mode": "safety", "wager_amount": 10000,
            "picks": [
                selection("Max Verstappen", 2.5, "mejor"),
                selection("Charles Leclerc", 5.5, "peor"),
                selection("Lando Norris", 5.5, "mejor"),
            ],
        }
        outcome = settle_pick(pick, DRIVER_RESULTS)
        assert outcome["result"] == "won"
        assert outcome["payout"] == 50000

    def test_empty_pick_loses(self):
        assert settle_pick({"mode": "full", "picks": []}, DRIVER_RESULTS)["result"] == "lost"
