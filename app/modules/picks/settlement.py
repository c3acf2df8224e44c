from typing import Any, Dict, Iterable, List, Optional
from app.modules.picks.payouts import is_safety_mode, safety_settlement_table


def find_driver_result(driver: str, driver_results: Iterable[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    for row in driver_results:
        if row.get("driver") == driver:
            return row
    return None


def is_selection_correct(selection: Dict[str, Any], driver_results: List[Dict[str, Any]]) -> bool:
    """'mejor' wins when the driver finishes ahead of the line, 'peor' when behind. Equal to the line loses."""
    result = find_driver_result(selection.get("driver"), driver_results)
    if not result:
        return False
    if selection.get("session_type") == "qualy":
        position = result.get("qualy_position")
    else:
        position = result.get("race_position")
    if not position:
        return False
    line = float(selection.get("line", 0))
    if selection.get("betterOrWorse") == "mejor":
        return position < line
    if selection.get("betterOrWorse") == "peor":
        return position > line
    return False


def settle_pick(pick: Dict[str, Any], driver_results: List[Dict[str, Any]]) -> Dict[str, Any]:
    selections = pick.get("picks") or []
    correct = sum(1 for s in selections if is_selection_correct(s, driver_results))
    total = len(selections)
    wager = float(pick.get("wager_amount") or 0)
    result = "lost"
    payout = 0.0

    if is_safety_mode(pick.get("mode", "")):
        multiplier = safety_settlement_table(total).get(correct, 0)
        payout = wager * multiplier
        if multiplier > 0:
            result = "won" if correct == total else "partial"
    elif total > 0 and correct == total:
        result = "won"
        payout = wager * float(pick.get("multiplier") or 0)

    return {"correct_count": correct, "total_picks": total, "result": result, "payout": payout}
