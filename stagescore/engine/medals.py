"""Medal tiers from scores, with manual overrides and the absence sentinel."""

from typing import Any, Optional

from stagescore.models.enums import Medal
from stagescore.utils.misc_utils import ABSENT_SCORE, parse_score

ABSENT_LABEL = "did not participate"

AUTO_MARKERS = {"", "- auto -", "auto"}

# Lower bounds, checked top-down
MEDAL_THRESHOLDS = (
    (80.0, Medal.GOLD),
    (70.0, Medal.SILVER),
    (60.0, Medal.BRONZE),
)


def is_auto(manual_medal: Optional[str]) -> bool:
    return (manual_medal or "").strip().lower() in AUTO_MARKERS


def tier_for(score: float) -> Medal:
    for threshold, medal in MEDAL_THRESHOLDS:
        if score >= threshold:
            return medal
    return Medal.PARTICIPANT


def classify(score: Any, manual_medal: Optional[str] = "") -> str:
    """Returns the medal label to display for a score.

    The absent sentinel wins over everything, then a manual medal, then the
    fixed thresholds. An empty, zero or non-numeric score without a manual
    medal yields "" (not yet scored).
    """
    number = parse_score(score)
    if number == ABSENT_SCORE:
        return ABSENT_LABEL
    if not is_auto(manual_medal):
        return manual_medal  # type: ignore[return-value]
    if number is None or number <= 0:
        return ""
    return tier_for(number).value


def display_rank(score: Any, rank: Optional[str]) -> str:
    """Rank text for display; absent teams show the absence label instead."""
    if parse_score(score) == ABSENT_SCORE:
        return ABSENT_LABEL
    return rank or ""
