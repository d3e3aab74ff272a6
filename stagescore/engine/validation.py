from typing import Any, Optional

from stagescore.utils.misc_utils import ABSENT_SCORE, parse_score

from .errors import ScoreValidationError

MIN_SCORE = 0.0
MAX_SCORE = 100.0


def validate_score(value: Any) -> Optional[float]:
    """Checks an operator-entered score before it reaches the overlay.

    Empty input is allowed and means "unscored". Anything else must be a
    number in [0, 100] or exactly -1. Values are never clamped.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    number = parse_score(value)
    if number is None:
        raise ScoreValidationError(value, "Score must be a number.")
    if number == ABSENT_SCORE:
        return number
    if number < MIN_SCORE or number > MAX_SCORE:
        raise ScoreValidationError(value)
    return number
