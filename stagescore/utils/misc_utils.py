# stagescore/utils/misc_utils.py
import math
from typing import Any, Iterator, List, Optional, Sequence, TypeVar

T = TypeVar("T")

ABSENT_SCORE = -1.0


def parse_score(value: Any) -> Optional[float]:
    """Parses a score typed by an operator or read from a store.

    Returns None for empty or non-numeric input instead of raising.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).strip()
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def format_score(value: Optional[float]) -> str:
    """Renders a score without a trailing '.0' for whole numbers."""
    if value is None:
        return ""
    if float(value).is_integer():
        return str(int(value))
    return str(value)


def score_text(value: Optional[float]) -> str:
    """Display text of a stored score: empty when unscored, kept when absent."""
    if value is None:
        return ""
    if value > 0 or value == ABSENT_SCORE:
        return format_score(value)
    return ""


def effective_score(value: Any) -> float:
    """Numeric score used for ranking; anything unparsable counts as unscored."""
    number = parse_score(value)
    return 0.0 if number is None else number


def is_absent(value: Any) -> bool:
    return parse_score(value) == ABSENT_SCORE


def chunked(items: Sequence[T], size: int) -> Iterator[List[T]]:
    """Yields consecutive slices of at most ``size`` items."""
    if size < 1:
        raise ValueError("Chunk size must be at least 1.")
    for start in range(0, len(items), size):
        yield list(items[start : start + size])
