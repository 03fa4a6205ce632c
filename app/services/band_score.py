# app/services/band_score.py
from typing import List, Tuple

# (minimum percentage, band), checked top-down
BAND_STAIRCASE: List[Tuple[float, float]] = [
    (95, 9.0),
    (90, 8.5),
    (85, 8.0),
    (80, 7.5),
    (70, 7.0),
    (60, 6.5),
    (50, 6.0),
    (40, 5.5),
    (30, 5.0),
    (20, 4.5),
    (10, 4.0),
]
FLOOR_BAND: float = 3.5


def calculate_band_score(correct: int, total: int) -> float:
    """Map a correct-answer count onto the 0-9 IELTS band scale."""
    if total <= 0:
        raise ValueError("Total questions must be greater than 0")

    percentage = correct * 100 / total
    for threshold, band in BAND_STAIRCASE:
        if percentage >= threshold:
            return band
    return FLOOR_BAND


def is_passed(score: float, pass_score: float) -> bool:
    return score >= pass_score
