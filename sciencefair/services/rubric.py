"""
sciencefair/services/rubric.py
Score sheets used to split Part B & C breakdowns into Part B and Part C.

Judges score Part B (oral presentation) and Part C (scientific thought)
on a single combined sheet; each criterion remembers which original
section it belongs to. Robotics uses its own sheet where Part C is the
mission run (two compulsory missions plus two student-generated ones).
"""
from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Optional, Tuple

ROBOTICS_CATEGORY = "Robotics"


@dataclass(frozen=True)
class Criterion:
    id: int
    text: str
    max_score: float
    original_section: str  # "A", "B" or "C"


STANDARD_SCORE_SHEET: List[Criterion] = [
    # Part A: written communication
    Criterion(1, "Title and abstract", 5, "A"),
    Criterion(2, "Background and problem statement", 8, "A"),
    Criterion(3, "Methodology", 8, "A"),
    Criterion(4, "Results and analysis", 6, "A"),
    Criterion(5, "References and acknowledgements", 3, "A"),
    # Part B: oral communication
    Criterion(6, "Clarity of presentation", 4, "B"),
    Criterion(7, "Knowledge of the project", 5, "B"),
    Criterion(8, "Response to questions", 4, "B"),
    Criterion(9, "Teamwork and confidence", 2, "B"),
    # Part C: scientific thought
    Criterion(10, "Creativity and originality", 10, "C"),
    Criterion(11, "Scientific method and accuracy", 10, "C"),
    Criterion(12, "Relevance and application", 8, "C"),
    Criterion(13, "Thoroughness and conclusions", 7, "C"),
]

ROBOTICS_SCORE_SHEET: List[Criterion] = [
    # Part B: design and programming
    Criterion(101, "Mechanical design", 6, "B"),
    Criterion(102, "Programming and automation", 6, "B"),
    Criterion(103, "Presentation and teamwork", 3, "B"),
    # Part C: missions
    Criterion(201, "Compulsory mission 1", 10, "C"),
    Criterion(202, "Compulsory mission 2", 10, "C"),
    Criterion(203, "Student-generated mission 1", 10, "C"),
    Criterion(204, "Student-generated mission 2", 5, "C"),
]


def _ids(sheet: List[Criterion], section: str) -> FrozenSet[int]:
    return frozenset(c.id for c in sheet if c.original_section == section)


STANDARD_B_IDS = _ids(STANDARD_SCORE_SHEET, "B")
STANDARD_C_IDS = _ids(STANDARD_SCORE_SHEET, "C")
ROBOTICS_B_IDS = _ids(ROBOTICS_SCORE_SHEET, "B")
ROBOTICS_C_IDS = _ids(ROBOTICS_SCORE_SHEET, "C")


def criteria_partition(category: Optional[str]) -> Tuple[FrozenSet[int], FrozenSet[int]]:
    """Return (Part B ids, Part C ids) for a project category."""
    if category == ROBOTICS_CATEGORY:
        return ROBOTICS_B_IDS, ROBOTICS_C_IDS
    return STANDARD_B_IDS, STANDARD_C_IDS


def split_breakdown(
    breakdown: Optional[Dict],
    category: Optional[str]
) -> Tuple[float, float]:
    """
    Sum a Part B & C score breakdown into (Part B, Part C) totals.

    Keys may arrive as strings after a JSON round trip. Criteria that belong
    to neither part are ignored.
    """
    b_ids, c_ids = criteria_partition(category)
    total_b = 0.0
    total_c = 0.0
    for criterion_id, points in (breakdown or {}).items():
        try:
            cid = int(criterion_id)
        except (TypeError, ValueError):
            continue
        if cid in b_ids:
            total_b += points or 0
        elif cid in c_ids:
            total_c += points or 0
    return total_b, total_c
