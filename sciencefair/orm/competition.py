"""
sciencefair/orm/competition.py
Competition ladder, judging sections and assignment statuses.

The ladder order is fixed: Sub-County -> County -> Regional -> National.
"""
from enum import Enum
from typing import Optional


class CompetitionLevel(str, Enum):
    """Competition tiers, lowest first."""
    SUB_COUNTY = "Sub-County"
    COUNTY = "County"
    REGIONAL = "Regional"
    NATIONAL = "National"


class JudgingSection(str, Enum):
    """Separately judged components of a project."""
    PART_A = "Part A"
    PART_BC = "Part B & C"


class AssignmentStatus(str, Enum):
    """Lifecycle of a single judge assignment."""
    NOT_STARTED = "Not Started"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"
    REVIEW_PENDING = "Review Pending"


LEVEL_ORDER = [
    CompetitionLevel.SUB_COUNTY,
    CompetitionLevel.COUNTY,
    CompetitionLevel.REGIONAL,
    CompetitionLevel.NATIONAL,
]


def level_index(level) -> int:
    """Position of a level on the ladder (0 = Sub-County)."""
    return LEVEL_ORDER.index(CompetitionLevel(level))


def next_level(level) -> Optional[CompetitionLevel]:
    """Level a project is promoted to, or None at National."""
    index = level_index(level)
    if index >= len(LEVEL_ORDER) - 1:
        return None
    return LEVEL_ORDER[index + 1]
