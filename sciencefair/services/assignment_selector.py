"""
sciencefair/services/assignment_selector.py
Final-assignment selection: which judge assignments count for a section.

Default policy is the average of two regular judges. When the two
disagree by ARBITRATION_THRESHOLD points or more, a coordinator's score
settles the dispute; until a coordinator has judged, the section has no
final assignments at all.

All functions here are pure and work on any objects exposing the
JudgeAssignment / Project / User attributes.
"""
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Sequence, Set

from sciencefair.orm.competition import (
    AssignmentStatus, CompetitionLevel, JudgingSection, LEVEL_ORDER, level_index
)
from sciencefair.orm.user import UserRole

ARBITRATION_THRESHOLD = 5

BOTH_SECTIONS = frozenset(s.value for s in JudgingSection)


def enum_value(item) -> Optional[str]:
    """Plain string value of an enum member or string."""
    return getattr(item, "value", item)


def score_of(assignment) -> float:
    """Score of an assignment, treating a missing score as 0."""
    return assignment.score if assignment.score is not None else 0


def is_completed(assignment) -> bool:
    return enum_value(assignment.status) == AssignmentStatus.COMPLETED.value


def scores_disagree(first, second) -> bool:
    return abs(score_of(first) - score_of(second)) >= ARBITRATION_THRESHOLD


def get_overall_highest_level(projects: Iterable) -> CompetitionLevel:
    """
    Highest level at which any non-eliminated project currently sits.

    Sub-County when there are no (active) projects.
    """
    highest = 0
    for project in projects:
        if project.is_eliminated:
            continue
        index = level_index(project.current_level)
        if index > highest:
            highest = index
    return LEVEL_ORDER[highest]


def build_coordinator_ids(users: Iterable) -> Set[int]:
    """Ids of users whose stored roles include Coordinator."""
    return {
        u.id for u in users
        if UserRole.COORDINATOR.value in [enum_value(r) for r in (u.roles or [])]
    }


def sections_by_judge_and_project(assignment_batch: Iterable) -> Dict[int, Dict[int, Set[str]]]:
    """judge id -> project id -> set of sections held in the batch."""
    held: Dict[int, Dict[int, Set[str]]] = defaultdict(lambda: defaultdict(set))
    for a in assignment_batch:
        held[a.judge_id][a.project_id].add(enum_value(a.assigned_section))
    return held


def is_acting_coordinator(user_id: int, assignment_batch: Iterable) -> bool:
    """
    True when the user holds both sections of at least one project in the
    batch, i.e. they acted as coordinator for that round.
    """
    held = sections_by_judge_and_project(assignment_batch).get(user_id, {})
    return any(sections >= BOTH_SECTIONS for sections in held.values())


def acting_coordinator_ids(assignment_batch: Iterable) -> Set[int]:
    """Ids of every judge acting as coordinator within the batch."""
    held = sections_by_judge_and_project(assignment_batch)
    return {
        judge_id for judge_id, projects in held.items()
        if any(sections >= BOTH_SECTIONS for sections in projects.values())
    }


def use_archived_assignments(
    project_id: int,
    all_assignments: Sequence,
    level,
    overall_highest_level
) -> bool:
    """
    Decide whether a project's scores at a level come from archived records.

    Levels below the competition's highest active level are always read
    from the archive. At the highest level the archive is used once every
    assignment of the project at that level has been archived (results
    published but nobody promoted past it yet).
    """
    if level_index(level) < level_index(overall_highest_level):
        return True
    if level_index(level) > level_index(overall_highest_level):
        return False
    for_level = [
        a for a in all_assignments
        if a.project_id == project_id and enum_value(a.competition_level) == enum_value(level)
    ]
    return len(for_level) > 0 and all(a.is_archived for a in for_level)


def select_final_assignments(
    project_id: int,
    section,
    all_assignments: Sequence,
    all_projects: Sequence,
    level,
    overall_highest_level,
    coordinator_ids: Set[int]
) -> List:
    """
    Return the assignments whose scores are averaged for one section.

    Args:
        project_id: Project being scored
        section: "Part A" or "Part B & C"
        all_assignments: Assignments to choose from (the project's own are enough)
        all_projects: Every project of the edition
        level: Competition level being scored
        overall_highest_level: Highest level holding an active project
        coordinator_ids: Ids of users acting as coordinators

    Returns:
        Ordered list of assignments; empty when the section cannot be
        scored yet (including arbitration pending).
    """
    archived = use_archived_assignments(project_id, all_assignments, level, overall_highest_level)
    section = enum_value(section)

    candidates = [
        a for a in all_assignments
        if a.project_id == project_id
        and bool(a.is_archived) == archived
        and enum_value(a.competition_level) == enum_value(level)
        and enum_value(a.assigned_section) == section
        and is_completed(a)
    ]

    regular = sorted(
        (a for a in candidates if a.judge_id not in coordinator_ids),
        key=score_of
    )
    coordinator = next((a for a in candidates if a.judge_id in coordinator_ids), None)

    if len(regular) >= 2:
        judge1, judge2 = regular[0], regular[1]
        if not scores_disagree(judge1, judge2):
            return [judge1, judge2]
        if coordinator is None:
            # Arbitration pending
            return []

        coord_score = score_of(coordinator)
        score1, score2 = score_of(judge1), score_of(judge2)
        if coord_score == score1:
            return [coordinator, judge1]
        if coord_score == score2:
            return [coordinator, judge2]

        diff1 = abs(coord_score - score1)
        diff2 = abs(coord_score - score2)
        if diff1 == diff2:
            return [judge1, judge2, coordinator]
        closer = judge1 if diff1 < diff2 else judge2
        return [coordinator, closer]

    if len(regular) == 1 and coordinator is not None:
        return [regular[0], coordinator]
    if not regular and coordinator is not None:
        return [coordinator]
    return []


def section_needs_arbitration(
    project_id: int,
    section,
    all_assignments: Sequence,
    level,
    coordinator_ids: Set[int]
) -> bool:
    """
    True when two live regular judges disagree on a section and no
    coordinator has completed that section live at the same level.
    """
    section = enum_value(section)
    live = [
        a for a in all_assignments
        if a.project_id == project_id
        and not a.is_archived
        and enum_value(a.competition_level) == enum_value(level)
        and enum_value(a.assigned_section) == section
        and is_completed(a)
    ]
    regular = sorted((a for a in live if a.judge_id not in coordinator_ids), key=score_of)
    if len(regular) < 2 or not scores_disagree(regular[0], regular[1]):
        return False
    return not any(a.judge_id in coordinator_ids for a in live)
