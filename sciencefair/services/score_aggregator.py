"""
sciencefair/services/score_aggregator.py
Per-project score aggregation over an in-memory competition snapshot.

Scores are recomputed from raw assignments on every call. Archival state
changes which assignments the selector returns, so nothing is cached
across a publish cycle.
"""
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from sciencefair.orm.competition import AssignmentStatus, JudgingSection, CompetitionLevel
from sciencefair.services.assignment_selector import (
    enum_value,
    build_coordinator_ids,
    get_overall_highest_level,
    is_completed,
    score_of,
    section_needs_arbitration,
    select_final_assignments,
)
from sciencefair.services.rubric import split_breakdown

# Completed assignments needed per section before a project counts as judged
JUDGES_PER_SECTION = 2


@dataclass
class ProjectScores:
    score_a: Optional[float]
    score_bc: Optional[float]
    total_score: float
    is_fully_judged: bool
    needs_arbitration: bool


@dataclass
class ScoreBreakdown:
    score_a: Optional[float]
    score_b: Optional[float]
    score_c: Optional[float]
    total_score: float
    is_fully_judged: bool


@dataclass
class JudgingProgress:
    is_section_a_complete: bool
    is_section_b_complete: bool
    percentage: float
    status_text: str


@dataclass
class CategoryStats:
    min: float
    max: float
    average: float
    count: int


def _mean(assignments: Sequence) -> Optional[float]:
    if not assignments:
        return None
    return sum(score_of(a) for a in assignments) / len(assignments)


@dataclass
class ScoringContext:
    """
    Snapshot of one edition's assignments, projects and users.

    coordinator_ids, overall_highest_level and the per-project assignment
    index are derived once at construction; build a new context after any
    write.
    """
    assignments: List[Any]
    projects: List[Any]
    users: List[Any] = field(default_factory=list)
    coordinator_ids: set = field(init=False)
    overall_highest_level: CompetitionLevel = field(init=False)

    def __post_init__(self):
        self.coordinator_ids = build_coordinator_ids(self.users)
        self.overall_highest_level = get_overall_highest_level(self.projects)
        self._projects_by_id = {p.id: p for p in self.projects}
        self._users_by_id = {u.id: u for u in self.users}
        self._assignments_by_project = defaultdict(list)
        for a in self.assignments:
            self._assignments_by_project[a.project_id].append(a)

    def get_project(self, project_id: int):
        return self._projects_by_id.get(project_id)

    def assignments_for(self, project_id: int) -> List:
        """Assignments of one project, in stored order."""
        return self._assignments_by_project.get(project_id, [])

    def final_assignments(self, project_id: int, section, level) -> List:
        return select_final_assignments(
            project_id,
            section,
            self.assignments_for(project_id),
            self.projects,
            level,
            self.overall_highest_level,
            self.coordinator_ids,
        )

    def compute_scores(self, project_id: int, level) -> ProjectScores:
        """Section means, total and arbitration flag for one project."""
        score_a = _mean(self.final_assignments(project_id, JudgingSection.PART_A, level))
        score_bc = _mean(self.final_assignments(project_id, JudgingSection.PART_BC, level))

        needs_arbitration = any(
            section_needs_arbitration(project_id, section, self.assignments_for(project_id), level, self.coordinator_ids)
            for section in JudgingSection
        )

        return ProjectScores(
            score_a=score_a,
            score_bc=score_bc,
            total_score=(score_a or 0) + (score_bc or 0),
            is_fully_judged=score_a is not None and score_bc is not None,
            needs_arbitration=needs_arbitration,
        )

    def compute_scores_with_breakdown(self, project_id: int, level) -> ScoreBreakdown:
        """
        Like compute_scores, with Part B & C split into Part B and Part C.

        The split uses the criterion partition of the project's category
        (Robotics has its own sheet). B and C are averaged over the final
        Part B & C assignments.
        """
        project = self.get_project(project_id)
        if project is None:
            return ScoreBreakdown(None, None, None, 0, False)

        scores = self.compute_scores(project_id, level)
        if not scores.is_fully_judged:
            return ScoreBreakdown(scores.score_a, None, None, 0, False)

        final_bc = self.final_assignments(project_id, JudgingSection.PART_BC, level)
        if not final_bc:
            return ScoreBreakdown(scores.score_a, None, None, scores.total_score, False)

        total_b = 0.0
        total_c = 0.0
        for assignment in final_bc:
            part_b, part_c = split_breakdown(assignment.score_breakdown, project.category)
            total_b += part_b
            total_c += part_c

        return ScoreBreakdown(
            score_a=scores.score_a,
            score_b=total_b / len(final_bc),
            score_c=total_c / len(final_bc),
            total_score=scores.total_score,
            is_fully_judged=True,
        )

    def get_judging_progress(self, project_id: int, level) -> JudgingProgress:
        """Progress summary shown to patrons and admins for one project."""
        for_level = [
            a for a in self.assignments_for(project_id)
            if enum_value(a.competition_level) == enum_value(level)
        ]
        if for_level and all(a.is_archived for a in for_level):
            return JudgingProgress(True, True, 100, "Completed")

        scores = self.compute_scores(project_id, level)
        if scores.needs_arbitration:
            return JudgingProgress(False, False, 50, "Review Pending")
        if scores.is_fully_judged:
            return JudgingProgress(True, True, 100, "Completed")

        live = [a for a in for_level if not a.is_archived]
        completed = [a for a in live if is_completed(a)]
        completed_a = len([a for a in completed if enum_value(a.assigned_section) == JudgingSection.PART_A.value])
        completed_bc = len([a for a in completed if enum_value(a.assigned_section) == JudgingSection.PART_BC.value])

        percentage = (completed_a + completed_bc) / (JUDGES_PER_SECTION * 2) * 100
        started = any(enum_value(a.status) != AssignmentStatus.NOT_STARTED.value for a in live)

        return JudgingProgress(
            is_section_a_complete=completed_a >= JUDGES_PER_SECTION,
            is_section_b_complete=completed_bc >= JUDGES_PER_SECTION,
            percentage=min(100, percentage),
            status_text="In Progress" if started else "Not Started",
        )

    def get_category_stats(self, category: str, level) -> Optional[CategoryStats]:
        """Min/max/average of fully judged totals in a category at a level."""
        in_category = [
            p for p in self.projects
            if p.category == category and enum_value(p.current_level) == enum_value(level)
        ]
        if not in_category:
            return None

        totals = []
        for project in in_category:
            scores = self.compute_scores(project.id, level)
            if scores.is_fully_judged:
                totals.append(scores.total_score)
        if not totals:
            return None

        return CategoryStats(
            min=min(totals),
            max=max(totals),
            average=sum(totals) / len(totals),
            count=len(in_category),
        )

    def get_judging_details(self, project_id: int, level) -> List[Dict[str, Any]]:
        """Per-judge feedback for a project at a level."""
        details = []
        for a in self.assignments_for(project_id):
            if enum_value(a.competition_level) != enum_value(level):
                continue
            judge = self._users_by_id.get(a.judge_id)
            details.append({
                "judge_name": judge.name if judge else "Unknown Judge",
                "assigned_section": enum_value(a.assigned_section),
                "score": a.score,
                "score_breakdown": a.score_breakdown,
                "comments": a.comments,
                "recommendations": a.recommendations,
            })
        return details

    def is_judging_started(self) -> bool:
        """True once any assignment of the edition is in progress or completed."""
        started = (AssignmentStatus.IN_PROGRESS.value, AssignmentStatus.COMPLETED.value)
        return any(enum_value(a.status) in started for a in self.assignments)


def compute_scores(project_id: int, level, context: ScoringContext) -> ProjectScores:
    return context.compute_scores(project_id, level)


def compute_scores_with_breakdown(project_id: int, level, context: ScoringContext) -> ScoreBreakdown:
    return context.compute_scores_with_breakdown(project_id, level)
