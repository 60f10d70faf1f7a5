"""
sciencefair/services/review_service.py
Hand a timed-out judging session over to the category coordinator.
"""
import logging
from typing import Dict, Set

from sqlalchemy.ext.asyncio import AsyncSession

from sciencefair.exceptions import EngineException
from sciencefair.orm.competition import AssignmentStatus, CompetitionLevel
from sciencefair.services.assignment_selector import BOTH_SECTIONS, enum_value
from sciencefair.services.competition_repository import CompetitionRepository
from sciencefair.services.level_publisher import OperationResult

logger = logging.getLogger(__name__)


async def find_category_coordinator(repo: CompetitionRepository, edition_id: int, category: str, level):
    """
    First judge, in assignment order, whose live assignments across the
    category's projects currently at a level cover both sections, or None.
    """
    level = CompetitionLevel(level).value
    projects = {
        p.id for p in await repo.list_projects(edition_id)
        if p.category == category and p.current_level == level
    }
    sections_by_judge: Dict[int, Set[str]] = {}
    for a in await repo.list_assignments(edition_id):
        if a.project_id in projects and not a.is_archived:
            sections_by_judge.setdefault(a.judge_id, set()).add(enum_value(a.assigned_section))

    for judge_id, sections in sections_by_judge.items():
        if sections >= BOTH_SECTIONS:
            return judge_id
    return None


async def escalate_timed_out_assignment(
    db: AsyncSession,
    edition_id: int,
    project_id: int,
    judge_id: int,
    section,
    category: str,
    level
) -> OperationResult:
    """
    Queue a Review Pending assignment for the category coordinator on the
    section the judge failed to finish in time.

    Returns:
        OperationResult; failure when no coordinator is judging the category
    """
    repo = CompetitionRepository(db)
    try:
        coordinator_id = await find_category_coordinator(repo, edition_id, category, level)
        if coordinator_id is None:
            logger.warning(f"No coordinator found for {category} at {enum_value(level)} (project {project_id})")
            return OperationResult(
                success=False,
                message="Could not find a coordinator to review the timed-out session.",
                status_code=404,
            )

        await repo.upsert_assignment(
            edition_id=edition_id,
            project_id=project_id,
            judge_id=coordinator_id,
            section=section,
            level=level,
            status=AssignmentStatus.REVIEW_PENDING,
            comments=f"Reviewing due to timeout from judge ID: {judge_id}",
        )
        await db.commit()

    except EngineException as e:
        logger.error(f"Failed to assign project {project_id} for review: {e}")
        await db.rollback()
        return OperationResult(success=False, message=f"Failed to assign for review: {e.message}")

    logger.info(f"Project {project_id} ({enum_value(section)}) escalated from judge {judge_id} to coordinator {coordinator_id}")
    return OperationResult(
        success=True,
        message="Project sent to coordinator for review due to session timeout.",
    )
