"""
sciencefair/routes/results.py
Results API: scores, rankings, publish and rollback.

All reads recompute from the stored assignments; nothing is cached.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from sciencefair.config.feature_flags import feature_flags
from sciencefair.database import get_db
from sciencefair.errors import BadRequestError, ErrorCode, ErrorResponse, ForbiddenError, NotFoundError
from sciencefair.orm.competition import CompetitionLevel
from sciencefair.orm.user import ADMIN_ROLES, User, UserRole
from sciencefair.rbac import get_current_user, require_role
from sciencefair.schemas.results import (
    CategoryStatsResponse,
    EscalationRequest,
    JudgingProgressResponse,
    LevelRequest,
    OperationResponse,
    ProjectScoresResponse,
    RankingsResponse,
    RollbackEligibilityResponse,
)
from sciencefair.services.competition_repository import CompetitionRepository
from sciencefair.services.level_publisher import LevelPublisher, OperationResult, project_in_jurisdiction
from sciencefair.services.ranking_engine import rank_projects
from sciencefair.services.review_service import escalate_timed_out_assignment

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/results",
    tags=["results"],
    responses={
        400: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
    },
)

# Judges and coordinators may trigger an escalation from the judging form
ESCALATION_ROLES = ADMIN_ROLES + [UserRole.JUDGE, UserRole.COORDINATOR]


# =============================================================================
# Helpers
# =============================================================================

def check_results_enabled():
    """Check if the results engine is enabled."""
    if not feature_flags.FEATURE_RESULTS_ENGINE:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Results engine is disabled"
        )


async def load_edition_context(db: AsyncSession, edition_id: int):
    repo = CompetitionRepository(db)
    if await repo.get_edition(edition_id) is None:
        raise NotFoundError("Edition", edition_id, code=ErrorCode.EDITION_NOT_FOUND)
    return await repo.load_context(edition_id)


def to_operation_response(result: OperationResult, edition_id: int) -> OperationResponse:
    """Raise for rejected input; otherwise echo the result with HTTP 200."""
    if not result.success:
        if result.status_code == status.HTTP_400_BAD_REQUEST:
            raise BadRequestError(result.message)
        if result.status_code == status.HTTP_403_FORBIDDEN:
            raise ForbiddenError(result.message)
        if result.status_code == status.HTTP_404_NOT_FOUND:
            raise NotFoundError("Edition", edition_id, code=ErrorCode.EDITION_NOT_FOUND)
    return OperationResponse(**result.to_dict())


# =============================================================================
# Read Routes
# =============================================================================

@router.get("/{edition_id}/rankings", response_model=RankingsResponse)
async def get_rankings(
    edition_id: int,
    level: CompetitionLevel = Query(...),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_role(ADMIN_ROLES))
):
    """
    Category ranks, points and leaderboards for the projects in the
    caller's jurisdiction.

    **Roles:** Admins
    """
    check_results_enabled()

    context = await load_edition_context(db, edition_id)
    projects = [p for p in context.projects if project_in_jurisdiction(p, current_user)]
    ranking = rank_projects(projects, level, context)

    return RankingsResponse(edition_id=edition_id, level=level.value, **ranking.to_dict())


@router.get("/{edition_id}/projects/{project_id}/scores", response_model=ProjectScoresResponse)
async def get_project_scores(
    edition_id: int,
    project_id: int,
    level: CompetitionLevel = Query(...),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Section scores, Part B / Part C split and arbitration flag for one project."""
    check_results_enabled()

    context = await load_edition_context(db, edition_id)
    if context.get_project(project_id) is None:
        raise NotFoundError("Project", project_id, code=ErrorCode.PROJECT_NOT_FOUND)

    scores = context.compute_scores(project_id, level)
    breakdown = context.compute_scores_with_breakdown(project_id, level)

    return ProjectScoresResponse(
        project_id=project_id,
        level=level.value,
        score_a=scores.score_a,
        score_b=breakdown.score_b,
        score_c=breakdown.score_c,
        score_bc=scores.score_bc,
        total_score=scores.total_score,
        is_fully_judged=scores.is_fully_judged,
        needs_arbitration=scores.needs_arbitration,
        judging_details=context.get_judging_details(project_id, level),
    )


@router.get("/{edition_id}/projects/{project_id}/progress", response_model=JudgingProgressResponse)
async def get_project_progress(
    edition_id: int,
    project_id: int,
    level: CompetitionLevel = Query(...),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Judging progress of one project at a level."""
    check_results_enabled()

    context = await load_edition_context(db, edition_id)
    if context.get_project(project_id) is None:
        raise NotFoundError("Project", project_id, code=ErrorCode.PROJECT_NOT_FOUND)

    progress = context.get_judging_progress(project_id, level)
    return JudgingProgressResponse(
        project_id=project_id,
        level=level.value,
        is_section_a_complete=progress.is_section_a_complete,
        is_section_b_complete=progress.is_section_b_complete,
        percentage=progress.percentage,
        status_text=progress.status_text,
    )


@router.get("/{edition_id}/categories/{category}/stats", response_model=CategoryStatsResponse)
async def get_category_stats(
    edition_id: int,
    category: str,
    level: CompetitionLevel = Query(...),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Min / max / average total of fully judged projects in a category."""
    check_results_enabled()

    context = await load_edition_context(db, edition_id)
    stats = context.get_category_stats(category, level)
    if stats is None:
        return CategoryStatsResponse(category=category, level=level.value)

    return CategoryStatsResponse(
        category=category,
        level=level.value,
        min=stats.min,
        max=stats.max,
        average=stats.average,
        count=stats.count,
    )


@router.get("/{edition_id}/rollback-eligibility", response_model=RollbackEligibilityResponse)
async def get_rollback_eligibility(
    edition_id: int,
    level: CompetitionLevel = Query(...),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_role(ADMIN_ROLES))
):
    """
    Whether rolling back a level is still safe.

    **Roles:** Admins
    """
    check_results_enabled()

    publisher = LevelPublisher(db)
    if await publisher.repo.get_edition(edition_id) is None:
        raise NotFoundError("Edition", edition_id, code=ErrorCode.EDITION_NOT_FOUND)

    return RollbackEligibilityResponse(
        edition_id=edition_id,
        level=level.value,
        rollback_possible=await publisher.is_rollback_possible(edition_id, level),
    )


# =============================================================================
# Write Routes
# =============================================================================

@router.post("/{edition_id}/publish", response_model=OperationResponse)
async def publish_results(
    edition_id: int,
    request: LevelRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_role(ADMIN_ROLES))
):
    """
    Publish results for a level within the caller's jurisdiction.

    **Roles:** Admins

    A failed publish is reported with success=false and HTTP 200.
    """
    check_results_enabled()

    result = await LevelPublisher(db).publish(current_user, edition_id, request.level)
    return to_operation_response(result, edition_id)


@router.post("/{edition_id}/rollback", response_model=OperationResponse)
async def rollback_results(
    edition_id: int,
    request: LevelRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_role(ADMIN_ROLES))
):
    """
    Roll back a published level.

    **Roles:** Admins
    """
    check_results_enabled()

    result = await LevelPublisher(db).rollback(current_user, edition_id, request.level)
    return to_operation_response(result, edition_id)


@router.post("/{edition_id}/escalations", response_model=OperationResponse)
async def escalate_assignment(
    edition_id: int,
    request: EscalationRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_role(ESCALATION_ROLES))
):
    """Send a timed-out judging session to the category coordinator."""
    check_results_enabled()
    if not feature_flags.FEATURE_REVIEW_ESCALATION:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Review escalation is disabled"
        )

    if await CompetitionRepository(db).get_edition(edition_id) is None:
        raise NotFoundError("Edition", edition_id, code=ErrorCode.EDITION_NOT_FOUND)

    result = await escalate_timed_out_assignment(
        db,
        edition_id=edition_id,
        project_id=request.project_id,
        judge_id=request.judge_id,
        section=request.section,
        category=request.category,
        level=request.level,
    )
    return OperationResponse(**result.to_dict())
