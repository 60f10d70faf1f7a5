"""
sciencefair/services/level_publisher.py
Publish and roll back the results of one competition level.

Publish ranks every project in the admin's jurisdiction at the level,
promotes the top four of each category to the next level, eliminates the
rest, archives the scores that produced the result and hands coordinators
back their judge role. Rollback undoes all of it.

Both operations report through OperationResult and never raise to the
caller. With FEATURE_ATOMIC_PUBLISH on, every write of one operation
lands in a single transaction; otherwise each step commits as it goes
and a failure leaves earlier steps in place.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from sciencefair.config.feature_flags import feature_flags
from sciencefair.exceptions import (
    EngineException,
    InvalidRequestError,
    NotFoundError,
    PermissionDeniedError,
    SnapshotCorruptError,
)
from sciencefair.orm.competition import AssignmentStatus, CompetitionLevel, next_level
from sciencefair.orm.user import UserRole
from sciencefair.services.assignment_selector import acting_coordinator_ids, enum_value
from sciencefair.services.audit_service import append_audit_log
from sciencefair.services.competition_repository import CompetitionRepository
from sciencefair.services.ranking_engine import rank_projects
from sciencefair.services.settings_repository import (
    EditionStatusRepository,
    RoleSnapshotEntry,
    RoleSnapshotRepository,
    SettingsRepository,
)

logger = logging.getLogger(__name__)

# Worst category rank that still advances
PROMOTION_CUTOFF = 4

NATIONAL_SCOPE_ROLES = (UserRole.SUPER_ADMIN.value, UserRole.NATIONAL_ADMIN.value)

MISSING_INPUT_MESSAGE = "No active edition or user."
PUBLISH_FAILED_MESSAGE = "An error occurred during publishing."
ROLLBACK_FAILED_MESSAGE = "An error occurred during rollback."
SNAPSHOT_MISSING_WARNING = "No pre-publish role snapshot found. Skipping role restoration."
SNAPSHOT_CORRUPT_WARNING = "Role snapshot found but could not be parsed. Skipping role restoration."


@dataclass
class OperationResult:
    success: bool
    message: str
    warnings: List[str] = field(default_factory=list)
    promoted: int = 0
    eliminated: int = 0
    archived: int = 0
    roles_reset: int = 0
    roles_restored: int = 0
    projects_restored: int = 0
    unarchived: int = 0
    # HTTP-style status of a failed input check; 200 otherwise
    status_code: int = 200

    def to_dict(self):
        return {
            "success": self.success,
            "message": self.message,
            "warnings": list(self.warnings),
            "promoted": self.promoted,
            "eliminated": self.eliminated,
            "archived": self.archived,
            "roles_reset": self.roles_reset,
            "roles_restored": self.roles_restored,
            "projects_restored": self.projects_restored,
            "unarchived": self.unarchived,
        }


def project_in_jurisdiction(project, actor) -> bool:
    """Whether a project falls inside the acting admin's jurisdiction."""
    role = enum_value(actor.current_role)
    if role in NATIONAL_SCOPE_ROLES:
        return True
    if role == UserRole.REGIONAL_ADMIN.value:
        return project.region == actor.region
    if role == UserRole.COUNTY_ADMIN.value:
        return project.region == actor.region and project.county == actor.county
    if role == UserRole.SUB_COUNTY_ADMIN.value:
        return (
            project.region == actor.region
            and project.county == actor.county
            and project.sub_county == actor.sub_county
        )
    return False


def demoted_roles(roles: List[str]) -> List[str]:
    """Coordinator removed, Judge guaranteed, original order kept."""
    kept = [enum_value(r) for r in roles or [] if enum_value(r) != UserRole.COORDINATOR.value]
    if UserRole.JUDGE.value not in kept:
        kept.append(UserRole.JUDGE.value)
    return kept


class LevelPublisher:
    """
    Publish / rollback orchestrator for one edition.

    One administrative actor at a time; no locking is attempted.
    """

    def __init__(self, db: AsyncSession, atomic: Optional[bool] = None):
        self.db = db
        self.atomic = feature_flags.FEATURE_ATOMIC_PUBLISH if atomic is None else atomic
        self.repo = CompetitionRepository(db)
        settings = SettingsRepository(db)
        self.snapshots = RoleSnapshotRepository(settings)
        self.edition_status = EditionStatusRepository(settings)

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _validate(self, actor, edition_id: int, level) -> CompetitionLevel:
        """
        Input checks shared by publish and rollback. No side effects.

        Raises:
            InvalidRequestError: Missing actor or unknown level
            NotFoundError: Edition does not exist
            PermissionDeniedError: Actor is not acting as an admin
        """
        if actor is None or edition_id is None:
            raise InvalidRequestError(MISSING_INPUT_MESSAGE)
        if await self.repo.get_edition(edition_id) is None:
            raise NotFoundError(MISSING_INPUT_MESSAGE)
        if not actor.is_admin:
            raise PermissionDeniedError(
                f"{enum_value(actor.current_role)} cannot publish or roll back results"
            )
        try:
            return CompetitionLevel(level)
        except ValueError:
            raise InvalidRequestError(f"Unknown competition level: {level}")

    async def _checkpoint(self):
        """Commit a finished step when running in best-effort mode."""
        if not self.atomic:
            await self.db.commit()

    async def _fail(self, message: str, error: Exception) -> OperationResult:
        logger.error(f"{message} {error}")
        await self.db.rollback()
        return OperationResult(success=False, message=message, warnings=[str(error)])

    # =========================================================================
    # Publish
    # =========================================================================

    async def publish(self, actor, edition_id: int, level) -> OperationResult:
        """
        Publish results for a level within the actor's jurisdiction.

        Args:
            actor: Admin user performing the publish
            edition_id: Edition being published
            level: Level whose judging is finished

        Returns:
            OperationResult with counts of promoted, eliminated and archived
            records and the number of coordinator roles reset
        """
        try:
            level = await self._validate(actor, edition_id, level)
        except EngineException as e:
            return OperationResult(success=False, message=e.message, status_code=e.status_code)

        promote_to = next_level(level)
        result = OperationResult(success=True, message="")

        try:
            context = await self.repo.load_context(edition_id)

            to_process = [
                p for p in context.projects
                if project_in_jurisdiction(p, actor)
                and p.current_level == level.value
                and not p.is_eliminated
            ]
            process_ids = {p.id for p in to_process}

            ranking = rank_projects(to_process, level, context)
            promoted_ids = [r.id for r in ranking.projects_with_points if r.category_rank <= PROMOTION_CUTOFF]
            eliminated_ids = [r.id for r in ranking.projects_with_points if r.category_rank > PROMOTION_CUTOFF]

            if level == CompetitionLevel.NATIONAL:
                national_ids = {p.id for p in context.projects if p.current_level == level.value}
                batch = [
                    a for a in context.assignments
                    if a.project_id in national_ids
                    and a.competition_level == level.value
                    and not a.is_archived
                ]
            else:
                batch = [
                    a for a in context.assignments
                    if a.project_id in process_ids
                    and a.competition_level == level.value
                    and not a.is_archived
                ]

            judge_ids = {a.judge_id for a in batch}
            snapshot = {
                u.id: RoleSnapshotEntry(
                    roles=[enum_value(r) for r in u.roles or []],
                    current_role=enum_value(u.current_role),
                    coordinated_category=u.coordinated_category,
                )
                for u in context.users if u.id in judge_ids
            }
            acting = acting_coordinator_ids(batch)
            coordinators = [u for u in context.users if u.id in acting]

            # Promote / eliminate
            if promote_to is not None:
                for project_id in promoted_ids:
                    await self.repo.update_project(project_id, current_level=promote_to)
                result.promoted = len(promoted_ids)
            for project_id in eliminated_ids:
                await self.repo.update_project(project_id, is_eliminated=True)
            result.eliminated = len(eliminated_ids)
            await self._checkpoint()

            # Archive the scores behind this result
            if level == CompetitionLevel.NATIONAL:
                result.archived = await self.repo.bulk_archive_assignments(edition_id, True, level)
            else:
                result.archived = await self.repo.bulk_archive_assignments(
                    edition_id, True, level, project_ids=process_ids
                )
            await self._checkpoint()

            await self.snapshots.save(edition_id, level, snapshot)
            await self._checkpoint()

            for coordinator in coordinators:
                await self.repo.update_user_roles(
                    coordinator.id,
                    demoted_roles(snapshot[coordinator.id].roles),
                    UserRole.JUDGE.value
                    if snapshot[coordinator.id].current_role == UserRole.COORDINATOR.value
                    else snapshot[coordinator.id].current_role,
                    None,
                )
            result.roles_reset = len(coordinators)
            await self._checkpoint()

            if level == CompetitionLevel.NATIONAL:
                await self.edition_status.mark_completed(edition_id)

            await self.db.commit()

        except EngineException as e:
            return await self._fail(PUBLISH_FAILED_MESSAGE, e)

        entry = await append_audit_log(
            self.db, actor, f"Published results for {level.value} level.", edition_id
        )
        if entry is None:
            result.warnings.append("Results published but the audit log entry could not be written.")

        message = "Results published successfully!"
        if promote_to is not None:
            message += f" {result.promoted} projects promoted."
        else:
            message += " National winners have been determined."
        if level == CompetitionLevel.NATIONAL:
            message += " The competition has been marked as completed."
        if result.roles_reset > 0:
            message += f" {result.roles_reset} coordinator roles were reset to Judge."
        result.message = message

        logger.info(
            f"Published {level.value} (edition {edition_id}) by {actor.name}: "
            f"{result.promoted} promoted, {result.eliminated} eliminated, {result.archived} archived"
        )
        return result

    # =========================================================================
    # Rollback
    # =========================================================================

    async def rollback(self, actor, edition_id: int, level) -> OperationResult:
        """
        Undo a publish of a level.

        Every project at the level, plus every project one level up that was
        judged at this level, is put back at the level and un-eliminated.
        Not jurisdiction-filtered.
        """
        try:
            level = await self._validate(actor, edition_id, level)
        except EngineException as e:
            return OperationResult(success=False, message=e.message, status_code=e.status_code)

        promoted_level = next_level(level)
        result = OperationResult(success=True, message="Results rolled back successfully.")

        try:
            if level == CompetitionLevel.NATIONAL:
                await self.edition_status.clear_completed(edition_id)
                await self._checkpoint()

            context = await self.repo.load_context(edition_id)
            judged_here = {a.project_id for a in context.assignments if a.competition_level == level.value}
            to_restore = [
                p for p in context.projects
                if p.current_level == level.value
                or (
                    promoted_level is not None
                    and p.current_level == promoted_level.value
                    and p.id in judged_here
                )
            ]
            for project in to_restore:
                await self.repo.update_project(project.id, current_level=level, is_eliminated=False)
            result.projects_restored = len(to_restore)
            await self._checkpoint()

            result.unarchived = await self.repo.bulk_archive_assignments(edition_id, False, level)
            await self._checkpoint()

            try:
                snapshot = await self.snapshots.load(edition_id, level)
            except SnapshotCorruptError as e:
                logger.warning(str(e))
                snapshot = None
                result.warnings.append(SNAPSHOT_CORRUPT_WARNING)
            else:
                if snapshot is None:
                    result.warnings.append(SNAPSHOT_MISSING_WARNING)

            if snapshot is not None:
                for user_id, entry in snapshot.items():
                    restored = await self.repo.update_user_roles(
                        user_id, entry.roles, entry.current_role, entry.coordinated_category
                    )
                    if restored:
                        result.roles_restored += 1
                    else:
                        result.warnings.append(f"Failed to restore roles for user {user_id}: user not found.")
                await self.snapshots.delete(edition_id, level)
                await self._checkpoint()

            await self.db.commit()

        except EngineException as e:
            return await self._fail(ROLLBACK_FAILED_MESSAGE, e)

        for warning in result.warnings:
            logger.warning(warning)

        entry = await append_audit_log(
            self.db, actor, f"Rolled back results for {level.value} level.", edition_id
        )
        if entry is None:
            result.warnings.append("Results rolled back but the audit log entry could not be written.")

        logger.info(
            f"Rolled back {level.value} (edition {edition_id}) by {actor.name}: "
            f"{result.projects_restored} projects restored, {result.roles_restored} roles restored"
        )
        return result

    async def unpublish(self, actor, edition_id: int, level) -> OperationResult:
        return await self.rollback(actor, edition_id, level)

    async def is_rollback_possible(self, edition_id: int, level) -> bool:
        """
        Advisory guard: rollback is unsafe once judging has started at the
        next level. Always possible at National.
        """
        level = CompetitionLevel(level)
        upper = next_level(level)
        if upper is None:
            return True

        started = (AssignmentStatus.IN_PROGRESS.value, AssignmentStatus.COMPLETED.value)
        assignments = await self.repo.list_assignments(edition_id)
        return not any(
            a.competition_level == upper.value and enum_value(a.status) in started
            for a in assignments
        )
