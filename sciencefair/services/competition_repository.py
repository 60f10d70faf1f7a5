"""
sciencefair/services/competition_repository.py
Persistence access for editions, projects, assignments and users.

All writes flush but never commit; the caller decides the transaction
boundary. Any SQLAlchemy failure is re-raised as StorageError.
"""
import logging
from typing import Iterable, List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from sciencefair.exceptions import NotFoundError, StorageError
from sciencefair.orm.competition import AssignmentStatus, CompetitionLevel
from sciencefair.orm.edition import Edition
from sciencefair.orm.judge_assignment import JudgeAssignment
from sciencefair.orm.project import Project
from sciencefair.orm.user import User
from sciencefair.services.assignment_selector import enum_value
from sciencefair.services.score_aggregator import ScoringContext

logger = logging.getLogger(__name__)

# Fields the publisher is allowed to change on a project
PROJECT_MUTABLE_FIELDS = {"current_level", "is_eliminated"}


class CompetitionRepository:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _all(self, query) -> List:
        try:
            result = await self.db.execute(query)
        except SQLAlchemyError as e:
            raise StorageError(f"Query failed: {e}")
        return list(result.scalars().all())

    # =========================================================================
    # Reads
    # =========================================================================

    async def get_edition(self, edition_id: int) -> Optional[Edition]:
        try:
            return await self.db.get(Edition, edition_id)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to load edition {edition_id}: {e}")

    async def list_projects(self, edition_id: int) -> List[Project]:
        return await self._all(
            select(Project).where(Project.edition_id == edition_id).order_by(Project.id)
        )

    async def list_assignments(self, edition_id: int) -> List[JudgeAssignment]:
        return await self._all(
            select(JudgeAssignment)
            .where(JudgeAssignment.edition_id == edition_id)
            .order_by(JudgeAssignment.id)
        )

    async def list_users(self) -> List[User]:
        return await self._all(select(User).order_by(User.id))

    async def load_context(self, edition_id: int) -> ScoringContext:
        """Read the whole edition into a fresh scoring snapshot."""
        return ScoringContext(
            assignments=await self.list_assignments(edition_id),
            projects=await self.list_projects(edition_id),
            users=await self.list_users(),
        )

    # =========================================================================
    # Writes
    # =========================================================================

    async def update_project(self, project_id: int, **fields) -> Project:
        """
        Change promotion state of one project.

        Raises:
            NotFoundError: Project does not exist
            StorageError: Write failed
        """
        unknown = set(fields) - PROJECT_MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Project fields not writable: {sorted(unknown)}")

        try:
            project = await self.db.get(Project, project_id)
            if project is None:
                raise NotFoundError(f"Project {project_id} not found")
            for name, value in fields.items():
                setattr(project, name, enum_value(value))
            await self.db.flush()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to update project {project_id}: {e}")
        return project

    async def bulk_archive_assignments(
        self,
        edition_id: int,
        archived: bool,
        level,
        project_ids: Optional[Iterable[int]] = None
    ) -> int:
        """
        Set is_archived on every assignment of the edition at a level,
        optionally restricted to some projects, in one UPDATE.

        Returns:
            Number of assignments whose flag changed
        """
        stmt = (
            update(JudgeAssignment)
            .where(
                JudgeAssignment.edition_id == edition_id,
                JudgeAssignment.competition_level == CompetitionLevel(level).value,
                JudgeAssignment.is_archived == (not archived),
            )
            .values(is_archived=archived)
            .execution_options(synchronize_session="fetch")
        )
        if project_ids is not None:
            ids = list(project_ids)
            if not ids:
                return 0
            stmt = stmt.where(JudgeAssignment.project_id.in_(ids))

        try:
            result = await self.db.execute(stmt)
            await self.db.flush()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to {'archive' if archived else 'unarchive'} assignments: {e}")

        logger.info(
            f"{'Archived' if archived else 'Unarchived'} {result.rowcount} assignments "
            f"(edition {edition_id}, {CompetitionLevel(level).value})"
        )
        return result.rowcount

    async def update_user_roles(
        self,
        user_id: int,
        roles: List[str],
        current_role: str,
        coordinated_category: Optional[str]
    ) -> bool:
        """
        Overwrite a user's roles.

        Returns:
            False when the user no longer exists
        """
        try:
            user = await self.db.get(User, user_id)
            if user is None:
                return False
            user.roles = [enum_value(r) for r in roles]
            user.current_role = enum_value(current_role)
            user.coordinated_category = coordinated_category
            await self.db.flush()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to update roles of user {user_id}: {e}")
        return True

    async def upsert_assignment(
        self,
        edition_id: int,
        project_id: int,
        judge_id: int,
        section,
        level,
        status=AssignmentStatus.NOT_STARTED,
        comments: Optional[str] = None
    ) -> JudgeAssignment:
        """
        Create or update the assignment identified by
        (project, judge, section, level).
        """
        try:
            result = await self.db.execute(
                select(JudgeAssignment).where(
                    JudgeAssignment.project_id == project_id,
                    JudgeAssignment.judge_id == judge_id,
                    JudgeAssignment.assigned_section == enum_value(section),
                    JudgeAssignment.competition_level == CompetitionLevel(level).value,
                )
            )
            assignment = result.scalar_one_or_none()
            if assignment is None:
                assignment = JudgeAssignment(
                    project_id=project_id,
                    judge_id=judge_id,
                    assigned_section=enum_value(section),
                    competition_level=CompetitionLevel(level).value,
                    edition_id=edition_id,
                    is_archived=False,
                )
                self.db.add(assignment)
            assignment.status = enum_value(status)
            if comments is not None:
                assignment.comments = comments
            await self.db.flush()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to upsert assignment for project {project_id}: {e}")
        return assignment
