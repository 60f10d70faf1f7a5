"""
Integration tests for publishing and rolling back a competition level.

Scenario: six Physics projects at Sub-County in Westlands with distinct
totals, judged by four regular judges. Coordinator 20 judged both
sections of project 1. Project 7 sits in another county.
"""
import json

import pytest
import pytest_asyncio
from sqlalchemy import select

from sciencefair.exceptions import StorageError
from sciencefair.orm.audit_log import AuditLog
from sciencefair.orm.competition import AssignmentStatus, CompetitionLevel
from sciencefair.orm.judge_assignment import JudgeAssignment
from sciencefair.orm.project import Project
from sciencefair.orm.user import User, UserRole
from sciencefair.services.competition_repository import CompetitionRepository
from sciencefair.services.level_publisher import (
    LevelPublisher,
    SNAPSHOT_CORRUPT_WARNING,
    SNAPSHOT_MISSING_WARNING,
)
from sciencefair.services.settings_repository import (
    EditionStatusRepository,
    RoleSnapshotRepository,
    SettingsRepository,
    role_snapshot_key,
)
from sciencefair.tests.factories import (
    AssignmentSequence, COUNTY, NATIONAL, PART_A, PART_BC, SUB_COUNTY,
    make_admin, make_coordinator, make_edition, make_project, make_user, seed,
)

EDITION_ID = 1
TOTALS = {1: 90, 2: 80, 3: 70, 4: 60, 5: 50, 6: 40}


@pytest_asyncio.fixture
async def scenario(db_session):
    seq = AssignmentSequence()
    projects = [make_project(pid) for pid in TOTALS]
    projects.append(make_project(7, county="Mombasa", region="Coast", sub_county="Kisauni"))

    assignments = []
    for pid, total in TOTALS.items():
        half = total / 2
        assignments += seq.judged(pid, (half, half), (half, half))
    assignments += seq.judged(7, (30, 30), (30, 30))
    assignments += [
        seq(1, 20, section=PART_A, score=45),
        seq(1, 20, section=PART_BC, score=45),
    ]

    users = [
        make_admin(1),
        make_user(10), make_user(11), make_user(12), make_user(13),
        make_coordinator(20),
    ]
    await seed(db_session, make_edition(EDITION_ID), users, projects, assignments)
    return {"admin": users[0], "coordinator_id": 20}


async def load_projects(db):
    result = await db.execute(select(Project).order_by(Project.id))
    return {p.id: p for p in result.scalars().all()}


async def load_assignments(db, level=SUB_COUNTY):
    result = await db.execute(select(JudgeAssignment).where(JudgeAssignment.competition_level == level))
    return list(result.scalars().all())


async def load_user(db, user_id):
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one()


@pytest.mark.asyncio
class TestPublish:

    async def test_promotes_top_four_and_eliminates_rest(self, db_session, scenario):
        result = await LevelPublisher(db_session).publish(scenario["admin"], EDITION_ID, SUB_COUNTY)

        assert result.success
        assert result.promoted == 5  # project 7 ties project 4 for fourth
        assert result.eliminated == 2

        projects = await load_projects(db_session)
        for pid in (1, 2, 3, 4, 7):
            assert projects[pid].current_level == COUNTY
            assert not projects[pid].is_eliminated
        for pid in (5, 6):
            assert projects[pid].current_level == SUB_COUNTY
            assert projects[pid].is_eliminated

    async def test_archives_scores_and_keeps_them_readable(self, db_session, scenario):
        result = await LevelPublisher(db_session).publish(scenario["admin"], EDITION_ID, SUB_COUNTY)

        assignments = await load_assignments(db_session)
        assert result.archived == len(assignments) == 30
        assert all(a.is_archived for a in assignments)

        context = await CompetitionRepository(db_session).load_context(EDITION_ID)
        scores = context.compute_scores(2, SUB_COUNTY)
        assert scores.is_fully_judged
        assert scores.total_score == 80

    async def test_resets_acting_coordinator(self, db_session, scenario):
        result = await LevelPublisher(db_session).publish(scenario["admin"], EDITION_ID, SUB_COUNTY)

        assert result.roles_reset == 1
        assert "1 coordinator roles were reset to Judge." in result.message

        coordinator = await load_user(db_session, scenario["coordinator_id"])
        assert coordinator.roles == [UserRole.JUDGE.value]
        assert coordinator.current_role == UserRole.JUDGE.value
        assert coordinator.coordinated_category is None

    async def test_stores_role_snapshot_and_audit_entry(self, db_session, scenario):
        await LevelPublisher(db_session).publish(scenario["admin"], EDITION_ID, SUB_COUNTY)

        snapshot = await RoleSnapshotRepository(SettingsRepository(db_session)).load(EDITION_ID, SUB_COUNTY)
        assert set(snapshot) == {10, 11, 12, 13, 20}
        assert snapshot[20].current_role == UserRole.COORDINATOR.value
        assert snapshot[20].coordinated_category == "Physics"

        result = await db_session.execute(select(AuditLog))
        entry = result.scalar_one()
        assert entry.action == "Published results for Sub-County level."
        assert entry.performing_admin_id == scenario["admin"].id

    async def test_message_counts_promotions(self, db_session, scenario):
        result = await LevelPublisher(db_session).publish(scenario["admin"], EDITION_ID, SUB_COUNTY)

        assert result.message.startswith("Results published successfully! 5 projects promoted.")

    async def test_jurisdiction_limits_publish(self, db_session, scenario):
        county_admin = make_admin(
            2, role=UserRole.COUNTY_ADMIN.value, region="Coast", county="Mombasa"
        )
        await seed(db_session, county_admin)

        result = await LevelPublisher(db_session).publish(county_admin, EDITION_ID, SUB_COUNTY)

        assert result.success
        assert result.promoted == 1
        assert result.archived == 4
        projects = await load_projects(db_session)
        assert projects[7].current_level == COUNTY
        assert all(projects[pid].current_level == SUB_COUNTY for pid in TOTALS)

    async def test_national_publish_completes_edition(self, db_session):
        seq = AssignmentSequence()
        await seed(
            db_session,
            make_edition(EDITION_ID),
            make_admin(1),
            [make_project(1, level=NATIONAL), make_project(2, level=NATIONAL)],
            seq.judged(1, (40, 40), (40, 40), level=NATIONAL) + seq.judged(2, (30, 30), (30, 30), level=NATIONAL),
        )
        admin = await load_user(db_session, 1)

        result = await LevelPublisher(db_session).publish(admin, EDITION_ID, NATIONAL)

        assert result.success
        assert "National winners have been determined." in result.message
        assert "The competition has been marked as completed." in result.message
        assert await EditionStatusRepository(SettingsRepository(db_session)).is_completed(EDITION_ID)

        projects = await load_projects(db_session)
        assert all(p.current_level == NATIONAL for p in projects.values())
        assert all(a.is_archived for a in await load_assignments(db_session, NATIONAL))


@pytest.mark.asyncio
class TestInputChecks:

    async def test_non_admin_is_rejected_without_writes(self, db_session, scenario):
        judge = await load_user(db_session, 10)

        result = await LevelPublisher(db_session).publish(judge, EDITION_ID, SUB_COUNTY)

        assert not result.success
        assert result.status_code == 403
        assert not any(a.is_archived for a in await load_assignments(db_session))

    async def test_missing_actor(self, db_session, scenario):
        result = await LevelPublisher(db_session).publish(None, EDITION_ID, SUB_COUNTY)

        assert not result.success
        assert result.message == "No active edition or user."

    async def test_unknown_edition(self, db_session, scenario):
        result = await LevelPublisher(db_session).rollback(scenario["admin"], 999, SUB_COUNTY)

        assert not result.success
        assert result.status_code == 404

    async def test_unknown_level(self, db_session, scenario):
        result = await LevelPublisher(db_session).publish(scenario["admin"], EDITION_ID, "Galactic")

        assert not result.success
        assert result.status_code == 400


@pytest.mark.asyncio
class TestRollback:

    async def test_round_trip_restores_everything(self, db_session, scenario):
        publisher = LevelPublisher(db_session)
        await publisher.publish(scenario["admin"], EDITION_ID, SUB_COUNTY)

        result = await publisher.rollback(scenario["admin"], EDITION_ID, SUB_COUNTY)

        assert result.success
        assert result.message == "Results rolled back successfully."
        assert result.warnings == []
        assert result.projects_restored == 7
        assert result.unarchived == 30
        assert result.roles_restored == 5

        projects = await load_projects(db_session)
        assert all(p.current_level == SUB_COUNTY and not p.is_eliminated for p in projects.values())
        assert not any(a.is_archived for a in await load_assignments(db_session))

        coordinator = await load_user(db_session, scenario["coordinator_id"])
        assert coordinator.roles == [UserRole.JUDGE.value, UserRole.COORDINATOR.value]
        assert coordinator.current_role == UserRole.COORDINATOR.value
        assert coordinator.coordinated_category == "Physics"

        settings = SettingsRepository(db_session)
        assert await settings.get_setting(role_snapshot_key(EDITION_ID, SUB_COUNTY)) is None

        actions = (await db_session.execute(select(AuditLog.action).order_by(AuditLog.id))).scalars().all()
        assert actions[-1] == "Rolled back results for Sub-County level."

    async def test_area_by_area_publish_restores_every_coordinator(self, db_session):
        seq = AssignmentSequence()
        assignments = (
            seq.judged(1, (45, 45), (45, 45))
            + [seq(1, 20, section=PART_A, score=45), seq(1, 20, section=PART_BC, score=45)]
            + seq.judged(2, (40, 40), (40, 40), judges=(14, 15, 16, 17))
            + [seq(2, 21, section=PART_A, score=40), seq(2, 21, section=PART_BC, score=40)]
        )
        westlands_admin = make_admin(
            2, role=UserRole.SUB_COUNTY_ADMIN.value, region="Nairobi", county="Nairobi", sub_county="Westlands"
        )
        langata_admin = make_admin(
            3, role=UserRole.SUB_COUNTY_ADMIN.value, region="Nairobi", county="Nairobi", sub_county="Langata"
        )
        await seed(
            db_session,
            make_edition(EDITION_ID),
            [make_admin(1), westlands_admin, langata_admin],
            [make_user(i) for i in range(10, 18)] + [make_coordinator(20), make_coordinator(21)],
            [make_project(1), make_project(2, sub_county="Langata")],
            assignments,
        )
        publisher = LevelPublisher(db_session)

        assert (await publisher.publish(westlands_admin, EDITION_ID, SUB_COUNTY)).roles_reset == 1
        assert (await publisher.publish(langata_admin, EDITION_ID, SUB_COUNTY)).roles_reset == 1

        super_admin = await load_user(db_session, 1)
        result = await publisher.rollback(super_admin, EDITION_ID, SUB_COUNTY)

        assert result.success
        assert result.warnings == []
        assert result.roles_restored == 10
        for coordinator_id in (20, 21):
            coordinator = await load_user(db_session, coordinator_id)
            assert coordinator.roles == [UserRole.JUDGE.value, UserRole.COORDINATOR.value]
            assert coordinator.current_role == UserRole.COORDINATOR.value
            assert coordinator.coordinated_category == "Physics"

    async def test_republish_keeps_pre_publish_roles(self, db_session, scenario):
        publisher = LevelPublisher(db_session)
        await publisher.publish(scenario["admin"], EDITION_ID, SUB_COUNTY)
        await publisher.publish(scenario["admin"], EDITION_ID, SUB_COUNTY)

        snapshot = await RoleSnapshotRepository(SettingsRepository(db_session)).load(EDITION_ID, SUB_COUNTY)

        assert snapshot[20].current_role == UserRole.COORDINATOR.value

    async def test_unpublish_alias(self, db_session, scenario):
        publisher = LevelPublisher(db_session)
        await publisher.publish(scenario["admin"], EDITION_ID, SUB_COUNTY)

        result = await publisher.unpublish(scenario["admin"], EDITION_ID, SUB_COUNTY)

        assert result.success

    async def test_missing_snapshot_is_a_warning(self, db_session, scenario):
        result = await LevelPublisher(db_session).rollback(scenario["admin"], EDITION_ID, SUB_COUNTY)

        assert result.success
        assert result.warnings == [SNAPSHOT_MISSING_WARNING]
        assert result.roles_restored == 0

    async def test_corrupt_snapshot_is_a_warning(self, db_session, scenario):
        publisher = LevelPublisher(db_session)
        await publisher.publish(scenario["admin"], EDITION_ID, SUB_COUNTY)
        settings = SettingsRepository(db_session)
        await settings.set_setting(role_snapshot_key(EDITION_ID, SUB_COUNTY), "{not json")
        await db_session.commit()

        result = await publisher.rollback(scenario["admin"], EDITION_ID, SUB_COUNTY)

        assert result.success
        assert result.warnings == [SNAPSHOT_CORRUPT_WARNING]
        coordinator = await load_user(db_session, scenario["coordinator_id"])
        assert coordinator.current_role == UserRole.JUDGE.value

    async def test_national_rollback_clears_completion(self, db_session):
        seq = AssignmentSequence()
        await seed(
            db_session,
            make_edition(EDITION_ID),
            make_admin(1),
            [make_project(1, level=NATIONAL)],
            seq.judged(1, (40, 40), (40, 40), level=NATIONAL),
        )
        admin = await load_user(db_session, 1)
        publisher = LevelPublisher(db_session)
        await publisher.publish(admin, EDITION_ID, NATIONAL)

        result = await publisher.rollback(admin, EDITION_ID, NATIONAL)

        assert result.success
        assert not await EditionStatusRepository(SettingsRepository(db_session)).is_completed(EDITION_ID)
        assert not any(a.is_archived for a in await load_assignments(db_session, NATIONAL))


@pytest.mark.asyncio
class TestRollbackEligibility:

    async def test_blocked_once_next_level_judging_starts(self, db_session, scenario):
        publisher = LevelPublisher(db_session)
        await publisher.publish(scenario["admin"], EDITION_ID, SUB_COUNTY)
        assert await publisher.is_rollback_possible(EDITION_ID, SUB_COUNTY)

        seq = AssignmentSequence(500)
        await seed(db_session, seq(1, 11, level=COUNTY, status=AssignmentStatus.IN_PROGRESS.value))

        assert not await publisher.is_rollback_possible(EDITION_ID, SUB_COUNTY)

    async def test_not_started_assignments_do_not_block(self, db_session, scenario):
        seq = AssignmentSequence(500)
        await seed(db_session, seq(1, 11, level=COUNTY, status=AssignmentStatus.NOT_STARTED.value))

        assert await LevelPublisher(db_session).is_rollback_possible(EDITION_ID, SUB_COUNTY)

    async def test_national_always_possible(self, db_session, scenario):
        assert await LevelPublisher(db_session).is_rollback_possible(EDITION_ID, CompetitionLevel.NATIONAL)


@pytest.mark.asyncio
class TestTransactionMode:

    @staticmethod
    def fail_role_updates(publisher, monkeypatch):
        async def broken(*args, **kwargs):
            raise StorageError("database is locked")
        monkeypatch.setattr(publisher.repo, "update_user_roles", broken)

    async def test_atomic_publish_rolls_back_on_failure(self, db_session, scenario, monkeypatch):
        publisher = LevelPublisher(db_session, atomic=True)
        self.fail_role_updates(publisher, monkeypatch)

        result = await publisher.publish(scenario["admin"], EDITION_ID, SUB_COUNTY)

        assert not result.success
        assert result.message == "An error occurred during publishing."
        projects = await load_projects(db_session)
        assert all(projects[pid].current_level == SUB_COUNTY for pid in TOTALS)
        assert not any(a.is_archived for a in await load_assignments(db_session))
        assert await SettingsRepository(db_session).get_setting(role_snapshot_key(EDITION_ID, SUB_COUNTY)) is None

    async def test_best_effort_publish_keeps_earlier_steps(self, db_session, scenario, monkeypatch):
        publisher = LevelPublisher(db_session, atomic=False)
        self.fail_role_updates(publisher, monkeypatch)

        result = await publisher.publish(scenario["admin"], EDITION_ID, SUB_COUNTY)

        assert not result.success
        projects = await load_projects(db_session)
        assert projects[1].current_level == COUNTY
        assert all(a.is_archived for a in await load_assignments(db_session))

        raw = await SettingsRepository(db_session).get_setting(role_snapshot_key(EDITION_ID, SUB_COUNTY))
        assert set(json.loads(raw)) == {"10", "11", "12", "13", "20"}
