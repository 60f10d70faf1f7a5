"""
Builders for test records.

Every column the engine reads is set explicitly so the objects behave the
same whether or not they are ever flushed.
"""
from sciencefair.orm.competition import AssignmentStatus, CompetitionLevel, JudgingSection
from sciencefair.orm.edition import Edition
from sciencefair.orm.judge_assignment import JudgeAssignment
from sciencefair.orm.project import Project
from sciencefair.orm.user import User, UserRole

PART_A = JudgingSection.PART_A.value
PART_BC = JudgingSection.PART_BC.value
SUB_COUNTY = CompetitionLevel.SUB_COUNTY.value
COUNTY = CompetitionLevel.COUNTY.value
REGIONAL = CompetitionLevel.REGIONAL.value
NATIONAL = CompetitionLevel.NATIONAL.value


def make_edition(id=1, year=2026, is_active=True):
    return Edition(id=id, name=f"Science Fair {year}", year=year, is_active=is_active)


def make_project(
    id,
    category="Physics",
    level=SUB_COUNTY,
    region="Nairobi",
    county="Nairobi",
    sub_county="Westlands",
    zone="Zone A",
    school="Alliance High",
    is_eliminated=False,
    edition_id=1,
):
    return Project(
        id=id,
        title=f"Project {id}",
        category=category,
        region=region,
        county=county,
        sub_county=sub_county,
        zone=zone,
        school=school,
        students=["Student One", "Student Two"],
        current_level=level,
        is_eliminated=is_eliminated,
        edition_id=edition_id,
    )


def make_assignment(
    id,
    project_id,
    judge_id,
    section=PART_A,
    score=None,
    level=SUB_COUNTY,
    status=AssignmentStatus.COMPLETED.value,
    is_archived=False,
    score_breakdown=None,
    edition_id=1,
):
    return JudgeAssignment(
        id=id,
        project_id=project_id,
        judge_id=judge_id,
        assigned_section=section,
        status=status,
        score=score,
        score_breakdown=score_breakdown,
        is_archived=is_archived,
        competition_level=level,
        edition_id=edition_id,
    )


def make_user(
    id,
    name=None,
    roles=None,
    current_role=UserRole.JUDGE.value,
    coordinated_category=None,
    region=None,
    county=None,
    sub_county=None,
):
    return User(
        id=id,
        name=name or f"User {id}",
        email=f"user{id}@sciencefair.test",
        is_active=True,
        roles=roles if roles is not None else [current_role],
        current_role=current_role,
        coordinated_category=coordinated_category,
        region=region,
        county=county,
        sub_county=sub_county,
    )


def make_coordinator(id, category="Physics"):
    return make_user(
        id,
        name=f"Coordinator {id}",
        roles=[UserRole.JUDGE.value, UserRole.COORDINATOR.value],
        current_role=UserRole.COORDINATOR.value,
        coordinated_category=category,
    )


def make_admin(id=1, role=UserRole.SUPER_ADMIN.value, region=None, county=None, sub_county=None):
    return make_user(
        id,
        name=f"Admin {id}",
        roles=[role],
        current_role=role,
        region=region,
        county=county,
        sub_county=sub_county,
    )


class AssignmentSequence:
    """Hands out unique assignment ids within one test."""

    def __init__(self, start=1):
        self.next_id = start

    def __call__(self, project_id, judge_id, **kwargs):
        assignment = make_assignment(self.next_id, project_id, judge_id, **kwargs)
        self.next_id += 1
        return assignment

    def judged(self, project_id, a_scores, bc_scores, judges=(10, 11, 12, 13), **kwargs):
        """Two completed judges per section with the given scores."""
        return [
            self(project_id, judges[0], section=PART_A, score=a_scores[0], **kwargs),
            self(project_id, judges[1], section=PART_A, score=a_scores[1], **kwargs),
            self(project_id, judges[2], section=PART_BC, score=bc_scores[0], **kwargs),
            self(project_id, judges[3], section=PART_BC, score=bc_scores[1], **kwargs),
        ]


async def seed(db, *groups):
    """Add records (or lists of records) and commit."""
    for group in groups:
        if isinstance(group, (list, tuple)):
            db.add_all(group)
        else:
            db.add(group)
    await db.commit()
