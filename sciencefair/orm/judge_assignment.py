"""
sciencefair/orm/judge_assignment.py
One judge's evaluation obligation for one section of one project at one level.

Archived assignments are the historical record of a published result.
Live (non-archived) assignments belong to the judging round in progress.
"""
from sqlalchemy import (
    Column, String, Integer, Float, Boolean, Text, ForeignKey, JSON,
    UniqueConstraint, Index
)

from sciencefair.orm.base import BaseModel
from sciencefair.orm.competition import AssignmentStatus


class JudgeAssignment(BaseModel):
    __tablename__ = "judge_assignments"

    project_id = Column(
        Integer,
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    judge_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    assigned_section = Column(String(20), nullable=False)
    status = Column(
        String(20),
        nullable=False,
        default=AssignmentStatus.NOT_STARTED.value
    )

    # Scoring
    score = Column(Float, nullable=True)
    score_breakdown = Column(JSON, nullable=True)  # criterion id -> points
    comments = Column(Text, nullable=True)
    recommendations = Column(Text, nullable=True)

    is_archived = Column(Boolean, nullable=False, default=False)
    competition_level = Column(String(20), nullable=False)
    edition_id = Column(
        Integer,
        ForeignKey("editions.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    __table_args__ = (
        UniqueConstraint(
            "project_id", "judge_id", "assigned_section", "competition_level",
            name="uq_assignment_project_judge_section_level"
        ),
        Index("idx_assignments_edition_level", "edition_id", "competition_level"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "judge_id": self.judge_id,
            "assigned_section": self.assigned_section,
            "status": self.status,
            "score": self.score,
            "score_breakdown": self.score_breakdown,
            "comments": self.comments,
            "recommendations": self.recommendations,
            "is_archived": bool(self.is_archived),
            "competition_level": self.competition_level,
            "edition_id": self.edition_id,
        }
