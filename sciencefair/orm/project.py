"""
sciencefair/orm/project.py
Competition entry registered by a patron.

The geographic tuple (region, county, sub_county, zone) is fixed at
registration. current_level and is_eliminated are only changed by the
level publisher (publish advances, rollback restores).
"""
from sqlalchemy import Column, String, Integer, Boolean, ForeignKey, JSON, Index

from sciencefair.orm.base import BaseModel
from sciencefair.orm.competition import CompetitionLevel


class Project(BaseModel):
    __tablename__ = "projects"

    title = Column(String(300), nullable=False)
    category = Column(String(120), nullable=False, index=True)

    # Geography
    region = Column(String(120), nullable=True)
    county = Column(String(120), nullable=True)
    sub_county = Column(String(120), nullable=True)
    zone = Column(String(120), nullable=True)
    school = Column(String(200), nullable=True)

    students = Column(JSON, nullable=False, default=list)
    patron_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )

    # Promotion state
    current_level = Column(
        String(20),
        nullable=False,
        default=CompetitionLevel.SUB_COUNTY.value
    )
    is_eliminated = Column(Boolean, nullable=False, default=False)

    edition_id = Column(
        Integer,
        ForeignKey("editions.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    __table_args__ = (
        Index("idx_projects_edition_level", "edition_id", "current_level"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "category": self.category,
            "region": self.region,
            "county": self.county,
            "sub_county": self.sub_county,
            "zone": self.zone,
            "school": self.school,
            "students": list(self.students or []),
            "patron_id": self.patron_id,
            "current_level": self.current_level,
            "is_eliminated": bool(self.is_eliminated),
            "edition_id": self.edition_id,
        }
