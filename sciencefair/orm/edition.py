"""
sciencefair/orm/edition.py
Yearly competition edition. Every project, assignment and setting is
isolated per edition.
"""
from sqlalchemy import Column, String, Integer, Boolean

from sciencefair.orm.base import BaseModel


class Edition(BaseModel):
    __tablename__ = "editions"

    name = Column(String(200), nullable=False)
    year = Column(Integer, nullable=False, index=True)
    is_active = Column(Boolean, default=False, nullable=False, index=True)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "year": self.year,
            "is_active": self.is_active,
        }
