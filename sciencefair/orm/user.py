"""
sciencefair/orm/user.py
Portal user: administrators, judges, coordinators and patrons.

A user may hold several roles at once; current_role is the one they are
acting in. Coordinator status between rounds is read from roles; during a
round it is derived from the assignment batch (see assignment_selector).
"""
from enum import Enum

from sqlalchemy import Column, String, Boolean, JSON

from sciencefair.orm.base import BaseModel


class UserRole(str, Enum):
    SUPER_ADMIN = "Super Admin"
    NATIONAL_ADMIN = "National Admin"
    REGIONAL_ADMIN = "Regional Admin"
    COUNTY_ADMIN = "County Admin"
    SUB_COUNTY_ADMIN = "Sub-County Admin"
    JUDGE = "Judge"
    COORDINATOR = "Coordinator"
    PATRON = "Patron"


ADMIN_ROLES = [
    UserRole.SUPER_ADMIN,
    UserRole.NATIONAL_ADMIN,
    UserRole.REGIONAL_ADMIN,
    UserRole.COUNTY_ADMIN,
    UserRole.SUB_COUNTY_ADMIN,
]


class User(BaseModel):
    __tablename__ = "users"

    name = Column(String(200), nullable=False)
    email = Column(String(255), nullable=False, unique=True, index=True)
    is_active = Column(Boolean, nullable=False, default=True)

    roles = Column(JSON, nullable=False, default=list)
    current_role = Column(String(30), nullable=False, default=UserRole.JUDGE.value)
    coordinated_category = Column(String(120), nullable=True)

    # Work jurisdiction (admins)
    region = Column(String(120), nullable=True)
    county = Column(String(120), nullable=True)
    sub_county = Column(String(120), nullable=True)

    @property
    def is_admin(self) -> bool:
        return self.current_role in [r.value for r in ADMIN_ROLES]

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "roles": list(self.roles or []),
            "current_role": self.current_role,
            "coordinated_category": self.coordinated_category,
            "region": self.region,
            "county": self.county,
            "sub_county": self.sub_county,
        }
