"""
sciencefair/orm/audit_log.py
Append-only audit trail of administrative actions.
"""
from datetime import datetime

from sqlalchemy import Column, String, Integer, Boolean, DateTime, Text, JSON, ForeignKey

from sciencefair.orm.base import BaseModel


class AuditLog(BaseModel):
    """
    Audit entry for an administrative action.

    Attributes:
        performing_admin_id / performing_admin_name: Actor
        target_user_id / target_user_name: Subject of the action
        action: Human-readable description
        notified_admin_role: Role of the admins who should see this entry
        scope: Jurisdiction of the action {region, county, sub_county}
        edition_id: Edition the action applies to
        timestamp: When the action happened
    """
    __tablename__ = "audit_logs"

    performing_admin_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    performing_admin_name = Column(String(200), nullable=False)
    target_user_id = Column(Integer, nullable=True)
    target_user_name = Column(String(200), nullable=True)
    action = Column(Text, nullable=False)
    notified_admin_role = Column(String(30), nullable=True)
    scope = Column(JSON, nullable=True)
    is_read = Column(Boolean, nullable=False, default=False)
    edition_id = Column(Integer, ForeignKey("editions.id", ondelete="CASCADE"), nullable=True, index=True)
    timestamp = Column(DateTime, nullable=False, default=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
            "performing_admin_id": self.performing_admin_id,
            "performing_admin_name": self.performing_admin_name,
            "target_user_id": self.target_user_id,
            "target_user_name": self.target_user_name,
            "action": self.action,
            "is_read": self.is_read,
            "notified_admin_role": self.notified_admin_role,
            "scope": self.scope,
            "edition_id": self.edition_id,
        }
