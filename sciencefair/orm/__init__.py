from .base import Base, BaseModel

# Competition structure
from .competition import CompetitionLevel, JudgingSection, AssignmentStatus
from .edition import Edition
from .project import Project
from .judge_assignment import JudgeAssignment

# People and governance
from .user import User, UserRole
from .setting import Setting
from .audit_log import AuditLog
