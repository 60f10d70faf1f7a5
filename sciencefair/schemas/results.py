"""
sciencefair/schemas/results.py
Request and response models for the results API.
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from sciencefair.orm.competition import CompetitionLevel, JudgingSection


class LevelRequest(BaseModel):
    level: CompetitionLevel


class EscalationRequest(BaseModel):
    project_id: int
    judge_id: int
    section: JudgingSection
    category: str = Field(..., min_length=1)
    level: CompetitionLevel


class OperationResponse(BaseModel):
    success: bool
    message: str
    warnings: List[str] = []
    promoted: int = 0
    eliminated: int = 0
    archived: int = 0
    roles_reset: int = 0
    roles_restored: int = 0
    projects_restored: int = 0
    unarchived: int = 0


class ProjectScoresResponse(BaseModel):
    project_id: int
    level: str
    score_a: Optional[float]
    score_b: Optional[float]
    score_c: Optional[float]
    score_bc: Optional[float]
    total_score: float
    is_fully_judged: bool
    needs_arbitration: bool
    judging_details: List[Dict[str, Any]] = []


class JudgingProgressResponse(BaseModel):
    project_id: int
    level: str
    is_section_a_complete: bool
    is_section_b_complete: bool
    percentage: float
    status_text: str


class CategoryStatsResponse(BaseModel):
    category: str
    level: str
    min: Optional[float] = None
    max: Optional[float] = None
    average: Optional[float] = None
    count: int = 0


class RankedEntityResponse(BaseModel):
    name: str
    total_points: int
    rank: int
    parent: Optional[str] = None


class RankingsResponse(BaseModel):
    edition_id: int
    level: str
    projects_with_points: List[Dict[str, Any]]
    school_ranking: List[RankedEntityResponse]
    region_ranking: List[RankedEntityResponse]
    zone_ranking: Dict[str, List[RankedEntityResponse]]
    sub_county_ranking: Dict[str, List[RankedEntityResponse]]
    county_ranking: Dict[str, List[RankedEntityResponse]]


class RollbackEligibilityResponse(BaseModel):
    edition_id: int
    level: str
    rollback_possible: bool
