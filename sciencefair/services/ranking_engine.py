"""
sciencefair/services/ranking_engine.py
Category ranking, points and geographic/school leaderboards

Ranking is two-stage:
1. Projects are ranked within their category by total score and earn
   points (4/3/2/1 for ranks 1-4, nothing below).
2. Points are summed per school, zone, sub-county, county and region and
   those entities are ranked by their totals.

Tie rule (both stages): an item equal to the item before it shares that
item's rank; any other item takes index + 1. Totals [90, 85, 85, 70]
rank [1, 2, 2, 4].
"""
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

from sciencefair.services.score_aggregator import ScoringContext

logger = logging.getLogger(__name__)

# Ranks that earn points; points = POINTS_BASE - rank
POINTS_RANK_CUTOFF = 4
POINTS_BASE = 5


@dataclass
class ProjectWithRank:
    project: Any
    total_score: float
    category_rank: int
    points: int

    @property
    def id(self) -> int:
        return self.project.id

    def to_dict(self) -> Dict[str, Any]:
        data = self.project.to_dict() if hasattr(self.project, "to_dict") else {"id": self.project.id}
        data.update({
            "total_score": self.total_score,
            "category_rank": self.category_rank,
            "points": self.points,
        })
        return data


@dataclass
class RankedEntity:
    name: str
    total_points: int
    rank: int
    parent: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "total_points": self.total_points,
            "rank": self.rank,
            "parent": self.parent,
        }


@dataclass
class RankingData:
    projects_with_points: List[ProjectWithRank] = field(default_factory=list)
    school_ranking: List[RankedEntity] = field(default_factory=list)
    region_ranking: List[RankedEntity] = field(default_factory=list)
    # Keyed by parent entity
    zone_ranking: Dict[str, List[RankedEntity]] = field(default_factory=dict)
    sub_county_ranking: Dict[str, List[RankedEntity]] = field(default_factory=dict)
    county_ranking: Dict[str, List[RankedEntity]] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        def grouped(groups):
            return {parent: [e.to_dict() for e in entities] for parent, entities in groups.items()}

        return {
            "projects_with_points": [p.to_dict() for p in self.projects_with_points],
            "school_ranking": [e.to_dict() for e in self.school_ranking],
            "region_ranking": [e.to_dict() for e in self.region_ranking],
            "zone_ranking": grouped(self.zone_ranking),
            "sub_county_ranking": grouped(self.sub_county_ranking),
            "county_ranking": grouped(self.county_ranking),
        }


def points_for_rank(rank: int) -> int:
    return POINTS_BASE - rank if rank <= POINTS_RANK_CUTOFF else 0


def assign_ranks(values: Sequence[float]) -> List[int]:
    """
    Ranks for values already sorted descending.

    An equal neighbour inherits the previous rank; every other value takes
    its index + 1, so ranks after a tie block skip.
    """
    ranks: List[int] = []
    for index, value in enumerate(values):
        if index > 0 and values[index - 1] == value:
            ranks.append(ranks[index - 1])
        else:
            ranks.append(index + 1)
    return ranks


def rank_categories(projects: Sequence, level, context: ScoringContext) -> List[ProjectWithRank]:
    """Rank fully judged projects within each category and award points."""
    by_category: Dict[str, List[tuple]] = defaultdict(list)
    for project in projects:
        scores = context.compute_scores(project.id, level)
        if not scores.is_fully_judged:
            continue
        by_category[project.category].append((project, scores.total_score))

    ranked: List[ProjectWithRank] = []
    for category, entries in by_category.items():
        # sort is stable: equal totals keep input order
        entries.sort(key=lambda entry: entry[1], reverse=True)
        ranks = assign_ranks([total for _, total in entries])
        for (project, total), rank in zip(entries, ranks):
            ranked.append(ProjectWithRank(
                project=project,
                total_score=total,
                category_rank=rank,
                points=points_for_rank(rank),
            ))
    return ranked


def rank_entities(
    ranked_projects: Sequence[ProjectWithRank],
    name_of: Callable[[Any], Optional[str]],
    parent_of: Optional[Callable[[Any], Optional[str]]] = None
) -> List[RankedEntity]:
    """
    Sum points per entity name and rank entities by their totals.

    Projects without an entity name are skipped. The parent of an entity is
    taken from the last of its projects seen.
    """
    totals: Dict[str, int] = {}
    parents: Dict[str, Optional[str]] = {}
    for ranked in ranked_projects:
        name = name_of(ranked.project)
        if not name:
            continue
        totals[name] = totals.get(name, 0) + ranked.points
        if parent_of is not None:
            parents[name] = parent_of(ranked.project)

    ordered = sorted(totals.items(), key=lambda item: item[1], reverse=True)
    ranks = assign_ranks([points for _, points in ordered])
    return [
        RankedEntity(name=name, total_points=points, rank=rank, parent=parents.get(name))
        for (name, points), rank in zip(ordered, ranks)
    ]


def group_by_parent(entities: Sequence[RankedEntity]) -> Dict[str, List[RankedEntity]]:
    grouped: Dict[str, List[RankedEntity]] = {}
    for entity in entities:
        if entity.parent:
            grouped.setdefault(entity.parent, []).append(entity)
    return grouped


def rank_projects(projects: Sequence, level, context: ScoringContext) -> RankingData:
    """
    Compute category ranks, points and every leaderboard for a set of projects.

    Args:
        projects: Projects to rank (usually those in one admin's scope)
        level: Competition level the scores are read at
        context: Snapshot the scores are computed from

    Returns:
        RankingData; never cached, recompute after any write.
    """
    ranked = rank_categories(projects, level, context)

    data = RankingData(
        projects_with_points=ranked,
        school_ranking=rank_entities(ranked, lambda p: p.school),
        region_ranking=rank_entities(ranked, lambda p: p.region),
        zone_ranking=group_by_parent(
            rank_entities(ranked, lambda p: p.zone, lambda p: p.sub_county)
        ),
        sub_county_ranking=group_by_parent(
            rank_entities(ranked, lambda p: p.sub_county, lambda p: p.county)
        ),
        county_ranking=group_by_parent(
            rank_entities(ranked, lambda p: p.county, lambda p: p.region)
        ),
    )

    logger.debug(f"Ranked {len(ranked)} of {len(projects)} projects at {getattr(level, 'value', level)}")
    return data
