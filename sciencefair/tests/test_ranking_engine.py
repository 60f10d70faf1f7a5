"""
Tests for category ranking, points and entity leaderboards.
"""
from sciencefair.services.ranking_engine import assign_ranks, points_for_rank, rank_projects
from sciencefair.services.score_aggregator import ScoringContext
from sciencefair.tests.factories import AssignmentSequence, PART_BC, SUB_COUNTY, make_project, make_user

JUDGES = [make_user(10), make_user(11), make_user(12), make_user(13)]


def judged_context(projects, totals):
    """Context where project i totals totals[i] (half from each section)."""
    seq = AssignmentSequence()
    assignments = []
    for project, total in zip(projects, totals):
        half = total / 2
        assignments += seq.judged(project.id, (half, half), (half, half))
    return ScoringContext(assignments=assignments, projects=projects, users=JUDGES)


class TestRankRules:

    def test_tie_inherits_previous_rank(self):
        assert assign_ranks([90, 85, 85, 70, 60]) == [1, 2, 2, 4, 5]

    def test_three_way_tie(self):
        assert assign_ranks([50, 50, 50, 40]) == [1, 1, 1, 4]

    def test_points(self):
        assert [points_for_rank(r) for r in (1, 2, 3, 4, 5, 9)] == [4, 3, 2, 1, 0, 0]


class TestRankProjects:

    def test_category_ranks_and_points(self):
        projects = [make_project(i) for i in range(1, 6)]
        context = judged_context(projects, [90, 85, 85, 70, 60])

        ranking = rank_projects(projects, SUB_COUNTY, context)

        ranked = {r.id: r for r in ranking.projects_with_points}
        assert [ranked[i].category_rank for i in range(1, 6)] == [1, 2, 2, 4, 5]
        assert [ranked[i].points for i in range(1, 6)] == [4, 3, 3, 1, 0]
        assert ranked[1].total_score == 90

    def test_equal_totals_keep_input_order(self):
        projects = [make_project(1), make_project(2), make_project(3)]
        context = judged_context(projects, [60, 80, 80])

        ranking = rank_projects(projects, SUB_COUNTY, context)

        assert [r.id for r in ranking.projects_with_points] == [2, 3, 1]

    def test_categories_ranked_independently(self):
        projects = [make_project(1), make_project(2, category="Biology")]
        context = judged_context(projects, [50, 40])

        ranking = rank_projects(projects, SUB_COUNTY, context)

        assert all(r.category_rank == 1 for r in ranking.projects_with_points)

    def test_unjudged_projects_are_excluded(self):
        projects = [make_project(1), make_project(2)]
        context = judged_context(projects[:1], [70])
        context = ScoringContext(assignments=context.assignments, projects=projects, users=JUDGES)

        ranking = rank_projects(projects, SUB_COUNTY, context)

        assert [r.id for r in ranking.projects_with_points] == [1]

    def test_project_missing_part_a_is_excluded(self):
        projects = [make_project(1), make_project(2)]
        seq = AssignmentSequence()
        assignments = seq.judged(1, (30, 30), (30, 30)) + [
            seq(2, 12, section=PART_BC, score=45),
            seq(2, 13, section=PART_BC, score=45),
        ]
        context = ScoringContext(assignments=assignments, projects=projects, users=JUDGES)

        ranking = rank_projects(projects, SUB_COUNTY, context)

        assert context.compute_scores(2, SUB_COUNTY).score_a is None
        assert [r.id for r in ranking.projects_with_points] == [1]
        assert ranking.projects_with_points[0].category_rank == 1

    def test_ranking_is_repeatable(self):
        projects = [make_project(i) for i in range(1, 5)]
        context = judged_context(projects, [80, 70, 70, 50])

        first = rank_projects(projects, SUB_COUNTY, context).to_dict()
        second = rank_projects(projects, SUB_COUNTY, context).to_dict()

        assert first == second


class TestEntityRankings:

    def setup_method(self):
        self.projects = [
            make_project(1, school="Alliance High", zone="Zone A", sub_county="Westlands", county="Nairobi", region="Nairobi"),
            make_project(2, school="Alliance High", zone="Zone A", sub_county="Westlands", county="Nairobi", region="Nairobi"),
            make_project(3, school="Moi Forces", zone="Zone B", sub_county="Kisauni", county="Mombasa", region="Coast"),
            make_project(4, school="Starehe", zone="", sub_county="Langata", county="Nairobi", region="Nairobi"),
        ]
        context = judged_context(self.projects, [90, 80, 70, 60])
        self.ranking = rank_projects(self.projects, SUB_COUNTY, context)

    def test_school_ranking(self):
        schools = [(e.name, e.total_points, e.rank) for e in self.ranking.school_ranking]
        assert schools == [("Alliance High", 7, 1), ("Moi Forces", 2, 2), ("Starehe", 1, 3)]

    def test_region_ranking(self):
        regions = [(e.name, e.total_points) for e in self.ranking.region_ranking]
        assert regions == [("Nairobi", 8), ("Coast", 2)]

    def test_zone_ranking_grouped_by_sub_county(self):
        zones = self.ranking.zone_ranking
        # Empty zone names are skipped
        assert set(zones) == {"Westlands", "Kisauni"}
        assert zones["Westlands"][0].name == "Zone A"
        assert zones["Westlands"][0].total_points == 7

    def test_county_and_sub_county_grouping(self):
        assert [e.name for e in self.ranking.county_ranking["Nairobi"]] == ["Nairobi"]
        assert [e.name for e in self.ranking.county_ranking["Coast"]] == ["Mombasa"]
        assert [e.name for e in self.ranking.sub_county_ranking["Nairobi"]] == ["Westlands", "Langata"]
        # Ranks are assigned before grouping
        assert self.ranking.sub_county_ranking["Nairobi"][1].rank == 3
