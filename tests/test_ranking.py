"""
Tests for rank computation and the auto-rank batch action.
"""

from stagescore.engine.ranking import AREA_PARTITION, RankComputer, compute_ranks, partition_key
from stagescore.engine.selection import scope_teams
from stagescore.models.enums import Scope

from conftest import make_snapshot, make_team


class TestComputeRanks:
    def test_ties_share_rank_and_skip(self):
        ranks = compute_ranks({"a": 90, "b": 90, "c": 80, "d": 70})
        assert [ranks[k] for k in "abcd"] == ["1", "1", "3", "4"]

    def test_input_order_does_not_matter(self):
        ranks = compute_ranks({"d": 70, "c": 80, "b": 90, "a": 90})
        assert ranks == {"a": "1", "b": "1", "c": "3", "d": "4"}

    def test_three_way_tie(self):
        ranks = compute_ranks({"a": 50, "b": 75, "c": 75, "d": 75, "e": 60})
        assert ranks == {"b": "1", "c": "1", "d": "1", "e": "4", "a": "5"}

    def test_unscored_and_absent_are_not_ranked(self):
        ranks = compute_ranks({"a": 80, "b": 0, "c": -1, "d": 60})
        assert ranks == {"a": "1", "d": "2"}

    def test_absent_excluded_even_when_others_unscored(self):
        assert compute_ranks({"a": -1, "b": 0, "c": 0}) == {}

    def test_decimal_scores(self):
        assert compute_ranks({"a": 80.5, "b": 80.25}) == {"a": "1", "b": "2"}


class TestPartitions:
    def test_cluster_scope_uses_cluster_of_school(self, snapshot):
        assert partition_key(snapshot.team("T1"), Scope.CLUSTER, snapshot) == "C1"
        assert partition_key(snapshot.team("T5"), Scope.CLUSTER, snapshot) == "C2"
        assert partition_key(snapshot.team("T7"), Scope.CLUSTER, snapshot) is None

    def test_area_scope_is_one_partition(self, snapshot):
        keys = {partition_key(t, Scope.AREA, snapshot) for t in snapshot.teams}
        assert keys == {AREA_PARTITION}

    def test_clusters_ranked_independently(self, snapshot, overlay):
        teams = scope_teams(snapshot, "A1", Scope.CLUSTER)
        ranks = RankComputer(overlay).compute(teams, Scope.CLUSTER, snapshot)
        assert ranks == {"T1": "1", "T2": "1", "T3": "3", "T4": "4", "T5": "1", "T7": "1"}

    def test_edited_scores_take_precedence(self, snapshot, overlay):
        overlay.set("T4", "score", "95", snapshot.team("T4").scope_values(Scope.CLUSTER))
        teams = scope_teams(snapshot, "A1", Scope.CLUSTER)
        ranks = RankComputer(overlay).compute(teams, Scope.CLUSTER, snapshot)
        assert ranks["T4"] == "1"
        assert ranks["T1"] == "2"
        assert ranks["T3"] == "4"

    def test_edit_to_absent_removes_rank(self, snapshot, overlay):
        overlay.set("T3", "score", "-1", snapshot.team("T3").scope_values(Scope.CLUSTER))
        teams = scope_teams(snapshot, "A1", Scope.CLUSTER)
        ranks = RankComputer(overlay).compute(teams, Scope.CLUSTER, snapshot)
        assert "T3" not in ranks
        assert "T8" not in ranks
        assert ranks["T4"] == "3"


class TestAutoRank:
    def test_creates_dirty_rank_edits(self, snapshot, overlay):
        teams = scope_teams(snapshot, "A1", Scope.CLUSTER)
        changed = RankComputer(overlay).auto_rank(teams, Scope.CLUSTER, snapshot)
        assert sorted(changed) == ["T1", "T2", "T3", "T4", "T5", "T7"]
        assert overlay.get("T3").rank == "3"
        assert overlay.get("T3").score == "80"
        assert overlay.get("T3").dirty

    def test_second_run_is_a_no_op(self, snapshot, overlay):
        teams = scope_teams(snapshot, "A1", Scope.CLUSTER)
        computer = RankComputer(overlay)
        computer.auto_rank(teams, Scope.CLUSTER, snapshot)
        before = {tid: overlay.get(tid).model_copy() for tid in overlay}
        assert computer.auto_rank(teams, Scope.CLUSTER, snapshot) == []
        assert {tid: overlay.get(tid) for tid in overlay} == before

    def test_stored_rank_already_correct_is_left_alone(self, overlay):
        snapshot = make_snapshot([make_team("A", score=90, rank="1"), make_team("B", score=80, rank="")])
        changed = RankComputer(overlay).auto_rank(snapshot.teams, Scope.CLUSTER, snapshot)
        assert changed == ["B"]
        assert overlay.get("A") is None

    def test_manual_rank_equal_to_computed_is_not_rewritten(self, overlay):
        snapshot = make_snapshot([make_team("A", score=90), make_team("B", score=80)])
        overlay.set("A", "rank", "1", snapshot.team("A").scope_values(Scope.CLUSTER))
        changed = RankComputer(overlay).auto_rank(snapshot.teams, Scope.CLUSTER, snapshot)
        assert changed == ["B"]

    def test_differing_edit_and_stored_rank_is_overwritten(self, overlay):
        snapshot = make_snapshot([make_team("A", score=90, rank="3")])
        overlay.set("A", "rank", "2", snapshot.team("A").scope_values(Scope.CLUSTER))
        changed = RankComputer(overlay).auto_rank(snapshot.teams, Scope.CLUSTER, snapshot)
        assert changed == ["A"]
        assert overlay.get("A").rank == "1"

    def test_area_scope_uses_area_scores(self, overlay):
        snapshot = make_snapshot(
            [
                make_team("A", "S1", 95, stageStatus="Area", stageInfo='{"score": 70}'),
                make_team("B", "S3", 60, flag="TRUE", stageInfo='{"score": 85}'),
            ]
        )
        teams = scope_teams(snapshot, "A1", Scope.AREA)
        RankComputer(overlay).auto_rank(teams, Scope.AREA, snapshot)
        assert overlay.get("B").rank == "1"
        assert overlay.get("A").rank == "2"
        assert overlay.get("A").score == "70"
