"""
Tests for team records, area-stage parsing and snapshot lookups.
"""

import json

import pytest

from stagescore.engine.errors import ScoreValidationError
from stagescore.engine.validation import validate_score
from stagescore.models.enums import Scope
from stagescore.models.results import BatchResult, ResultValues
from stagescore.models.team import AreaStageInfo, Team
from stagescore.utils.misc_utils import chunked, format_score, score_text

from conftest import make_snapshot, make_team


class TestAreaStageInfo:
    """The area blob is parsed defensively and never raises."""

    @pytest.mark.parametrize("raw", ["{oops", "[1, 2]", "42", "null", "", None, "   "])
    def test_malformed_becomes_empty(self, raw):
        info = AreaStageInfo.parse(raw)
        assert info.score == 0
        assert info.rank == ""
        assert info.medal == ""

    def test_non_numeric_score_counts_as_unscored(self):
        info = AreaStageInfo.parse('{"score": "n/a", "rank": "4"}')
        assert info.score == 0
        assert info.rank == "4"

    def test_json_string(self):
        info = AreaStageInfo.parse('{"score": "77.5", "rank": 2, "medal": "Silver", "name": "Area Team"}')
        assert info.score == 77.5
        assert info.rank == "2"
        assert info.medal == "Silver"

    def test_serialize_keeps_extra_fields(self):
        info = AreaStageInfo.parse({"score": 90, "rank": "1", "note": "finalist"})
        data = json.loads(info.serialize())
        assert data == {"score": 90, "rank": "1", "medal": "", "note": "finalist"}


class TestTeam:
    def test_aliases_and_coercion(self):
        team = Team.model_validate(make_team("T1", score="not a number", rank=3))
        assert team.team_id == "T1"
        assert team.score == 0
        assert team.rank == "3"

    def test_malformed_stage_info_is_not_fatal(self):
        team = Team.model_validate(make_team("T1", stageInfo="{broken"))
        assert team.stage_info.score == 0

    def test_scope_values_cluster(self):
        team = Team.model_validate(make_team("T1", score=85.0, rank="1", medalOverride="Gold", flag="TRUE"))
        assert team.scope_values(Scope.CLUSTER) == ResultValues(score="85", rank="1", medal="Gold", flag="TRUE")

    def test_scope_values_area_has_no_flag(self):
        team = Team.model_validate(
            make_team("T1", flag="TRUE", stageInfo='{"score": -1, "rank": "", "medal": ""}')
        )
        assert team.scope_values(Scope.AREA) == ResultValues(score="-1")

    def test_unscored_renders_empty(self):
        team = Team.model_validate(make_team("T1", score=0))
        assert team.scope_values(Scope.CLUSTER).score == ""

    def test_area_eligibility(self):
        assert Team.model_validate(make_team("T1", stageStatus="Area")).area_eligible
        assert Team.model_validate(make_team("T2", flag="true")).area_eligible
        assert not Team.model_validate(make_team("T3")).area_eligible


class TestSnapshot:
    def test_cluster_resolved_through_school(self, snapshot):
        assert snapshot.cluster_of(snapshot.team("T1")) == "C1"
        assert snapshot.cluster_of(snapshot.team("T5")) == "C2"
        assert snapshot.cluster_of(snapshot.team("T7")) is None

    def test_school_matched_by_name(self):
        snapshot = make_snapshot([make_team("T1", school_id="Lakeside School")])
        team = snapshot.team("T1")
        assert snapshot.cluster_of(team) == "C2"
        assert snapshot.school_name(team) == "Lakeside School"

    def test_unknown_school_and_activity_fall_back_to_ids(self):
        snapshot = make_snapshot([make_team("T1", school_id="S9", activityId="A9")])
        team = snapshot.team("T1")
        assert snapshot.cluster_of(team) is None
        assert snapshot.school_name(team) == "S9"
        assert snapshot.activity_name(team) == "A9"


class TestValidateScore:
    @pytest.mark.parametrize("value", ["0", "100", "-1", "55.5", 42])
    def test_accepts_domain(self, value):
        validate_score(value)

    @pytest.mark.parametrize("value", ["", "  ", None])
    def test_empty_means_unscored(self, value):
        assert validate_score(value) is None

    @pytest.mark.parametrize("value", ["101", "-0.5", "-2", "abc", "nan"])
    def test_rejects_out_of_range(self, value):
        with pytest.raises(ScoreValidationError):
            validate_score(value)


class TestHelpers:
    def test_format_score(self):
        assert format_score(85.0) == "85"
        assert format_score(72.5) == "72.5"
        assert format_score(None) == ""

    def test_score_text(self):
        assert score_text(0) == ""
        assert score_text(-1) == "-1"
        assert score_text(64) == "64"

    def test_chunked(self):
        assert list(chunked(list(range(7)), 5)) == [[0, 1, 2, 3, 4], [5, 6]]
        with pytest.raises(ValueError):
            list(chunked([1], 0))

    def test_batch_result_status(self):
        assert BatchResult(attempted=5, succeeded=5).status == "success"
        assert BatchResult(attempted=5, succeeded=3).status == "partial"
        assert BatchResult(attempted=5, succeeded=0).status == "failed"
        assert BatchResult(attempted=5, succeeded=3).summary() == "3 of 5 succeeded"
