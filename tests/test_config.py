"""Tests for configuration models and lookup tables."""

from pathlib import Path

from mm_plans.config import (
    CMS_CRITERIA,
    CRITERIA_RECOMMENDATIONS,
    OTHER_REGION,
    REGIONS,
    STATE_NAMES,
    STATES_BY_REGION,
    PipelineConfig,
    get_region,
)


class TestPipelineConfig:
    def test_defaults(self) -> None:
        config = PipelineConfig()
        assert config.seed == 42
        assert config.output_dir == Path("output")
        assert config.fetch_timeout_seconds == 15.0
        assert config.cache.ttl_days == 7.0
        assert [s.kind for s in config.sources] == ["cms_api", "sample"]

    def test_json_round_trip(self) -> None:
        config = PipelineConfig(seed=7, sample_states=["OH"])
        restored = PipelineConfig.model_validate_json(config.model_dump_json())
        assert restored == config

    def test_unseeded(self) -> None:
        assert PipelineConfig(seed=None).seed is None


class TestLookupTables:
    def test_twelve_criteria(self) -> None:
        assert len(CMS_CRITERIA) == 12
        assert len(set(CMS_CRITERIA)) == 12

    def test_every_criterion_has_recommendations(self) -> None:
        assert set(CRITERIA_RECOMMENDATIONS) == set(CMS_CRITERIA)

    def test_regions_are_disjoint(self) -> None:
        codes = [code for states in STATES_BY_REGION.values() for code in states]
        assert len(codes) == len(set(codes))
        assert OTHER_REGION not in REGIONS

    def test_every_state_has_a_region(self) -> None:
        for code in STATE_NAMES.values():
            assert get_region(code) in REGIONS


class TestGetRegion:
    def test_code(self) -> None:
        assert get_region("CA") == "West"
        assert get_region("TX") == "Southwest"
        assert get_region("NY") == "Northeast"

    def test_lowercase_code(self) -> None:
        assert get_region("fl") == "Southeast"

    def test_full_name(self) -> None:
        assert get_region("Ohio") == "Midwest"
        assert get_region("district of columbia") == "Northeast"

    def test_unmapped(self) -> None:
        assert get_region("PR") == OTHER_REGION
        assert get_region("Unknown") == OTHER_REGION
        assert get_region("") == OTHER_REGION
