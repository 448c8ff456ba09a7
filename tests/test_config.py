import pytest
from pydantic import ValidationError

from stpa_coverage.config import DEFAULT_ANALYSIS_TYPES, CoverageConfig, EngineSettings, EnumerationConfig


def test_settings_load_defaults() -> None:
    settings = EngineSettings()
    assert settings.logging.level
    assert settings.enumeration.max_combination_size == 3
    assert settings.enumeration.include_co_occurrence_type
    assert settings.coverage.analysis_types == DEFAULT_ANALYSIS_TYPES
    assert settings.risk.version == "1"


def test_settings_from_toml(tmp_path) -> None:
    path = tmp_path / "settings.toml"
    path.write_text(
        "[enumeration]\n"
        "max_combination_size = 2\n"
        "include_temporal_ordering_type = false\n"
        "\n"
        "[coverage]\n"
        'analysis_types = ["not-provided", "too-late"]\n'
        "\n"
        "[logging]\n"
        "json_format = false\n"
    )
    settings = EngineSettings.from_toml(path)
    assert settings.enumeration.max_combination_size == 2
    assert not settings.enumeration.include_temporal_ordering_type
    assert settings.coverage.analysis_types == ("not-provided", "too-late")
    assert not settings.logging.json_format


def test_settings_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("STPA_ENUMERATION__MAX_COMBINATION_SIZE", "4")
    monkeypatch.setenv("STPA_RISK__VERSION", "2")
    settings = EngineSettings()
    assert settings.enumeration.max_combination_size == 4
    assert settings.risk.version == "2"


def test_max_combination_size_must_be_at_least_two() -> None:
    with pytest.raises(ValidationError):
        EnumerationConfig(max_combination_size=1)


def test_analysis_types_must_be_unique_and_non_empty() -> None:
    with pytest.raises(ValidationError):
        CoverageConfig(analysis_types=("too-late", "too-late"))
    with pytest.raises(ValidationError):
        CoverageConfig(analysis_types=())


def test_fingerprint_tracks_result_affecting_settings() -> None:
    base = EngineSettings()
    assert base.fingerprint() == EngineSettings().fingerprint()
    changed = EngineSettings(enumeration=EnumerationConfig(max_combination_size=2))
    assert changed.fingerprint() != base.fingerprint()


def test_interchangeable_groups_must_be_disjoint_pairs_or_larger() -> None:
    config = EnumerationConfig(interchangeable_groups=(("p1", "p2"), ("m1", "m2", "m3")))
    assert config.interchangeable_groups[1] == ("m1", "m2", "m3")
    with pytest.raises(ValidationError):
        EnumerationConfig(interchangeable_groups=(("p1",),))
    with pytest.raises(ValidationError):
        EnumerationConfig(interchangeable_groups=(("p1", "p2"), ("p2", "p3")))
