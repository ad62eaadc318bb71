import pytest

from pixeloffice.config import (
    CRUNCH_THRESHOLD,
    AppConfig,
    AtlassianSettings,
    RuleThresholds,
    TierConfig,
    UnitConfig,
)
from pixeloffice.exceptions import ConfigurationError


def _units(*codes: str) -> list[UnitConfig]:
    return [UnitConfig(code=code, display_name=code) for code in codes]


def test_default_layout_assigns_every_unit_once() -> None:
    config = AppConfig(atlassian=AtlassianSettings())

    assert len(config.unit_ids) == 10
    assert [t.name for t in config.tiers] == ["fast", "medium", "slow"]
    assert config.tier_of("Eng") == "fast"
    assert config.tier_of("OM") == "slow"
    assert config.thresholds.crunch_updates == CRUNCH_THRESHOLD == 15


def test_unit_in_two_tiers_is_rejected() -> None:
    with pytest.raises(ConfigurationError):
        AppConfig(
            units=_units("A", "B"),
            tiers=[
                TierConfig(name="fast", unit_ids=["A", "B"], interval_ms=1000),
                TierConfig(name="slow", unit_ids=["B"], interval_ms=2000),
            ],
        )


def test_non_positive_interval_is_rejected() -> None:
    with pytest.raises(ConfigurationError):
        AppConfig(units=_units("A"), tiers=[TierConfig(name="fast", unit_ids=["A"], interval_ms=0)])


def test_unassigned_and_unknown_units_are_rejected() -> None:
    with pytest.raises(ConfigurationError):
        AppConfig(units=_units("A", "B"), tiers=[TierConfig(name="fast", unit_ids=["A"], interval_ms=10)])
    with pytest.raises(ConfigurationError):
        AppConfig(units=_units("A"), tiers=[TierConfig(name="fast", unit_ids=["A", "C"], interval_ms=10)])


def test_duplicate_codes_are_rejected() -> None:
    with pytest.raises(ConfigurationError):
        AppConfig(units=_units("A", "A"), tiers=[TierConfig(name="fast", unit_ids=["A"], interval_ms=10)])


def test_all_keywords_are_lowercase_and_unique() -> None:
    thresholds = RuleThresholds(blocked_keywords=["Blocked", "incident"], planning_keywords=["INCIDENT"])

    keywords = thresholds.all_keywords()

    assert keywords.count("incident") == 1
    assert "blocked" in keywords
    assert "release" in keywords


def test_atlassian_settings_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CONFLUENCE_URL", "https://example.atlassian.net/wiki/")
    monkeypatch.setenv("CONFLUENCE_USERNAME", "bot@example.com")
    monkeypatch.setenv("CONFLUENCE_API_TOKEN", "token")

    settings = AtlassianSettings.from_env()

    assert settings.base_url == "https://example.atlassian.net"
    assert settings.configured


def test_missing_credentials_are_not_configured(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("CONFLUENCE_URL", raising=False)
    monkeypatch.delenv("CONFLUENCE_API_TOKEN", raising=False)

    assert not AtlassianSettings.from_env().configured
