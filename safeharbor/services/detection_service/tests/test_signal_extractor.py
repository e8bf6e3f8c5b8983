"""Tests for keyword signal extraction (stage 1)."""
import pytest

from safeharbor.shared.models import Severity
from safeharbor.services.detection_service.catalog import (
    DEFAULT_CATALOG,
    IndicatorCatalog,
    IndicatorCategory,
    IndicatorDefinition,
    IndicatorResponse,
)
from safeharbor.services.detection_service.config import RiskTunables
from safeharbor.services.detection_service.signal_extractor import (
    SignalExtractor,
    score_to_level,
)


@pytest.fixture
def extractor():
    return SignalExtractor()


class TestScoreToLevel:
    @pytest.mark.parametrize("score,expected", [
        (95, Severity.CRITICAL),
        (90, Severity.CRITICAL),
        (89, Severity.HIGH),
        (70, Severity.HIGH),
        (50, Severity.MEDIUM),
        (0, Severity.NONE),
    ])
    def test_bands(self, score, expected):
        assert score_to_level(score, RiskTunables()) == expected

    def test_low_score_uses_fallback(self):
        assert score_to_level(45, RiskTunables(), fallback=Severity.MEDIUM) == Severity.MEDIUM


class TestSignalExtractor:
    """Every suicide-category keyword must yield CRITICAL."""

    @pytest.mark.parametrize("message", [
        "I want to kill myself",
        "I've been thinking about suicide",
        "feeling suicidal tonight",
        "I just want to end it all",
        "life is not worth living",
    ])
    def test_suicide_keywords_are_critical(self, extractor, message):
        result = extractor.extract(message)

        assert result.level == Severity.CRITICAL
        assert "suicide" in result.matched_categories
        assert result.risk_score >= 90

    def test_case_insensitive(self, extractor):
        assert extractor.extract("I WANT TO KILL MYSELF").level == Severity.CRITICAL

    def test_self_harm_is_high(self, extractor):
        result = extractor.extract("I started cutting again")

        assert result.level == Severity.HIGH
        assert result.risk_score == 75
        assert result.indicators == ("cutting",)

    def test_low_threshold_keeps_indicator_severity(self, extractor):
        result = extractor.extract("I feel so depressed")

        assert result.risk_score == 45
        assert result.level == Severity.MEDIUM

    def test_highest_threshold_wins(self, extractor):
        result = extractor.extract("I feel hopeless and took too many pills")

        assert result.risk_score == 95
        assert result.level == Severity.CRITICAL
        assert set(result.matched_categories) == {"emergency", "distress"}

    def test_confidence_tracks_score(self, extractor):
        result = extractor.extract("everything feels hopeless")
        assert result.confidence == pytest.approx(0.7)

    @pytest.mark.parametrize("message", ["", "   ", None, "Had a nice lunch today", 42, b"kill myself"])
    def test_no_match_is_none(self, extractor, message):
        result = extractor.extract(message)

        assert result.level == Severity.NONE
        assert result.confidence == 0.0
        assert result.indicators == ()

    def test_recommended_actions_include_immediate_action(self, extractor):
        result = extractor.extract("I want to kill myself")
        assert "Call emergency services immediately" in result.recommended_actions

    def test_custom_catalog_is_used(self):
        catalog = IndicatorCatalog(
            version="test",
            indicators=(
                IndicatorDefinition(
                    keywords=frozenset({"Blue Whale"}),
                    severity=Severity.HIGH,
                    category=IndicatorCategory.SELF_HARM,
                    threshold=72,
                    response=IndicatorResponse(immediate_action="Talk to someone"),
                ),
            ),
        )
        result = SignalExtractor(catalog).extract("they sent me the blue whale game")

        assert result.level == Severity.HIGH
        assert result.indicators == ("blue whale",)


class TestIndicatorCatalog:
    def test_default_catalog_has_seven_indicators(self):
        assert len(DEFAULT_CATALOG) == 7
        assert DEFAULT_CATALOG.version

    def test_definition_rejects_bad_threshold(self):
        with pytest.raises(ValueError):
            IndicatorDefinition(
                keywords=frozenset({"x"}),
                severity=Severity.LOW,
                category=IndicatorCategory.DISTRESS,
                threshold=150,
                response=IndicatorResponse(immediate_action="noop"),
            )

    def test_definition_rejects_empty_keywords(self):
        with pytest.raises(ValueError):
            IndicatorDefinition(
                keywords=frozenset(),
                severity=Severity.LOW,
                category=IndicatorCategory.DISTRESS,
                threshold=10,
                response=IndicatorResponse(immediate_action="noop"),
            )

    def test_catalog_is_immutable(self):
        with pytest.raises(Exception):
            DEFAULT_CATALOG.version = "tampered"
