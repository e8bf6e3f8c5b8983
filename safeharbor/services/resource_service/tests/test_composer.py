"""Tests for crisis response composition."""
import pytest

from safeharbor.shared.models import Severity
from safeharbor.services.detection_service.pipeline import CrisisDetectionPipeline
from safeharbor.services.resource_service.composer import (
    CRITICAL_MESSAGE,
    HIGH_MESSAGE,
    SUPPORTIVE_MESSAGE,
    compose_intervention,
    generate_crisis_response,
)


@pytest.fixture(scope="module")
def pipeline():
    return CrisisDetectionPipeline()


class TestGenerateCrisisResponse:
    def test_critical_mentions_emergency_services(self, pipeline):
        message = generate_crisis_response(pipeline.assess_text("I want to kill myself"))

        assert message.startswith(CRITICAL_MESSAGE)
        assert "emergency services" in message
        assert "988" in message

    def test_high_is_serious(self, pipeline):
        message = generate_crisis_response(pipeline.assess_text("I feel hopeless"))
        assert message.startswith(HIGH_MESSAGE)
        assert "serious" in message

    @pytest.mark.parametrize("text", ["I feel so depressed", "hello"])
    def test_lower_levels_are_supportive(self, pipeline, text):
        message = generate_crisis_response(pipeline.assess_text(text))
        assert message.startswith(SUPPORTIVE_MESSAGE)

    def test_resources_follow_message(self, pipeline):
        message = generate_crisis_response(pipeline.assess_text("hello"), location="NZ")

        assert "Crisis resources:" in message
        assert "1737" in message
        assert "https://988lifeline.org" in message


class TestComposeIntervention:
    def test_only_critical_contacts_emergency(self):
        for level in Severity:
            response = compose_intervention(level)
            assert response.contact_emergency is (level == Severity.CRITICAL)

    def test_triggers_are_echoed(self):
        response = compose_intervention(Severity.HIGH, ["hopeless", "no point"])

        data = response.to_dict()
        assert data["triggers"] == ["hopeless", "no point"]
        assert data["level"] == "HIGH"
        assert data["immediate_action"]

    def test_message_includes_regional_resources(self):
        response = compose_intervention(Severity.MEDIUM, location="CA")
        assert "9-8-8 Suicide Crisis Helpline" in response.message
