"""Indicator catalog: the curated crisis indicator taxonomy.

The catalog is versioned configuration. One instance is built at startup
and shared read-only by every detection call; nothing mutates it.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, Iterator, Tuple

from safeharbor.shared.models import Severity


class IndicatorCategory(Enum):
    """What kind of crisis an indicator points to."""
    SUICIDE = "suicide"
    SELF_HARM = "self_harm"
    VIOLENCE = "violence"
    EMERGENCY = "emergency"
    DISTRESS = "distress"


@dataclass(frozen=True)
class IndicatorResponse:
    """Recommended actions attached to an indicator."""
    immediate_action: str
    follow_up: Tuple[str, ...] = ()


@dataclass(frozen=True)
class IndicatorDefinition:
    """A keyword set with its severity, category and score threshold.

    Keywords are stored lower-cased; matching is a case-insensitive
    substring test.
    """
    keywords: FrozenSet[str]
    severity: Severity
    category: IndicatorCategory
    threshold: int
    response: IndicatorResponse

    def __post_init__(self):
        if not self.keywords:
            raise ValueError("Indicator must define at least one keyword")
        if not 0 <= self.threshold <= 100:
            raise ValueError(f"Threshold must be 0-100, got {self.threshold}")
        if self.severity == Severity.NONE:
            raise ValueError("Indicator severity cannot be NONE")
        object.__setattr__(
            self, "keywords", frozenset(k.lower() for k in self.keywords)
        )

    def matched_keywords(self, lowered_text: str) -> Tuple[str, ...]:
        """Keywords occurring in already lower-cased text, sorted."""
        return tuple(sorted(k for k in self.keywords if k in lowered_text))


@dataclass(frozen=True)
class IndicatorCatalog:
    """Immutable, versioned collection of indicator definitions."""
    version: str
    indicators: Tuple[IndicatorDefinition, ...] = field(default_factory=tuple)

    def __post_init__(self):
        object.__setattr__(self, "indicators", tuple(self.indicators))

    def __iter__(self) -> Iterator[IndicatorDefinition]:
        return iter(self.indicators)

    def __len__(self) -> int:
        return len(self.indicators)

    def keyword_count(self) -> int:
        return sum(len(i.keywords) for i in self.indicators)


DEFAULT_CATALOG_VERSION = "2025.10.27"

DEFAULT_CATALOG = IndicatorCatalog(
    version=DEFAULT_CATALOG_VERSION,
    indicators=(
        IndicatorDefinition(
            keywords=frozenset({
                "suicide", "suicidal", "kill myself", "end it all", "not worth living",
            }),
            severity=Severity.CRITICAL,
            category=IndicatorCategory.SUICIDE,
            threshold=90,
            response=IndicatorResponse(
                immediate_action="Call emergency services immediately",
                follow_up=(
                    "Contact crisis hotline: 988 (US) or local emergency services",
                    "Remove access to means of self-harm",
                    "Stay with the person until help arrives",
                ),
            ),
        ),
        IndicatorDefinition(
            keywords=frozenset({"self-harm", "cutting", "burning", "hurting myself"}),
            severity=Severity.HIGH,
            category=IndicatorCategory.SELF_HARM,
            threshold=75,
            response=IndicatorResponse(
                immediate_action="Create a safety plan and remove harmful objects",
                follow_up=(
                    "Contact mental health professional",
                    "Use distraction techniques",
                    "Reach out to trusted support person",
                ),
            ),
        ),
        IndicatorDefinition(
            keywords=frozenset({"overdose", "pills", "poison", "kill myself with"}),
            severity=Severity.CRITICAL,
            category=IndicatorCategory.EMERGENCY,
            threshold=95,
            response=IndicatorResponse(
                immediate_action="Call poison control or emergency services",
                follow_up=(
                    "Follow medical advice from poison control",
                    "Monitor vital signs",
                    "Seek immediate medical attention",
                ),
            ),
        ),
        IndicatorDefinition(
            keywords=frozenset({"hopeless", "no point", "give up", "tired of living"}),
            severity=Severity.HIGH,
            category=IndicatorCategory.DISTRESS,
            threshold=70,
            response=IndicatorResponse(
                immediate_action="Validate feelings and encourage professional help",
                follow_up=(
                    "Contact therapist or counselor",
                    "Consider hospitalization if severe",
                    "Build support network",
                ),
            ),
        ),
        IndicatorDefinition(
            keywords=frozenset({"panic attack", "can't breathe", "heart racing", "dying"}),
            severity=Severity.MEDIUM,
            category=IndicatorCategory.EMERGENCY,
            threshold=50,
            response=IndicatorResponse(
                immediate_action="Practice grounding techniques",
                follow_up=(
                    "Use 4-7-8 breathing method",
                    "Focus on present moment",
                    "Contact healthcare provider if persistent",
                ),
            ),
        ),
        IndicatorDefinition(
            keywords=frozenset({"depressed", "worthless", "failure", "hate myself"}),
            severity=Severity.MEDIUM,
            category=IndicatorCategory.DISTRESS,
            threshold=45,
            response=IndicatorResponse(
                immediate_action="Practice self-compassion",
                follow_up=(
                    "Engage in pleasurable activities",
                    "Challenge negative thoughts",
                    "Seek therapy support",
                ),
            ),
        ),
        IndicatorDefinition(
            keywords=frozenset({"hurt someone", "hurt other people", "kill them"}),
            severity=Severity.HIGH,
            category=IndicatorCategory.VIOLENCE,
            threshold=80,
            response=IndicatorResponse(
                immediate_action="Create distance from the people at risk and call emergency services",
                follow_up=(
                    "Contact crisis hotline: 988 (US) or local emergency services",
                    "Remove access to weapons",
                    "Contact mental health professional",
                ),
            ),
        ),
    ),
)
