"""Crisis resource directory: hotlines and support websites."""
from dataclasses import dataclass
from typing import Dict, List, Optional


@dataclass(frozen=True)
class CrisisResource:
    name: str
    contact: str
    description: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {"name": self.name, "contact": self.contact, "description": self.description}

    def render(self) -> str:
        return f"{self.name}: {self.contact}"


DEFAULT_HOTLINES = (
    CrisisResource(
        name="988 Suicide & Crisis Lifeline",
        contact="Call or text 988",
        description="24/7 free and confidential support (US)",
    ),
    CrisisResource(
        name="Crisis Text Line",
        contact="Text HOME to 741741",
        description="24/7 text-based crisis support",
    ),
    CrisisResource(
        name="Emergency Services",
        contact="Call your local emergency number",
        description="For immediate danger to life",
    ),
)

DEFAULT_WEBSITES = (
    CrisisResource(name="988 Lifeline", contact="https://988lifeline.org"),
    CrisisResource(name="Crisis Text Line", contact="https://www.crisistextline.org"),
    CrisisResource(name="Find A Helpline", contact="https://findahelpline.com"),
)

REGIONAL_HOTLINES: Dict[str, CrisisResource] = {
    "US": CrisisResource(
        name="US Emergency Services", contact="Call 911",
        description="Police, fire and ambulance",
    ),
    "CA": CrisisResource(
        name="9-8-8 Suicide Crisis Helpline", contact="Call or text 988",
        description="24/7 support across Canada",
    ),
    "UK": CrisisResource(
        name="Samaritans", contact="Call 116 123",
        description="24/7 listening support in the UK and Ireland",
    ),
    "GB": CrisisResource(
        name="Samaritans", contact="Call 116 123",
        description="24/7 listening support in the UK and Ireland",
    ),
    "IE": CrisisResource(
        name="Samaritans Ireland", contact="Call 116 123",
        description="24/7 listening support",
    ),
    "AU": CrisisResource(
        name="Lifeline Australia", contact="Call 13 11 14",
        description="24/7 crisis support and suicide prevention",
    ),
    "NZ": CrisisResource(
        name="1737 Need to Talk?", contact="Call or text 1737",
        description="Free support from trained counsellors",
    ),
    "IN": CrisisResource(
        name="Tele-MANAS", contact="Call 14416",
        description="National tele mental health programme",
    ),
}


def region_code(location: Optional[str]) -> Optional[str]:
    """Normalize a location such as "us-ca" or " UK " to its region code."""
    if not location:
        return None
    code = location.strip().upper().replace("_", "-").split("-", 1)[0]
    return code or None


def get_crisis_resources(location: Optional[str] = None) -> Dict[str, List[CrisisResource]]:
    """Ordered crisis resources, regional hotline first when known.

    Args:
        location: Region code, optionally with a subdivision ("US-CA")

    Returns:
        {"hotlines": [...], "websites": [...]}
    """
    hotlines = list(DEFAULT_HOTLINES)
    regional = REGIONAL_HOTLINES.get(region_code(location) or "")
    if regional is not None:
        hotlines.insert(0, regional)
    return {"hotlines": hotlines, "websites": list(DEFAULT_WEBSITES)}
