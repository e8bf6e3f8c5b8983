"""Resource Service: crisis hotlines and user-facing safety messages.

Pure presentation logic driven by the assessment's severity band.

Components:
- directory.py: get_crisis_resources() with regional hotlines
- composer.py: generate_crisis_response() and compose_intervention()
"""

from .directory import CrisisResource, get_crisis_resources, region_code
from .composer import InterventionResponse, compose_intervention, generate_crisis_response

__all__ = [
    "CrisisResource",
    "get_crisis_resources",
    "region_code",
    "InterventionResponse",
    "compose_intervention",
    "generate_crisis_response",
]
