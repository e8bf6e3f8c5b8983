"""SafeHarbor: crisis risk assessment and escalation services."""
