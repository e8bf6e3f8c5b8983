"""SafeHarbor microservices.

- detection_service: three-stage crisis assessment, never fails on input
- escalation_service: crisis event lifecycle, fail-safe alerting
- resource_service: crisis hotlines and safety messages
- audit_service: hash-chained trail of every workflow action
"""
