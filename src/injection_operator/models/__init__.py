"""
Models package - Pydantic models for type-safe resource handling.

Defines data models for:
- MonitoringConfig specifications (the workload-config resource)
- Admission review requests and responses
- Resolved workload identity
"""
