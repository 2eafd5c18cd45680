"""
Admission webhooks served by kopf.

This module provides the validating admission webhook for MonitoringConfig
resources. The pod mutation webhook is served separately by
``injection_operator.mutation.server``.
"""
