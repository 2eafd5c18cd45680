"""
Injection Operator - A Kubernetes operator injecting monitoring into pods.

This operator provides a mutating admission webhook with:
- Pluggable capability mutators (agent, data enrichment)
- Reinvocation support that fills gaps left by other webhooks
- Owner-chain based workload resolution
- Validation of MonitoringConfig resources
"""

__version__ = "0.1.0"
