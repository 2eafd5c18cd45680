"""
Utils package - Utility modules for injection operator functionality.

Contains helper modules for:
- Kubernetes API access and manifest helpers
- Kubernetes Event emission
- Secret provisioning in injected namespaces
- Input validation
"""

from injection_operator.utils.kubernetes import (
    ClusterClient,
    field_env_var,
    get_field,
    get_field_bool,
)

__all__ = [
    "ClusterClient",
    "field_env_var",
    "get_field",
    "get_field_bool",
]
