"""
Error handling module for the injection operator.

This module provides the error hierarchy used by the pod mutation webhook.
Every error raised while handling an admission request terminates at the
admission handler as a non-blocking (soft-fail) response.
"""

from .injection_errors import (
    ConfigLookupError,
    ConfigMissingError,
    DecodeError,
    InjectionError,
    NameCollisionError,
    OwnerResolutionError,
    ProvisioningError,
)

__all__ = [
    "InjectionError",
    "DecodeError",
    "ConfigLookupError",
    "ConfigMissingError",
    "ProvisioningError",
    "OwnerResolutionError",
    "NameCollisionError",
]
