"""
Injection error hierarchy with categorization and user guidance.

This module defines the error types raised while mutating pods. None of them
is fatal to the process; the admission handler converts them into an allowed
response carrying a diagnostic message.
"""

from injection_operator.models.workload import WorkloadInfo


class InjectionError(Exception):
    """
    Base error class for all injection-related exceptions.

    Provides categorization and user guidance for resolution.
    """

    def __init__(
        self,
        message: str,
        category: str,
        user_action: str | None = None,
        cause: Exception | None = None,
    ):
        """
        Initialize injection error.

        Args:
            message: Human-readable error description
            category: Error category (decode, config, provisioning, owner)
            user_action: What user should do to resolve the issue
            cause: Underlying exception that caused this error
        """
        super().__init__(message)
        self.message = message
        self.category = category
        self.user_action = user_action
        self.cause = cause

    def __str__(self) -> str:
        """Enhanced string representation with user guidance."""
        base_msg = super().__str__()
        if self.user_action:
            return f"{base_msg}\nAction required: {self.user_action}"
        return base_msg


class DecodeError(InjectionError):
    """The admission request does not carry a decodable pod."""

    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(message=message, category="decode", cause=cause)


class ConfigLookupError(InjectionError):
    """Reading the namespace or the MonitoringConfig failed."""

    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(
            message=message,
            category="config",
            user_action="Check RBAC permissions and cluster connectivity",
            cause=cause,
        )


class ConfigMissingError(InjectionError):
    """A namespace references a MonitoringConfig that does not exist."""

    def __init__(self, namespace: str, config_name: str):
        super().__init__(
            message=(
                f"namespace '{namespace}' is assigned to MonitoringConfig "
                f"'{config_name}' but it doesn't exist"
            ),
            category="config",
            user_action="Create the MonitoringConfig or fix the namespace label",
        )
        self.namespace = namespace
        self.config_name = config_name


class ProvisioningError(InjectionError):
    """A supporting secret could not be read or created."""

    def __init__(self, secret_name: str, namespace: str, cause: Exception | None = None):
        reason = f": {cause}" if cause else ""
        super().__init__(
            message=f"failed to provision secret {namespace}/{secret_name}{reason}",
            category="provisioning",
            cause=cause,
        )
        self.secret_name = secret_name
        self.namespace = namespace


class OwnerResolutionError(InjectionError):
    """
    Walking the owner-reference chain of a pod failed.

    Carries the best-known workload found before the failure so callers can
    decide whether to continue in degraded mode.
    """

    def __init__(
        self, message: str, partial: WorkloadInfo, cause: Exception | None = None
    ):
        super().__init__(message=message, category="owner", cause=cause)
        self.partial = partial


class NameCollisionError(InjectionError):
    """Two capability mutators claim the same env var or volume name."""

    def __init__(self, kind: str, name: str, owner: str, claimant: str):
        super().__init__(
            message=(
                f"{kind} name '{name}' is owned by '{owner}' "
                f"and cannot be claimed by '{claimant}'"
            ),
            category="registry",
        )
        self.name = name
        self.owner = owner
        self.claimant = claimant
