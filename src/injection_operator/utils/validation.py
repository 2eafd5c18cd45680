"""
Validation utilities for MonitoringConfig resources.

The agent's installer reads the proxy URL from a secret and returns it through
a shell ``eval``, so apostrophes and backticks in the password can't be
escaped reliably. They are rejected; the percent-encoded form is accepted.
"""

import logging
from urllib.parse import unquote, urlsplit

logger = logging.getLogger(__name__)

EVAL_FORBIDDEN_CHARACTERS = frozenset("'`")


class ValidationError(Exception):
    """Exception raised for validation failures."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


def contains_eval_forbidden_characters(value: str) -> bool:
    """Check whether value contains characters the installer can't eval."""
    return any(char in EVAL_FORBIDDEN_CHARACTERS for char in value)


def validate_proxy_url(
    proxy_url: str, parse_error_message: str, eval_error_message: str
) -> None:
    """
    Validate a proxy URL.

    A proxy URL is valid if it parses (including a numeric port when one is
    given) and its decoded password has no forbidden characters.

    Args:
        proxy_url: URL to validate
        parse_error_message: Message used when the URL does not parse
        eval_error_message: Message used when the password is not allowed

    Raises:
        ValidationError: If the URL is invalid
    """
    try:
        parsed = urlsplit(proxy_url)
        # Accessing the port validates it
        _ = parsed.port
    except ValueError as e:
        logger.debug(f"Proxy URL failed to parse: {e}")
        raise ValidationError(parse_error_message, field="proxy") from e

    password = unquote(parsed.password or "")
    if contains_eval_forbidden_characters(password):
        raise ValidationError(eval_error_message, field="proxy")
