"""
JSON patch generation for admission responses.

The patch is the difference between the raw object received from the API
server and the mutated object. Null-valued fields are dropped on both sides
before diffing, so two serializations that only differ in explicit nulls
produce no patch.
"""

import json
from typing import Any

import jsonpatch


def _without_nulls(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _without_nulls(v) for k, v in value.items() if v is not None}
    if isinstance(value, list):
        return [_without_nulls(item) for item in value]
    return value


def build_patch(original_raw: bytes, mutated: dict[str, Any]) -> list[dict[str, Any]]:
    """
    Compute the JSON patch turning original_raw into mutated.

    Args:
        original_raw: JSON bytes of the object as admitted
        mutated: The mutated object

    Returns:
        List of RFC 6902 operations, empty when nothing changed
    """
    original = _without_nulls(json.loads(original_raw))
    patch = jsonpatch.make_patch(original, _without_nulls(mutated))
    return list(patch)
