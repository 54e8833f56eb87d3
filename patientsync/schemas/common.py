"""
Shared field types for record-service payloads.
"""

from __future__ import annotations

from typing import Annotated, Any

from pydantic import BeforeValidator


def normalize_object_id(value: Any) -> Any:
    """
    Accept a plain id or a MongoDB extended-JSON ``{"$oid": "..."}`` object.

    Anything else is handed to pydantic unchanged so it fails with a proper
    validation error rather than being stringified.
    """
    if isinstance(value, dict):
        if "$oid" in value:
            return value["$oid"]
        return value
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value


ObjectId = Annotated[str, BeforeValidator(normalize_object_id)]
