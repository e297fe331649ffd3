"""Shared type aliases for JSON-like payloads."""

from __future__ import annotations

from typing import Any, TypeAlias

JsonValue: TypeAlias = object
JsonObject: TypeAlias = dict[str, JsonValue]

# Raw client-supplied patch; values are untrusted and validated field by field
RawPatch: TypeAlias = dict[str, Any]
