"""JSON-like value types used at the protocol transport boundary.

Envelope payloads are opaque until a handler decodes them, so they are typed
as JSON values rather than `object`/`Any`.
"""

from __future__ import annotations

from typing import TypeAlias


JSONScalar: TypeAlias = str | int | float | bool | None
JSONValue: TypeAlias = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]
JSONObject: TypeAlias = dict[str, JSONValue]
