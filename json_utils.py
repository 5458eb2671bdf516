"""
JSON helpers backed by orjson
=============================

Used for provider request bodies, tool argument payloads and ledger snapshots.
orjson works in bytes; these wrappers hand back str where callers expect text.
"""

from typing import Any, Callable, Optional, Union

import orjson

JSONDecodeError = orjson.JSONDecodeError


def _options(indent: Optional[int], sort_keys: bool) -> int:
    option = orjson.OPT_SERIALIZE_UUID | orjson.OPT_NON_STR_KEYS
    if indent is not None:
        option |= orjson.OPT_INDENT_2
    if sort_keys:
        option |= orjson.OPT_SORT_KEYS
    return option


def dumps(
    obj: Any,
    indent: Optional[int] = None,
    sort_keys: bool = False,
    default: Optional[Callable[[Any], Any]] = None,
) -> str:
    """Serialize obj to a JSON string."""
    return orjson.dumps(obj, default=default, option=_options(indent, sort_keys)).decode("utf-8")


def dumps_bytes(obj: Any, default: Optional[Callable[[Any], Any]] = None) -> bytes:
    """Serialize obj straight to bytes for HTTP bodies."""
    return orjson.dumps(obj, default=default, option=_options(None, False))


def loads(s: Union[str, bytes, bytearray]) -> Any:
    """Deserialize a JSON document (str or bytes)."""
    return orjson.loads(s)


def strip_code_fence(text: str) -> str:
    """Remove a surrounding markdown code fence, if any."""
    stripped = text.strip()
    if stripped.startswith("```"):
        stripped = stripped.split("\n", 1)[1] if "\n" in stripped else ""
        if stripped.rstrip().endswith("```"):
            stripped = stripped.rstrip()[:-3]
    return stripped.strip()


def loads_object(s: Union[str, bytes, bytearray]) -> dict:
    """
    Deserialize a JSON document that must be an object.

    Models asked for JSON sometimes wrap it in a markdown fence; the fence is
    stripped before parsing. Raises JSONDecodeError or ValueError.
    """
    if isinstance(s, (bytes, bytearray)):
        s = s.decode("utf-8")
    parsed = orjson.loads(strip_code_fence(s))
    if not isinstance(parsed, dict):
        raise ValueError(f"Expected a JSON object, got {type(parsed).__name__}")
    return parsed
