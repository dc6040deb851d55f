"""
Deterministic cache keys for upstream research requests and attachments.

Request keys hash a canonical JSON serialization of only the fields that
change the upstream answer, so the same request built in a different field
order always maps to the same cache slot.
"""
import base64
import hashlib
import json
from typing import Any, Mapping, Union


def _drop_unset(value: Any, _seen: frozenset = frozenset()) -> Any:
    """Recursively remove mapping fields set to None (same as never set)."""
    if isinstance(value, (Mapping, list, tuple)):
        if id(value) in _seen:
            raise ValueError("Circular reference detected")
        _seen = _seen | {id(value)}
    if isinstance(value, Mapping):
        return {k: _drop_unset(v, _seen) for k, v in value.items() if v is not None}
    if isinstance(value, (list, tuple)):
        return [_drop_unset(v, _seen) for v in value]
    return value


def canonical_json(params: Mapping[str, Any]) -> str:
    """
    Order-independent JSON encoding of request parameters.

    Raises TypeError / ValueError for values JSON cannot represent
    (objects, cycles, NaN) instead of producing a weaker key.
    """
    return json.dumps(
        _drop_unset(params),
        sort_keys=True,
        separators=(",", ":"),
        allow_nan=False,
    )


def canonicalize(params: Mapping[str, Any]) -> str:
    """Returns the SHA-256 hex digest of the canonical encoding of params."""
    serialized = canonical_json(params)
    return hashlib.sha256(serialized.encode("utf-8")).hexdigest()


def content_hash(content: Union[str, bytes]) -> str:
    # raw bytes are hashed via their base64 text so both forms share a slot
    if isinstance(content, (bytes, bytearray)):
        data = base64.b64encode(bytes(content))
    else:
        data = content.encode("utf-8")
    return hashlib.sha256(data).hexdigest()
