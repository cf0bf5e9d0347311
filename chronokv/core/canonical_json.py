"""
chronokv Canonical JSON

Values are persisted as canonical JSON (RFC 8785 subset) so that the same
logical value always produces the same stored text regardless of the key
order the client sent:
- Sorted object keys
- Minimal whitespace
- UTF-8, no ASCII escaping

Encoding goes through the canonicaljson library; decoding uses orjson.
"""

from typing import Any

import canonicaljson
import orjson


def canonicalJson(obj: Any) -> str:
    """
    Canonical JSON serialization of a value snapshot.

    Args:
        obj: Python object to serialize (dict, list, str, int, float, bool, None)

    Returns:
        Canonical JSON string

    Raises:
        TypeError / ValueError: If obj contains non-serializable values

    Examples:
        >>> canonicalJson({"b": 2, "a": 1})
        '{"a":1,"b":2}'

        >>> canonicalJson([3, 1, 2])
        '[3,1,2]'
    """
    return canonicaljson.encode_canonical_json(obj).decode('utf-8')


def parseJson(text: str) -> Any:
    """Inverse of canonicalJson."""
    return orjson.loads(text)
