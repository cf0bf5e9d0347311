"""
chronokv Version Record

One key, one value snapshot, one timestamp. Identity is (key, timestamp).

Records are created by a backend's put() and never mutated afterwards; a
second write to the same key within the same second produces a new record
that replaces the old one at that identity.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from .canonical_json import canonicalJson, parseJson


@dataclass(frozen=True)
class VersionRecord:
    """
    Immutable snapshot of a key's value at a timestamp.

    value holds the decoded JSON payload; storedValue() gives the canonical
    text that backends persist.
    """
    key: str
    value: Any
    timestamp: int
    createdAt: Optional[str] = None

    @property
    def identity(self) -> tuple:
        return (self.key, self.timestamp)

    def storedValue(self) -> str:
        return canonicalJson(self.value)

    def toDict(self) -> Dict[str, Any]:
        """Write-result shape: {key, value, timestamp}"""
        return {
            'key': self.key,
            'value': self.value,
            'timestamp': self.timestamp
        }

    def toVersionDict(self) -> Dict[str, Any]:
        """Read-result shape: {value, timestamp}"""
        return {
            'value': self.value,
            'timestamp': self.timestamp
        }

    @classmethod
    def fromStored(cls, key: str, storedValue: str, timestamp: int,
                   createdAt: Optional[str] = None) -> 'VersionRecord':
        """Rebuild a record from its persisted (canonical JSON) form"""
        return cls(
            key=key,
            value=parseJson(storedValue),
            timestamp=int(timestamp),
            createdAt=createdAt
        )
