"""
Core data structures for Waymark request handling.

Provides:
- MultiDict: Read-only view over repeated query/form keys
- Headers: Case-insensitive header access
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple, Union


# ============================================================================
# MultiDict
# ============================================================================

class MultiDict(Mapping[str, List[str]]):
    """
    Decoded ``key=value`` pairs grouped by key, in first-seen order.

    Indexing returns every value of a key; ``get`` returns the first.
    """

    def __init__(self, pairs: Iterable[Tuple[str, str]] = ()):
        self._data: Dict[str, List[str]] = {}
        for key, value in pairs:
            self._data.setdefault(key, []).append(value)

    def __getitem__(self, key: str) -> List[str]:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"MultiDict({self._data})"

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        values = self._data.get(key)
        return values[0] if values else default

    def to_dict(self, multi: bool = False) -> Dict[str, Union[str, List[str]]]:
        """Plain dict; repeated keys keep a list, others collapse unless ``multi``."""
        if multi:
            return {k: list(v) for k, v in self._data.items()}
        return {k: (v[0] if len(v) == 1 else list(v)) for k, v in self._data.items()}


# ============================================================================
# Headers
# ============================================================================

@dataclass
class Headers:
    """
    Case-insensitive header access over raw ASGI header pairs.
    """

    raw: List[Tuple[bytes, bytes]] = field(default_factory=list)
    _index: Dict[str, List[str]] = field(default_factory=dict, init=False, repr=False)

    def __post_init__(self):
        self._index = {}
        for name, value in self.raw:
            key = name.decode("latin-1").lower()
            self._index.setdefault(key, []).append(value.decode("latin-1"))

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Get first value for header (case-insensitive)."""
        values = self._index.get(name.lower())
        return values[0] if values else default

    def get_all(self, name: str) -> List[str]:
        """Get all values for header (case-insensitive)."""
        return list(self._index.get(name.lower(), []))

    def has(self, name: str) -> bool:
        return name.lower() in self._index

    def items(self) -> Iterator[Tuple[str, str]]:
        for name, value in self.raw:
            yield name.decode("latin-1"), value.decode("latin-1")

    def to_dict(self) -> Dict[str, Any]:
        """
        Lower-cased header names mapped to their value.

        Repeated headers are joined with ``", "`` as HTTP allows.
        """
        return {key: ", ".join(values) for key, values in self._index.items()}

    def __contains__(self, name: str) -> bool:
        return self.has(name)

    def __getitem__(self, name: str) -> str:
        value = self.get(name)
        if value is None:
            raise KeyError(f"Header '{name}' not found")
        return value

    def __repr__(self) -> str:
        return f"Headers({list(self.items())})"
