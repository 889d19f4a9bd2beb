"""Multi-value header storage shared by requests, responses and builders.

Header names are kept exactly as supplied (case-sensitive keys). Values for
one name keep their insertion order, which matters for headers such as
``Accept`` that may legitimately repeat.
"""

from __future__ import annotations

from typing import Iterable, Mapping

MultiValueMap = dict[str, list[str]]


def copy_multi_value_map(
    mapping: Mapping[str | None, Iterable[str] | None] | None,
) -> MultiValueMap:
    """Deep-copy a name -> values mapping, skipping None names and value lists.

    Empty value lists are dropped so the result never holds a key without values.
    """
    result: MultiValueMap = {}
    if mapping is None:
        return result
    for name, values in mapping.items():
        if name is None or values is None:
            continue
        copied = list(values)
        if copied:
            result[name] = copied
    return result


def add_value(mapping: MultiValueMap, name: str | None, value: str | None) -> None:
    """Append value to the list stored under name. No-op if either is None."""
    if name is None or value is None:
        return
    mapping.setdefault(name, []).append(value)


def remove_value(
    mapping: MultiValueMap,
    name: str | None,
    value: str | None = None,
) -> None:
    """Remove one value (or, with value=None, the whole key) from mapping.

    The key disappears once its last value is removed. Absent keys and
    absent values are ignored.
    """
    if name not in mapping:
        return
    if value is None:
        del mapping[name]
        return
    values = mapping[name]
    if value in values:
        values.remove(value)
    if not values:
        del mapping[name]


class HeaderHolder:
    """Read access to an ordered multi-value header map.

    All accessors return copies; callers can never alias internal storage.
    """

    def __init__(
        self,
        headers: Mapping[str | None, Iterable[str] | None] | None = None,
    ) -> None:
        self._headers: MultiValueMap = copy_multi_value_map(headers)

    def header_names(self) -> list[str]:
        """Return all header names currently present."""
        return list(self._headers)

    def has_header(self, name: str | None) -> bool:
        return name in self._headers

    def header_values(self, name: str | None) -> list[str] | None:
        """Return the values for name in insertion order, or None if absent."""
        values = self._headers.get(name) if name is not None else None
        return list(values) if values is not None else None

    @property
    def headers(self) -> MultiValueMap:
        """Deep copy of the whole header map."""
        return copy_multi_value_map(self._headers)

    def _replace_headers(
        self,
        headers: Mapping[str | None, Iterable[str] | None] | None,
    ) -> None:
        self._headers = copy_multi_value_map(headers)
