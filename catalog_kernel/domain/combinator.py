"""
AttributeCombinator -- cartesian product of active attribute values.

Architecture position:
    Kernel > Domain -- pure function, zero I/O, safe to call concurrently.

Behavior:
    Depth-first backtracking over the attributes in input order.  Only
    active values are visited.  Each leaf emits a fresh mapping keyed by the
    lower-cased attribute name.  The emitted order is the order induced by
    iterating attributes and values as given, and variant SKU suffixes rely
    on it.

Edge cases:
    - No attributes: no combinations (not one empty combination).
    - An attribute without active values prunes every path through it.
"""

from __future__ import annotations

from typing import Sequence

from catalog_kernel.domain.product import Attribute


def combine(attributes: Sequence[Attribute]) -> list[dict[str, str]]:
    """Return every combination of active values, in deterministic order."""
    if not attributes:
        return []

    results: list[dict[str, str]] = []
    current: dict[str, str] = {}

    def _walk(index: int) -> None:
        if index == len(attributes):
            results.append(dict(current))
            return
        attribute = attributes[index]
        key = attribute.name.lower()
        for option in attribute.values:
            if not option.active:
                continue
            current[key] = option.value
            _walk(index + 1)
        current.pop(key, None)

    _walk(0)
    return results
