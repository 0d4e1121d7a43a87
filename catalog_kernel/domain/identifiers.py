"""
IdentifierAllocator -- SKU derivation for variants and duplicated products.

Architecture position:
    Kernel > Domain -- pure functions.  The uniqueness oracle is injected as
    a plain callable so the repository stays outside the domain.

Notes:
    ``variant_sku`` does not consult the oracle.  Two attribute values that
    share their leading characters derive the same SKU; the Catalog Service
    detects that collision within the parent before anything is written.

    ``allocate_duplicate_sku`` is a linear search with no upper bound.  It is
    not atomic with the subsequent insert; the repository unique constraint
    on (tenant_id, sku) closes that window.
"""

from __future__ import annotations

from typing import Callable, Mapping

DEFAULT_PREFIX_LENGTH = 3
DEFAULT_COPY_MARKER = "COPIA"


def variant_suffix(
    combination: Mapping[str, str],
    prefix_length: int = DEFAULT_PREFIX_LENGTH,
) -> str:
    """First ``prefix_length`` characters of each value, uppercased, joined by '-'."""
    return "-".join(
        str(value)[:prefix_length].upper() for value in combination.values()
    )


def variant_sku(
    parent_sku: str,
    combination: Mapping[str, str],
    prefix_length: int = DEFAULT_PREFIX_LENGTH,
) -> str:
    """
    Derive a variant SKU from its parent's SKU.

    >>> variant_sku("SHIRT", {"color": "Red", "size": "S"})
    'SHIRT-RED-S'
    """
    return f"{parent_sku}-{variant_suffix(combination, prefix_length)}"


def allocate_duplicate_sku(
    base_sku: str,
    exists: Callable[[str], bool],
    marker: str = DEFAULT_COPY_MARKER,
) -> str:
    """
    Return the first free copy SKU for ``base_sku``.

    Tries ``BASE-COPIA``, then ``BASE-COPIA-1``, ``BASE-COPIA-2`` and so on
    until ``exists`` reports a candidate as free.
    """
    candidate = f"{base_sku}-{marker}"
    n = 0
    while exists(candidate):
        n += 1
        candidate = f"{base_sku}-{marker}-{n}"
    return candidate
