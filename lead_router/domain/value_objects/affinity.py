"""Affinity normalization — canonical form for region tags and keys."""

from __future__ import annotations

from collections.abc import Iterable


def normalize_affinity(value: str | None) -> str | None:
    """Collapse inner whitespace and case-fold.

    "  Tamil   Nadu " and "tamil nadu" both become "tamil nadu".
    Returns None for empty/blank values.
    """
    if value is None:
        return None
    normalized = " ".join(value.split()).casefold()
    return normalized or None


def normalize_tags(tags: Iterable[str] | None) -> frozenset[str]:
    if not tags:
        return frozenset()
    return frozenset(t for t in (normalize_affinity(tag) for tag in tags) if t)
