"""CSV column normalization — handles BOM, trailing spaces, encoding quirks."""

from __future__ import annotations

import re


def normalize_column_name(name: str) -> str:
    """Normalize a CSV column name.

    - Removes BOM characters (\\ufeff)
    - Collapses spaces, non-breaking spaces and dashes into one underscore
    - Lowercases
    - Strips anything that is not alphanumeric or underscore
    """
    name = name.replace("\ufeff", "").strip()
    name = re.sub(r"[\s\-]+", "_", name)
    name = name.lower()
    return re.sub(r"[^\w]", "", name, flags=re.UNICODE)


def clean_string(value: str | None) -> str | None:
    """Strip whitespace and return None for empty strings."""
    if value is None:
        return None
    value = value.strip()
    return value if value else None


def parse_list(raw: str | None) -> list[str]:
    """Split 'Hindi, Marathi; English' style cells, keeping order and case.

    Separators are comma, semicolon and pipe; whitespace inside an entry is
    preserved so multi-word regions like "Tamil Nadu" survive.
    """
    if not raw:
        return []
    seen: list[str] = []
    for part in re.split(r"[,;|]", raw):
        part = " ".join(part.split())
        if part and part not in seen:
            seen.append(part)
    return seen


def parse_affinity_tags(raw: str | None) -> frozenset[str]:
    """Region tags as a set; case and spacing are normalized by the Worker entity."""
    return frozenset(parse_list(raw))


def parse_int(value: str | None, default: int) -> int:
    if not value:
        return default
    try:
        # handle "60", "60.0"
        return int(float(value.replace(",", ".").strip()))
    except ValueError:
        return default
