"""Canonical form for Spond group, subgroup and event identifiers.

Spond endpoints are inconsistent about hyphenation and letter case, so every
identifier is reduced to 32 upper-case hex characters before it is stored or
compared.
"""
from __future__ import annotations

import re

_SEPARATOR_RE = re.compile(r"[^0-9A-Za-z]+")
_SPOND_ID_RE = re.compile(r"^[0-9A-F]{32}$")


def normalize_spond_id(value: str | None) -> str | None:
    """Return the canonical identifier, or None if ``value`` is not one."""
    if not value or not isinstance(value, str):
        return None
    candidate = _SEPARATOR_RE.sub("", value).upper()
    if not _SPOND_ID_RE.match(candidate):
        return None
    return candidate


def same_spond_id(left: str | None, right: str | None) -> bool:
    normalized = normalize_spond_id(left)
    return normalized is not None and normalized == normalize_spond_id(right)
