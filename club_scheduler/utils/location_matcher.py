from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

DEFAULT_GEO_TOLERANCE = 0.005  # degrees, roughly 500 m

_TOKEN_RE = re.compile(r"[^\w]+", re.UNICODE)
_WHITESPACE_RE = re.compile(r"\s+")

STOPWORDS = frozenset(
    {
        "a", "an", "and", "at", "by", "for", "in", "of", "on", "the", "to",
        "st", "street", "rd", "road", "ave", "avenue", "dr", "drive",
    }
)


def _field(obj: Any, key: str) -> Any:
    if isinstance(obj, dict):
        return obj.get(key)
    return getattr(obj, key, None)


@dataclass(slots=True)
class VenueInfo:
    """Free text and optional coordinates describing where an event happens."""

    text: str = ""
    latitude: float | None = None
    longitude: float | None = None

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    @property
    def is_empty(self) -> bool:
        return not self.text.strip() and not self.has_coordinates

    @classmethod
    def from_remote(cls, location: Any) -> "VenueInfo | None":
        """Build from a Spond location object (model or dict)."""
        if location is None:
            return None
        parts = [_field(location, "feature"), _field(location, "address")]
        venue = cls(
            text=" ".join(p for p in parts if p),
            latitude=_field(location, "latitude"),
            longitude=_field(location, "longitude"),
        )
        return None if venue.is_empty else venue


def normalize_location_text(value: str | None) -> str:
    if not value:
        return ""
    normalized = _TOKEN_RE.sub(" ", value.casefold())
    return _WHITESPACE_RE.sub(" ", normalized).strip()


def significant_tokens(value: str | None) -> set[str]:
    return {
        token
        for token in normalize_location_text(value).split()
        if token not in STOPWORDS and len(token) > 1
    }


def coordinates_match(
    remote: VenueInfo, local: VenueInfo, tolerance: float = DEFAULT_GEO_TOLERANCE
) -> bool:
    return (
        abs(remote.latitude - local.latitude) < tolerance
        and abs(remote.longitude - local.longitude) < tolerance
    )


def text_matches(remote_text: str | None, local_text: str | None) -> bool:
    remote_norm = normalize_location_text(remote_text)
    local_norm = normalize_location_text(local_text)
    if not remote_norm or not local_norm:
        return False
    # Containment on whole words only, so "field 1" never matches "field 12"
    remote_padded, local_padded = f" {remote_norm} ", f" {local_norm} "
    if remote_padded in local_padded or local_padded in remote_padded:
        return True
    shared = significant_tokens(remote_norm) & significant_tokens(local_norm)
    return len(shared) >= 2


def location_matches(
    remote: VenueInfo | None,
    local: VenueInfo | None,
    tolerance: float = DEFAULT_GEO_TOLERANCE,
) -> bool:
    """Decide whether a remote event location is compatible with a local venue.

    No remote location means the time window alone decides. With coordinates
    on both sides the check is purely geographic; otherwise it falls back to
    comparing the free text.
    """
    if remote is None or remote.is_empty:
        return True
    if local is None or local.is_empty:
        return False
    if remote.has_coordinates and local.has_coordinates:
        return coordinates_match(remote, local, tolerance)
    return text_matches(remote.text, local.text)
