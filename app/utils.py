"""Utility helpers for the Movie Night service."""

from __future__ import annotations

import re
import unicodedata
from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .models import Combination


def slugify(value: str) -> str:
    """Return a lowercase, dash separated key."""

    value = unicodedata.normalize("NFKD", value)
    value = value.encode("ascii", "ignore").decode("ascii")
    value = re.sub(r"[^a-zA-Z0-9]+", "-", value)
    value = value.strip("-")
    value = re.sub(r"-+", "-", value)
    return value.lower()


def normalize_keys(value: object) -> tuple[str, ...]:
    """Parse a comma separated string or iterable into unique slug keys.

    Order of first appearance is preserved and blank entries are dropped.
    """

    if isinstance(value, str):
        raw_values = [part.strip() for part in value.split(",")]
    elif isinstance(value, Iterable):
        raw_values = [str(part).strip() for part in value]
    else:
        raise TypeError("Keys must be a string or iterable of strings")

    cleaned: list[str] = []
    for entry in raw_values:
        if not entry:
            continue
        slug = slugify(entry.replace("_", "-"))
        if slug and slug not in cleaned:
            cleaned.append(slug)
    return tuple(cleaned)


def format_runtime(minutes: float) -> str:
    """Format a runtime as ``"Xh Ym"``, ``"Xh"`` or ``"Ym"``."""

    total = max(int(round(minutes)), 0)
    hours, mins = divmod(total, 60)
    if hours == 0:
        return f"{mins}m"
    if mins == 0:
        return f"{hours}h"
    return f"{hours}h {mins}m"


def summarize(combination: "Combination") -> str:
    """Return a one line description of a movie-night bundle."""

    movie_count = len(combination.movies)
    runtime = format_runtime(combination.total_runtime)
    plural = "s" if movie_count > 1 else ""
    return f"{movie_count} movie{plural} • {runtime} • ★ {combination.average_rating:.1f}"
