"""Catalog collaborators and candidate pool preparation."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, Protocol, Sequence

from ..languages import ENGLISH_LANGUAGE_CODE, LanguageSelection, language_selection
from ..models import Candidate, MovieFilters
from ..providers import provider_map

logger = logging.getLogger(__name__)


class CatalogSource(Protocol):
    """Anything able to produce candidate movies for a set of filters."""

    async def fetch_candidates(self, filters: MovieFilters) -> list[Candidate]:
        ...


class WatchHistoryStore(Protocol):
    """Tracks which movies should no longer be suggested."""

    async def should_exclude(self, movie_id: int) -> bool:
        ...

    async def mark_watched(self, movie_id: int, might_watch_again: bool = False) -> None:
        ...

    async def unmark_watched(self, movie_id: int) -> None:
        ...


@dataclass(slots=True)
class WatchedMovie:
    id: int
    watched_at: datetime
    might_watch_again: bool = False


class InMemoryWatchHistory:
    """Process local watch history.

    A watched movie is excluded from suggestions unless the viewer flagged it
    as something they might watch again.
    """

    def __init__(self) -> None:
        self._entries: dict[int, WatchedMovie] = {}

    async def should_exclude(self, movie_id: int) -> bool:
        entry = self._entries.get(movie_id)
        return entry is not None and not entry.might_watch_again

    async def mark_watched(self, movie_id: int, might_watch_again: bool = False) -> None:
        self._entries[movie_id] = WatchedMovie(
            id=movie_id,
            watched_at=datetime.now(timezone.utc),
            might_watch_again=might_watch_again,
        )

    async def unmark_watched(self, movie_id: int) -> None:
        self._entries.pop(movie_id, None)

    async def watched(self) -> list[WatchedMovie]:
        return sorted(self._entries.values(), key=lambda entry: entry.watched_at)


class StaticCatalogSource:
    """Serve a fixed list of candidates, filtered per request."""

    def __init__(self, candidates: Iterable[Candidate]):
        self._candidates = list(candidates)

    async def fetch_candidates(self, filters: MovieFilters) -> list[Candidate]:
        return filter_candidates(self._candidates, filters)


def _matches_language(
    movie: Candidate, preference: str, selection: LanguageSelection | None
) -> bool:
    language = movie.original_language
    if preference == "english":
        return language == ENGLISH_LANGUAGE_CODE
    if preference == "international":
        if language is None or language == ENGLISH_LANGUAGE_CODE:
            return False
        return selection is None or selection.matches(language)
    if selection is None:
        return True
    return language == ENGLISH_LANGUAGE_CODE or selection.matches(language)


def _matches_years(movie: Candidate, filters: MovieFilters) -> bool:
    if filters.from_year is None and filters.to_year is None:
        return True
    if movie.release_year is None:
        return False
    if filters.from_year is not None and movie.release_year < filters.from_year:
        return False
    if filters.to_year is not None and movie.release_year > filters.to_year:
        return False
    return True


def _interleave_languages(ranked: Sequence[Candidate]) -> list[Candidate]:
    """Alternate English and non-English picks, English first."""

    english = [m for m in ranked if m.original_language == ENGLISH_LANGUAGE_CODE]
    others = [m for m in ranked if m.original_language != ENGLISH_LANGUAGE_CODE]
    interleaved: list[Candidate] = []
    for index in range(max(len(english), len(others))):
        if index < len(english):
            interleaved.append(english[index])
        if index < len(others):
            interleaved.append(others[index])
    return interleaved


def filter_candidates(
    candidates: Sequence[Candidate], filters: MovieFilters
) -> list[Candidate]:
    """Apply viewer filters, drop duplicate ids and rank by rating.

    The first occurrence of an id decides whether that movie is kept. When
    the viewer mixes English with a language sub-selection the ranking
    alternates between the two groups.
    """

    selection = (
        language_selection(filters.international_languages)
        if filters.international_languages
        else None
    )
    catalog_ids = set(provider_map(filters.streaming_providers).values())

    seen: set[int] = set()
    results: list[Candidate] = []
    for movie in candidates:
        if movie.id in seen:
            continue
        seen.add(movie.id)
        if filters.genres and not set(filters.genres) & set(movie.genre_ids):
            continue
        if movie.rating < filters.min_score:
            continue
        if not _matches_language(movie, filters.language, selection):
            continue
        if not _matches_years(movie, filters):
            continue
        if catalog_ids and not any(
            movie.is_available_on(catalog_id) for catalog_id in catalog_ids
        ):
            continue
        results.append(movie)

    results.sort(key=lambda movie: movie.rating, reverse=True)
    if filters.language == "all" and selection is not None:
        results = _interleave_languages(results)
    logger.debug("Filtered %s candidates down to %s", len(candidates), len(results))
    return results


async def exclude_watched(
    candidates: Sequence[Candidate], watch_history: WatchHistoryStore
) -> list[Candidate]:
    kept: list[Candidate] = []
    for movie in candidates:
        if await watch_history.should_exclude(movie.id):
            continue
        kept.append(movie)
    return kept


async def prepare_pool(
    source: CatalogSource,
    filters: MovieFilters,
    watch_history: WatchHistoryStore,
) -> list[Candidate]:
    """Fetch filtered candidates and drop what the viewer has already seen."""

    candidates = await source.fetch_candidates(filters)
    pool = await exclude_watched(candidates, watch_history)
    logger.info(
        "Prepared pool of %s movies (%s before watch history)",
        len(pool),
        len(candidates),
    )
    return pool
