"""Session scoped orchestration of bundle generation and repairs."""

from __future__ import annotations

import asyncio
import logging
import secrets
import time
from dataclasses import dataclass
from typing import Any, Callable, Sequence

from ..config import Settings
from ..models import Candidate, Combination, MovieFilters, SearchRequest
from ..providers import provider_map
from .catalog import (
    CatalogSource,
    StaticCatalogSource,
    WatchHistoryStore,
    exclude_watched,
    prepare_pool,
)
from .combinations import generate_combinations, generate_combinations_per_provider
from .replacement import (
    ReplacementHistory,
    ReplacementOutcome,
    replace_in_combinations,
    replace_in_list,
)

logger = logging.getLogger(__name__)

CatalogSourceFactory = Callable[[Sequence[Candidate]], CatalogSource]

NO_COMBINATIONS_MESSAGE = (
    "No movie combinations fit that viewing time. Try a different duration or "
    "loosen your filters."
)
NO_REPLACEMENT_MESSAGE = (
    "No suitable replacement movie found with similar runtime. Try adjusting "
    "your filters or generating new combinations."
)


@dataclass
class SessionState:
    """A displayed result set and the bookkeeping needed to repair it."""

    id: str
    filters: MovieFilters
    pool: list[Candidate]
    movies: list[Candidate]
    combinations: list[Combination]
    history: ReplacementHistory
    expires_at: float

    @property
    def combination_mode(self) -> bool:
        return self.filters.total_time is not None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "sessionId": self.id,
            "movies": [movie.to_payload() for movie in self.movies],
            "combinations": [
                combination.to_payload() for combination in self.combinations
            ],
        }
        if self.combination_mode and not self.combinations:
            payload["message"] = NO_COMBINATIONS_MESSAGE
        return payload


@dataclass
class RepairResult:
    """Outcome of a replace or watched action on a session."""

    session: SessionState
    replaced: Candidate
    replacement: Candidate | None
    combination_index: int | None = None
    removed: bool = False

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "sessionId": self.session.id,
            "replaced": self.replaced.to_payload(),
            "replacement": (
                self.replacement.to_payload() if self.replacement is not None else None
            ),
        }
        if self.combination_index is not None:
            payload["combinationIndex"] = self.combination_index
            payload["combination"] = self.session.combinations[
                self.combination_index
            ].to_payload()
        if self.removed:
            payload["removed"] = True
        if self.replacement is None and not self.removed:
            payload["message"] = NO_REPLACEMENT_MESSAGE
        return payload


class MovieNightService:
    """Keeps displayed bundles consistent across sequential user actions.

    Generation and replacement are pure functions; this class owns the
    mutable state around them and applies one change at a time per session.
    """

    def __init__(
        self,
        settings: Settings,
        watch_history: WatchHistoryStore,
        catalog_source_factory: CatalogSourceFactory = StaticCatalogSource,
    ):
        self._settings = settings
        self._watch_history = watch_history
        self._catalog_source_factory = catalog_source_factory
        self._sessions: dict[str, SessionState] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    @property
    def watch_history(self) -> WatchHistoryStore:
        return self._watch_history

    async def recommend(self, request: SearchRequest) -> list[Candidate]:
        """Return the ranked individual movies for the request filters."""

        pool = await self._prepare_pool(request)
        if request.count is not None:
            return pool[: request.count]
        return pool

    async def create_session(self, request: SearchRequest) -> SessionState:
        """Build a fresh result set, discarding any previous slot history."""

        self._prune_expired_sessions()
        pool = await self._prepare_pool(request)
        combinations = self._generate(pool, request)

        history = ReplacementHistory()
        history.seed(combinations)
        session = SessionState(
            id=secrets.token_urlsafe(16),
            filters=request.filters,
            pool=pool,
            movies=list(pool),
            combinations=combinations,
            history=history,
            expires_at=time.time() + self._settings.session_ttl_seconds,
        )
        self._sessions[session.id] = session
        logger.info(
            "Created session %s with %s movies and %s combinations",
            session.id,
            len(pool),
            len(combinations),
        )
        return session

    def get_session(self, session_id: str) -> SessionState:
        self._prune_expired_sessions()
        session = self._sessions.get(session_id)
        if session is None:
            raise KeyError(f"Session {session_id} not found")
        return session

    async def replace_movie(
        self, session_id: str, combination_index: int, movie_id: int
    ) -> RepairResult:
        """Swap one movie in a displayed bundle for a similar-length one."""

        session = self.get_session(session_id)
        async with self._lock_for(session.id):
            outcome = await self._replace_in_session(
                session, combination_index, movie_id
            )
            return RepairResult(
                session=session,
                replaced=outcome.replaced,
                replacement=outcome.replacement,
                combination_index=combination_index,
            )

    async def mark_watched(
        self, session_id: str, movie_id: int, might_watch_again: bool = False
    ) -> RepairResult:
        """Record a watched movie and repair whatever view currently shows it."""

        session = self.get_session(session_id)
        async with self._lock_for(session.id):
            if session.combination_mode and session.combinations:
                index = next(
                    (
                        position
                        for position, combination in enumerate(session.combinations)
                        if movie_id in combination.movie_ids()
                    ),
                    None,
                )
                if index is None:
                    raise ValueError(f"Movie {movie_id} is not in any combination")
                await self._watch_history.mark_watched(
                    movie_id, might_watch_again=might_watch_again
                )
                outcome = await self._replace_in_session(session, index, movie_id)
                return RepairResult(
                    session=session,
                    replaced=outcome.replaced,
                    replacement=outcome.replacement,
                    combination_index=index,
                )

            original = next(
                (movie for movie in session.movies if movie.id == movie_id), None
            )
            if original is None:
                raise ValueError(f"Movie {movie_id} is not in the list")
            await self._watch_history.mark_watched(
                movie_id, might_watch_again=might_watch_again
            )
            pool = await exclude_watched(session.pool, self._watch_history)
            movies, replacement = replace_in_list(
                session.movies,
                movie_id,
                pool,
                margin=self._settings.replacement_margin_minutes,
                default_runtime=self._settings.default_runtime_minutes,
            )
            session.movies = movies
            return RepairResult(
                session=session,
                replaced=original,
                replacement=replacement,
                removed=replacement is None,
            )

    async def _replace_in_session(
        self, session: SessionState, combination_index: int, movie_id: int
    ) -> ReplacementOutcome:
        pool = await exclude_watched(session.pool, self._watch_history)
        outcome = replace_in_combinations(
            session.combinations,
            combination_index,
            movie_id,
            pool,
            session.history,
            margin=self._settings.replacement_margin_minutes,
            default_runtime=self._settings.default_runtime_minutes,
        )
        session.combinations = outcome.combinations
        if outcome.replacement is None:
            logger.info(
                "Session %s: no replacement for movie %s in combination %s",
                session.id,
                movie_id,
                combination_index,
            )
        return outcome

    async def _prepare_pool(self, request: SearchRequest) -> list[Candidate]:
        source = self._catalog_source_factory(request.movies)
        return await prepare_pool(source, request.filters, self._watch_history)

    def _generate(
        self, pool: list[Candidate], request: SearchRequest
    ) -> list[Combination]:
        filters = request.filters
        if filters.total_time is None:
            return []

        search_options = {
            "margin": self._settings.combination_margin_minutes,
            "max_size": self._settings.max_combination_size,
            "size_cap": self._settings.combination_size_cap,
        }
        if filters.streaming_providers:
            combinations, _ = generate_combinations_per_provider(
                pool,
                filters.total_time,
                filters.streaming_providers,
                provider_map(filters.streaming_providers),
                per_provider=self._settings.provider_combination_count,
                **search_options,
            )
            return combinations
        return generate_combinations(
            pool,
            filters.total_time,
            request.count or self._settings.combination_count,
            **search_options,
        )

    def _lock_for(self, session_id: str) -> asyncio.Lock:
        lock = self._locks.get(session_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[session_id] = lock
        return lock

    def _prune_expired_sessions(self) -> None:
        now = time.time()
        expired = [
            key for key, session in self._sessions.items() if session.expires_at <= now
        ]
        for key in expired:
            self._sessions.pop(key, None)
            self._locks.pop(key, None)
