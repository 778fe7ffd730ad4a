"""Tests for the session orchestration around bundle generation."""

from __future__ import annotations

import asyncio

import pytest

from app.config import Settings
from app.models import Candidate, MovieFilters, SearchRequest
from app.services.catalog import InMemoryWatchHistory
from app.services.movie_night import (
    NO_COMBINATIONS_MESSAGE,
    NO_REPLACEMENT_MESSAGE,
    MovieNightService,
)
from app.services.replacement import SlotKey


def build_service(**overrides) -> MovieNightService:
    settings = Settings(_env_file=None, **overrides)  # type: ignore[arg-type]
    return MovieNightService(settings, InMemoryWatchHistory())


def pool() -> list[Candidate]:
    return [
        Candidate(id=1, runtime=60, rating=9, available_on=("8",)),
        Candidate(id=2, runtime=60, rating=8, available_on=("8",)),
        Candidate(id=3, runtime=60, rating=7, available_on=("15",)),
        Candidate(id=4, runtime=60, rating=6, available_on=("15",)),
        Candidate(id=5, runtime=65, rating=5),
        Candidate(id=6, runtime=55, rating=4),
    ]


def test_create_session_generates_disjoint_bundles() -> None:
    service = build_service()
    request = SearchRequest(filters=MovieFilters(total_time=2), movies=pool())

    session = asyncio.run(service.create_session(request))

    ids = [combo.movie_ids() for combo in session.combinations]
    assert ids == [[1, 2], [3, 4], [5, 6]]
    assert service.get_session(session.id) is session
    assert session.history.history_for(SlotKey(1, 0)) == [3]
    assert "message" not in session.to_payload()


def test_create_session_respects_count_and_settings() -> None:
    service = build_service(COMBINATION_COUNT=2)
    request = SearchRequest(filters=MovieFilters(total_time=2), movies=pool())
    assert len(asyncio.run(service.create_session(request)).combinations) == 2

    request = SearchRequest(filters=MovieFilters(total_time=2), movies=pool(), count=1)
    assert len(asyncio.run(service.create_session(request)).combinations) == 1


def test_create_session_partitions_by_provider() -> None:
    service = build_service()
    filters = MovieFilters(total_time=1, streaming_providers=("hulu", "netflix"))

    session = asyncio.run(service.create_session(SearchRequest(filters=filters, movies=pool())))

    assert [(c.provider, c.movie_ids()) for c in session.combinations] == [
        ("hulu", [3]),
        ("hulu", [4]),
        ("netflix", [1]),
        ("netflix", [2]),
    ]


def test_empty_session_reports_message() -> None:
    service = build_service()
    request = SearchRequest(filters=MovieFilters(total_time=12), movies=pool())

    session = asyncio.run(service.create_session(request))

    assert session.combinations == []
    assert session.to_payload()["message"] == NO_COMBINATIONS_MESSAGE


def test_replace_movie_updates_bundle_and_history() -> None:
    service = build_service()
    movies = pool() + [Candidate(id=7, runtime=58, rating=6.5)]
    request = SearchRequest(filters=MovieFilters(total_time=2), movies=movies, count=1)

    async def runner() -> None:
        session = await service.create_session(request)
        assert session.combinations[0].movie_ids() == [1, 2]

        result = await service.replace_movie(session.id, 0, 2)
        assert result.replacement is not None
        assert result.replacement.id == 3
        assert session.combinations[0].movie_ids() == [1, 3]
        assert session.combinations[0].total_runtime == 120
        assert session.history.history_for(SlotKey(0, 1)) == [2, 3]

        # 2 and 3 are in the slot history, 1 is displayed.
        result = await service.replace_movie(session.id, 0, 3)
        assert result.replacement.id == 7

        payload = result.to_payload()
        assert payload["combinationIndex"] == 0
        assert payload["combination"]["movies"][1]["id"] == 7

    asyncio.run(runner())


def test_replace_movie_without_candidate_returns_message() -> None:
    service = build_service()
    movies = [Candidate(id=1, runtime=120, rating=8), Candidate(id=2, runtime=300, rating=8)]
    request = SearchRequest(filters=MovieFilters(total_time=2), movies=movies)

    async def runner() -> None:
        session = await service.create_session(request)
        result = await service.replace_movie(session.id, 0, 1)
        assert result.replacement is None
        assert result.to_payload()["message"] == NO_REPLACEMENT_MESSAGE
        assert session.combinations[0].movie_ids() == [1]

    asyncio.run(runner())


def test_replace_movie_errors() -> None:
    service = build_service()
    request = SearchRequest(filters=MovieFilters(total_time=2), movies=pool())

    async def runner() -> None:
        session = await service.create_session(request)
        with pytest.raises(KeyError):
            await service.replace_movie("missing", 0, 1)
        with pytest.raises(ValueError):
            await service.replace_movie(session.id, 9, 1)
        with pytest.raises(ValueError):
            await service.replace_movie(session.id, 0, 6)

    asyncio.run(runner())


def test_mark_watched_repairs_bundle_and_excludes_movie() -> None:
    service = build_service()
    movies = pool() + [Candidate(id=7, runtime=62, rating=3)]
    request = SearchRequest(filters=MovieFilters(total_time=2), movies=movies, count=1)

    async def runner() -> None:
        session = await service.create_session(request)
        result = await service.mark_watched(session.id, 1)

        assert result.combination_index == 0
        assert result.replacement.id == 3
        assert session.combinations[0].movie_ids() == [3, 2]
        assert await service.watch_history.should_exclude(1)

        fresh = await service.create_session(request)
        assert 1 not in fresh.combinations[0].movie_ids()

    asyncio.run(runner())


def test_mark_watched_in_list_view() -> None:
    service = build_service()
    request = SearchRequest(movies=pool())

    async def runner() -> None:
        session = await service.create_session(request)
        assert session.combinations == []
        assert [movie.id for movie in session.movies] == [1, 2, 3, 4, 5, 6]

        result = await service.mark_watched(session.id, 2)
        assert result.replacement is None
        assert result.removed
        assert [movie.id for movie in session.movies] == [1, 3, 4, 5, 6]

        with pytest.raises(ValueError):
            await service.mark_watched(session.id, 2)

    asyncio.run(runner())


def test_concurrent_replacements_are_serialised() -> None:
    service = build_service()
    movies = [Candidate(id=index, runtime=60, rating=10 - index * 0.5) for index in range(1, 11)]
    request = SearchRequest(filters=MovieFilters(total_time=2), movies=movies, count=2)

    async def runner() -> None:
        session = await service.create_session(request)
        first, second = session.combinations
        await asyncio.gather(
            service.replace_movie(session.id, 0, first.movies[0].id),
            service.replace_movie(session.id, 1, second.movies[0].id),
        )
        shown = [movie_id for combo in session.combinations for movie_id in combo.movie_ids()]
        assert len(shown) == len(set(shown))

    asyncio.run(runner())


def test_recommend_returns_ranked_movies() -> None:
    service = build_service()
    request = SearchRequest(filters=MovieFilters(min_score=6), movies=pool(), count=2)
    movies = asyncio.run(service.recommend(request))
    assert [movie.id for movie in movies] == [1, 2]


def test_provider_bundles_only_use_movies_on_selected_services() -> None:
    service = build_service()
    movies = [
        Candidate(id=1, runtime=120, rating=8, available_on=("8",)),
        Candidate(id=2, runtime=120, rating=9),
    ]
    filters = MovieFilters(total_time=2, streaming_providers=("netflix", "hulu"))

    async def runner() -> None:
        session = await service.create_session(SearchRequest(filters=filters, movies=movies))
        assert [(c.provider, c.movie_ids()) for c in session.combinations] == [
            ("netflix", [1])
        ]

        listed = await service.recommend(
            SearchRequest(filters=MovieFilters(streaming_providers=("netflix",)), movies=movies)
        )
        assert [movie.id for movie in listed] == [1]

    asyncio.run(runner())


def test_service_fetches_through_catalog_source_factory() -> None:
    requested: list[MovieFilters] = []

    class RecordingSource:
        def __init__(self, candidates) -> None:
            self._candidates = list(candidates)

        async def fetch_candidates(self, filters: MovieFilters) -> list[Candidate]:
            requested.append(filters)
            return list(reversed(self._candidates))

    service = MovieNightService(
        Settings(_env_file=None), InMemoryWatchHistory(), catalog_source_factory=RecordingSource
    )
    filters = MovieFilters(min_score=9)

    movies = asyncio.run(service.recommend(SearchRequest(filters=filters, movies=pool())))

    assert requested == [filters]
    assert [movie.id for movie in movies] == [6, 5, 4, 3, 2, 1]
