"""Pydantic models describing candidates, bundles and request payloads."""

from __future__ import annotations

from typing import Any, Literal, Sequence

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from .languages import LANGUAGE_KEYS
from .providers import STREAMING_PROVIDER_KEYS
from .utils import format_runtime, normalize_keys, summarize

LanguagePreference = Literal["english", "international", "all"]


class Candidate(BaseModel):
    """A movie that may be placed in a bundle.

    Field names follow the catalog payloads so TMDB style dictionaries can be
    validated directly (``vote_average`` and ``availableOn`` are accepted).
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: int
    title: str = ""
    runtime: int | None = None
    rating: float = Field(
        default=0.0,
        ge=0,
        le=10,
        validation_alias=AliasChoices("rating", "vote_average", "voteAverage"),
    )
    available_on: tuple[str, ...] = Field(
        default=(),
        validation_alias=AliasChoices("available_on", "availableOn"),
    )
    original_language: str | None = Field(
        default=None,
        validation_alias=AliasChoices("original_language", "originalLanguage"),
    )
    release_date: str | None = Field(
        default=None,
        validation_alias=AliasChoices("release_date", "releaseDate"),
    )
    release_year: int | None = Field(
        default=None,
        validation_alias=AliasChoices("release_year", "releaseYear", "year"),
    )
    genre_ids: tuple[int, ...] = Field(
        default=(),
        validation_alias=AliasChoices("genre_ids", "genreIds"),
    )
    popularity: float | None = None

    @model_validator(mode="before")
    @classmethod
    def _derive_release_year(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        if any(data.get(key) for key in ("release_year", "releaseYear", "year")):
            return data
        date_value = data.get("release_date") or data.get("releaseDate")
        if not isinstance(date_value, str) or len(date_value) < 4:
            return data
        try:
            year = int(date_value[:4])
        except ValueError:
            return data
        return {**data, "release_year": year}

    @field_validator("available_on", mode="before")
    @classmethod
    def _stringify_providers(cls, value: object) -> object:
        if value is None:
            return ()
        if isinstance(value, (list, tuple, set)):
            return tuple(str(entry) for entry in value)
        return value

    @property
    def has_runtime(self) -> bool:
        return self.runtime is not None and self.runtime > 0

    def is_available_on(self, catalog_id: str | None) -> bool:
        if catalog_id is None:
            return False
        return catalog_id in self.available_on

    def to_payload(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "id": self.id,
            "title": self.title,
            "runtime": self.runtime,
            "rating": self.rating,
        }
        if self.runtime:
            payload["formattedRuntime"] = format_runtime(self.runtime)
        if self.available_on:
            payload["availableOn"] = list(self.available_on)
        if self.original_language:
            payload["originalLanguage"] = self.original_language
        if self.release_year:
            payload["year"] = self.release_year
        return payload


class Combination(BaseModel):
    """An ordered movie-night bundle with its aggregate runtime and rating."""

    movies: list[Candidate]
    total_runtime: int
    average_rating: float
    provider: str | None = None

    @classmethod
    def from_movies(
        cls, movies: Sequence[Candidate], *, provider: str | None = None
    ) -> "Combination":
        if not movies:
            raise ValueError("A combination needs at least one movie")
        total = sum(movie.runtime or 0 for movie in movies)
        average = sum(movie.rating for movie in movies) / len(movies)
        return cls(
            movies=list(movies),
            total_runtime=total,
            average_rating=average,
            provider=provider,
        )

    def movie_ids(self) -> list[int]:
        return [movie.id for movie in self.movies]

    def position_of(self, movie_id: int) -> int:
        """Return the slot index holding ``movie_id``."""

        for position, movie in enumerate(self.movies):
            if movie.id == movie_id:
                return position
        raise ValueError(f"Movie {movie_id} is not part of this combination")

    def with_replacement(self, position: int, replacement: Candidate) -> "Combination":
        """Return a copy with one slot swapped and the totals recomputed.

        The remaining movies keep their positions so slot history stays
        aligned with what is displayed.
        """

        if not 0 <= position < len(self.movies):
            raise ValueError(f"Position {position} is outside this combination")
        movies = list(self.movies)
        movies[position] = replacement
        return Combination.from_movies(movies, provider=self.provider)

    def summary(self) -> str:
        return summarize(self)

    def to_payload(self) -> dict[str, object]:
        return {
            "movies": [movie.to_payload() for movie in self.movies],
            "totalRuntime": self.total_runtime,
            "formattedRuntime": format_runtime(self.total_runtime),
            "averageRating": round(self.average_rating, 2),
            "provider": self.provider,
            "summary": self.summary(),
        }


class MovieFilters(BaseModel):
    """Viewer preferences applied to the candidate pool."""

    model_config = ConfigDict(populate_by_name=True)

    genres: tuple[int, ...] = Field(
        default=(), validation_alias=AliasChoices("genres", "genreIds")
    )
    min_score: float = Field(
        default=0.0,
        ge=0,
        le=10,
        validation_alias=AliasChoices("min_score", "minScore"),
    )
    language: LanguagePreference = "all"
    international_languages: tuple[str, ...] = Field(
        default=(),
        validation_alias=AliasChoices(
            "international_languages", "internationalLanguages"
        ),
    )
    total_time: float | None = Field(
        default=None,
        gt=0,
        le=24,
        validation_alias=AliasChoices("total_time", "totalTime"),
    )
    streaming_providers: tuple[str, ...] = Field(
        default=(),
        validation_alias=AliasChoices("streaming_providers", "streamingProviders"),
    )
    from_year: int | None = Field(
        default=None, validation_alias=AliasChoices("from_year", "fromYear")
    )
    to_year: int | None = Field(
        default=None, validation_alias=AliasChoices("to_year", "toYear")
    )

    @field_validator("streaming_providers", mode="before")
    @classmethod
    def _parse_providers(cls, value: object) -> object:
        if value is None or value == "":
            return ()
        cleaned = normalize_keys(value)
        if any(key not in STREAMING_PROVIDER_KEYS for key in cleaned):
            raise ValueError("Unknown streaming providers requested")
        return cleaned

    @field_validator("international_languages", mode="before")
    @classmethod
    def _parse_languages(cls, value: object) -> object:
        if value is None or value == "":
            return ()
        cleaned = normalize_keys(value)
        if any(key not in LANGUAGE_KEYS for key in cleaned):
            raise ValueError("Unknown languages requested")
        return cleaned

    @field_validator("total_time", "from_year", "to_year", mode="before")
    @classmethod
    def _blank_to_none(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @model_validator(mode="after")
    def _check_year_range(self) -> "MovieFilters":
        if (
            self.from_year is not None
            and self.to_year is not None
            and self.from_year > self.to_year
        ):
            raise ValueError("fromYear must not be later than toYear")
        return self


class SearchRequest(BaseModel):
    """Body accepted by the recommendation and combination endpoints.

    ``movies`` is the candidate pool produced by the caller's catalog source.
    """

    model_config = ConfigDict(populate_by_name=True)

    filters: MovieFilters = Field(default_factory=MovieFilters)
    movies: list[Candidate] = Field(default_factory=list)
    count: int | None = Field(default=None, ge=1, le=100)


class ReplaceRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    combination_index: int = Field(
        ge=0, validation_alias=AliasChoices("combination_index", "combinationIndex")
    )
    movie_id: int = Field(validation_alias=AliasChoices("movie_id", "movieId"))


class WatchedRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    movie_id: int = Field(validation_alias=AliasChoices("movie_id", "movieId"))
    might_watch_again: bool = Field(
        default=False,
        validation_alias=AliasChoices("might_watch_again", "mightWatchAgain"),
    )
