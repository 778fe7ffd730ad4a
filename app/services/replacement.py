"""Swap single movies inside delivered bundles without repeating picks."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Collection, Iterable, Sequence

from ..models import Candidate, Combination

logger = logging.getLogger(__name__)

REPLACEMENT_MARGIN_MINUTES = 15
DEFAULT_RUNTIME_MINUTES = 90


def _candidates_within(
    original: Candidate,
    pool: Sequence[Candidate],
    excluded: Collection[int],
    target_runtime: int,
    margin: int,
) -> list[Candidate]:
    low = target_runtime - margin
    high = target_runtime + margin
    return [
        movie
        for movie in pool
        if movie.id != original.id
        and movie.id not in excluded
        and movie.runtime
        and low <= movie.runtime <= high
    ]


def find_replacement(
    original: Candidate,
    pool: Sequence[Candidate],
    excluded_ids: Iterable[int],
    *,
    margin: int = REPLACEMENT_MARGIN_MINUTES,
    default_runtime: int = DEFAULT_RUNTIME_MINUTES,
) -> Candidate | None:
    """Return the best rated movie of similar length, or ``None``.

    Movies within ``margin`` minutes of the original are tried first; if
    there are none the window is doubled once. Ties on rating keep pool
    order.
    """

    excluded = set(excluded_ids)
    target_runtime = original.runtime or default_runtime

    candidates = _candidates_within(original, pool, excluded, target_runtime, margin)
    if not candidates:
        logger.debug(
            "No replacement within %s minutes of %s, widening to %s",
            margin,
            target_runtime,
            margin * 2,
        )
        candidates = _candidates_within(
            original, pool, excluded, target_runtime, margin * 2
        )

    if not candidates:
        logger.info("No suitable replacement found for movie %s", original.id)
        return None

    # sorted() is stable so equal ratings keep pool order.
    replacement = sorted(candidates, key=lambda movie: movie.rating, reverse=True)[0]
    logger.debug(
        "Replacing movie %s (%s min) with %s (%s min)",
        original.id,
        original.runtime,
        replacement.id,
        replacement.runtime,
    )
    return replacement


@dataclass(frozen=True, slots=True)
class SlotKey:
    """Identifies one position inside one displayed bundle."""

    combination_index: int
    position: int

    def __str__(self) -> str:
        return f"{self.combination_index}-{self.position}"


@dataclass
class ReplacementHistory:
    """Ordered ids that have occupied each bundle slot.

    The history only grows while a batch is displayed and must be cleared
    whenever a new batch is generated.
    """

    slots: dict[SlotKey, list[int]] = field(default_factory=dict)

    def record(self, slot: SlotKey, movie_id: int) -> None:
        entries = self.slots.setdefault(slot, [])
        if movie_id not in entries:
            entries.append(movie_id)

    def history_for(self, slot: SlotKey) -> list[int]:
        return list(self.slots.get(slot, ()))

    def seed(self, combinations: Sequence[Combination]) -> None:
        """Register the initial occupant of every slot."""

        for combination_index, combination in enumerate(combinations):
            for position, movie in enumerate(combination.movies):
                self.record(SlotKey(combination_index, position), movie.id)

    def clear(self) -> None:
        self.slots.clear()

    def to_payload(self) -> dict[str, list[int]]:
        return {str(slot): list(ids) for slot, ids in self.slots.items()}


def displayed_ids(combinations: Iterable[Combination]) -> set[int]:
    return {movie.id for combination in combinations for movie in combination.movies}


def excluded_ids_for(
    combinations: Sequence[Combination],
    history: ReplacementHistory,
    slot: SlotKey,
) -> set[int]:
    """Ids a replacement for ``slot`` may not use.

    This is every movie currently shown in any bundle plus every movie that
    has ever occupied the slot.
    """

    return displayed_ids(combinations) | set(history.history_for(slot))


@dataclass
class ReplacementOutcome:
    """Result of applying one replacement to a list of bundles."""

    combinations: list[Combination]
    replaced: Candidate
    replacement: Candidate | None
    slot: SlotKey

    @property
    def succeeded(self) -> bool:
        return self.replacement is not None


def replace_in_combinations(
    combinations: Sequence[Combination],
    combination_index: int,
    movie_id: int,
    pool: Sequence[Candidate],
    history: ReplacementHistory,
    *,
    margin: int = REPLACEMENT_MARGIN_MINUTES,
    default_runtime: int = DEFAULT_RUNTIME_MINUTES,
) -> ReplacementOutcome:
    """Replace ``movie_id`` inside one bundle and update the slot history.

    The returned outcome carries a new list of bundles; the input sequence is
    left untouched. When no substitute exists the bundles are returned
    unchanged and ``replacement`` is ``None``.
    """

    if not 0 <= combination_index < len(combinations):
        raise ValueError(f"Combination {combination_index} does not exist")
    combination = combinations[combination_index]
    position = combination.position_of(movie_id)
    original = combination.movies[position]
    slot = SlotKey(combination_index, position)

    # The current occupant always counts as part of the slot's history.
    history.record(slot, original.id)
    excluded = excluded_ids_for(combinations, history, slot)
    replacement = find_replacement(
        original,
        pool,
        excluded,
        margin=margin,
        default_runtime=default_runtime,
    )

    updated = list(combinations)
    if replacement is not None:
        updated[combination_index] = combination.with_replacement(position, replacement)
        history.record(slot, replacement.id)
    return ReplacementOutcome(
        combinations=updated,
        replaced=original,
        replacement=replacement,
        slot=slot,
    )


def replace_in_list(
    movies: Sequence[Candidate],
    movie_id: int,
    pool: Sequence[Candidate],
    *,
    margin: int = REPLACEMENT_MARGIN_MINUTES,
    default_runtime: int = DEFAULT_RUNTIME_MINUTES,
) -> tuple[list[Candidate], Candidate | None]:
    """Replace a movie in a ranked list, dropping it when nothing fits."""

    original = next((movie for movie in movies if movie.id == movie_id), None)
    if original is None:
        raise ValueError(f"Movie {movie_id} is not in the list")

    shown = {movie.id for movie in movies if movie.id != movie_id}
    replacement = find_replacement(
        original, pool, shown, margin=margin, default_runtime=default_runtime
    )
    if replacement is None:
        return [movie for movie in movies if movie.id != movie_id], None
    return [replacement if movie.id == movie_id else movie for movie in movies], replacement
