"""Search for movie-night bundles that fill a viewing-time budget."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterator, Mapping, Sequence

from ..models import Candidate, Combination

logger = logging.getLogger(__name__)

MARGIN_MINUTES = 30
MAX_COMBINATION_SIZE = 5
SIZE_CLASS_CAP = 1_000
PROVIDER_COMBINATION_COUNT = 3

TIME_WEIGHT = 0.3
RATING_WEIGHT = 0.7


@dataclass(frozen=True, slots=True)
class ScoredCombination:
    """A qualifying bundle together with its ranking score."""

    combination: Combination
    score: float


def score_combination(
    total_runtime: float,
    average_rating: float,
    target_minutes: float,
    margin: float = MARGIN_MINUTES,
) -> float:
    """Blend closeness to the target runtime with the average rating.

    Time accuracy is 1.0 at the target and falls linearly to 0.0 at either
    edge of the band. Rating carries 70% of the weight.
    """

    time_accuracy = 1 - abs(total_runtime - target_minutes) / margin
    rating_score = average_rating / 10
    return TIME_WEIGHT * time_accuracy + RATING_WEIGHT * rating_score


def _iter_subsets(
    runtimes: Sequence[int], size: int, lower_bound: float, upper_bound: float
) -> Iterator[tuple[tuple[int, ...], int]]:
    """Yield ``(indices, total)`` for ordered subsets whose total is in band.

    Subsets are produced depth first in pool order using an explicit stack of
    immutable partial selections. A branch is abandoned once its running
    total exceeds ``upper_bound``, or when even the longest remaining movies
    could not lift it to ``lower_bound``.
    """

    count = len(runtimes)
    suffix_max = [0] * (count + 1)
    for index in range(count - 1, -1, -1):
        suffix_max[index] = max(runtimes[index], suffix_max[index + 1])

    stack: list[tuple[int, tuple[int, ...], int]] = [(0, (), 0)]
    while stack:
        start, chosen, total = stack.pop()
        if len(chosen) == size:
            yield chosen, total
            continue

        # Leave enough trailing items to complete the subset.
        stop = count - (size - len(chosen)) + 1
        children: list[tuple[int, tuple[int, ...], int]] = []
        remaining = size - len(chosen) - 1
        for index in range(start, stop):
            new_total = total + runtimes[index]
            if new_total > upper_bound:
                continue
            if new_total + remaining * suffix_max[index + 1] < lower_bound:
                continue
            children.append((index + 1, chosen + (index,), new_total))
        stack.extend(reversed(children))


def _collect_size_class(
    movies: Sequence[Candidate],
    size: int,
    target_minutes: float,
    margin: float,
    size_cap: int,
) -> list[ScoredCombination]:
    lower_bound = target_minutes - margin
    upper_bound = target_minutes + margin
    runtimes = [movie.runtime or 0 for movie in movies]

    results: list[ScoredCombination] = []
    for indices, total in _iter_subsets(runtimes, size, lower_bound, upper_bound):
        combination = Combination.from_movies([movies[index] for index in indices])
        score = score_combination(
            total, combination.average_rating, target_minutes, margin
        )
        results.append(ScoredCombination(combination=combination, score=score))
        if len(results) > size_cap:
            logger.debug(
                "Stopped collecting %s-movie bundles after %s matches", size, len(results)
            )
            break
    return results


def rank_combinations(
    pool: Sequence[Candidate],
    target_hours: float,
    *,
    margin: float = MARGIN_MINUTES,
    max_size: int = MAX_COMBINATION_SIZE,
    size_cap: int = SIZE_CLASS_CAP,
) -> list[ScoredCombination]:
    """Return every qualifying bundle ordered by descending score.

    Bundles may overlap; :func:`generate_combinations` applies the
    disjointness constraint on top of this ranking.
    """

    if target_hours <= 0:
        return []
    valid_movies = [movie for movie in pool if movie.has_runtime]
    if not valid_movies:
        return []

    target_minutes = target_hours * 60
    scored: list[ScoredCombination] = []
    for size in range(1, min(max_size, len(valid_movies)) + 1):
        scored.extend(
            _collect_size_class(valid_movies, size, target_minutes, margin, size_cap)
        )

    scored.sort(key=lambda item: item.score, reverse=True)
    return scored


def select_disjoint(
    ranked: Sequence[ScoredCombination], count: int
) -> list[Combination]:
    """Greedily take the best bundles that share no movie with earlier picks."""

    selected: list[Combination] = []
    used_ids: set[int] = set()
    for item in ranked:
        if len(selected) >= count:
            break
        movie_ids = item.combination.movie_ids()
        if any(movie_id in used_ids for movie_id in movie_ids):
            continue
        selected.append(item.combination)
        used_ids.update(movie_ids)
    return selected


def generate_combinations(
    pool: Sequence[Candidate],
    target_hours: float,
    count: int = 5,
    *,
    margin: float = MARGIN_MINUTES,
    max_size: int = MAX_COMBINATION_SIZE,
    size_cap: int = SIZE_CLASS_CAP,
) -> list[Combination]:
    """Return up to ``count`` ranked, mutually disjoint movie-night bundles.

    Each bundle's total runtime lies within ``target_hours * 60 ± margin``.
    An empty list is returned when the pool has no usable runtimes, the
    target or count is not positive, or nothing fits the band.
    """

    if count <= 0:
        return []
    ranked = rank_combinations(
        pool, target_hours, margin=margin, max_size=max_size, size_cap=size_cap
    )
    selected = select_disjoint(ranked, count)
    logger.debug(
        "Selected %s of %s qualifying bundles for %sh from %s movies",
        len(selected),
        len(ranked),
        target_hours,
        len(pool),
    )
    return selected


def generate_combinations_per_provider(
    pool: Sequence[Candidate],
    target_hours: float,
    provider_keys: Sequence[str],
    provider_map: Mapping[str, str],
    *,
    per_provider: int = PROVIDER_COMBINATION_COUNT,
    used_ids: frozenset[int] = frozenset(),
    margin: float = MARGIN_MINUTES,
    max_size: int = MAX_COMBINATION_SIZE,
    size_cap: int = SIZE_CLASS_CAP,
) -> tuple[list[Combination], frozenset[int]]:
    """Generate bundles for each streaming provider in the order given.

    Movies consumed for one provider are never reused for a later one. When
    no unused movie is available on a provider, that provider draws from the
    whole unused pool instead. Returns the tagged bundles together with the
    updated set of used movie ids.
    """

    logger.info(
        "Generating bundles for %s provider(s) from %s movies",
        len(provider_keys),
        len(pool),
    )
    combinations: list[Combination] = []
    used = set(used_ids)

    for provider_key in provider_keys:
        catalog_id = provider_map.get(provider_key)
        unused_movies = [movie for movie in pool if movie.id not in used]
        provider_movies = [
            movie for movie in unused_movies if movie.is_available_on(catalog_id)
        ]
        movies_to_use = provider_movies or unused_movies
        if not movies_to_use:
            logger.info("No unused movies left for provider %s", provider_key)
            continue
        if not provider_movies:
            logger.debug(
                "No unused movies on %s, falling back to %s unused movies",
                provider_key,
                len(unused_movies),
            )

        provider_combinations = generate_combinations(
            movies_to_use,
            target_hours,
            per_provider,
            margin=margin,
            max_size=max_size,
            size_cap=size_cap,
        )
        for combination in provider_combinations:
            tagged = combination.model_copy(update={"provider": provider_key})
            combinations.append(tagged)
            used.update(tagged.movie_ids())
        logger.debug(
            "Generated %s bundles for provider %s",
            len(provider_combinations),
            provider_key,
        )

    return combinations, frozenset(used)
