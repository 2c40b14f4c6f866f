"""Result fusion strategies for multi-strategy retrieval.

Two modes are available and a caller picks exactly one per call:

* ``rrf``: reciprocal rank fusion. Only positions matter, so lists whose
  scores live on different scales can be mixed freely.
* ``score``: each list's raw scores are min-max normalised into [0, 1],
  weighted, and summed.

Both return one :class:`FusedResult` per distinct item id, ordered by fused
score descending and then by item id ascending.
"""

from __future__ import annotations

import math
from typing import Any, Iterable, Sequence

from pydantic import ValidationError

from ragfuse.errors import InvalidInput
from ragfuse.logging import get_logger
from ragfuse.search.schemas import FusedResult, RankedList, RankedResult

log = get_logger(__name__)

FUSION_MODES = ("rrf", "score")


def fuse(
    lists: Sequence[RankedList],
    k: int = 60,
    weights: Sequence[float] | None = None,
) -> list[FusedResult]:
    """Fuse multiple ranked lists using Reciprocal Rank Fusion.

    Every occurrence of an item at 1-based rank ``r`` in list ``i`` adds
    ``weights[i] / (k + r)`` to that item's fused score.

    Parameters
    ----------
    lists:
        Ranked lists, best first. Entries are :class:`RankedResult` objects,
        ``(item_id, score)`` pairs or ``{"item_id", "score"}`` mappings.
        Inner lists may be empty; the outer sequence may not.
    k:
        RRF damping constant (higher = more uniform weighting across ranks).
    weights:
        Optional per-list multipliers, one per list. Defaults to 1.0 each.
    """
    ranked_lists = _coerce_lists(lists)
    if isinstance(k, bool) or not isinstance(k, (int, float)) or not k > 0:
        raise InvalidInput(f"k must be a positive number, got {k!r}")
    list_weights = _resolve_weights(weights, len(ranked_lists))

    rrf_scores: dict[str, float] = {}
    for ranked_list, weight in zip(ranked_lists, list_weights):
        for rank, result in enumerate(ranked_list, 1):
            rrf_scores[result.item_id] = rrf_scores.get(result.item_id, 0.0) + weight / (k + rank)

    fused = _sorted_results(rrf_scores)
    log.debug("fusion_complete", mode="rrf", n_lists=len(ranked_lists), n_items=len(fused), k=k)
    return fused


def fuse_scores(
    lists: Sequence[RankedList],
    weights: Sequence[float] | None = None,
) -> list[FusedResult]:
    """Fuse lists by summing weighted, per-list min-max normalised raw scores."""
    ranked_lists = _coerce_lists(lists)
    list_weights = _resolve_weights(weights, len(ranked_lists))

    fused_scores: dict[str, float] = {}
    for ranked_list, weight in zip(ranked_lists, list_weights):
        normalized = normalize_scores([r.score for r in ranked_list])
        for result, norm in zip(ranked_list, normalized):
            fused_scores[result.item_id] = fused_scores.get(result.item_id, 0.0) + weight * norm

    fused = _sorted_results(fused_scores)
    log.debug("fusion_complete", mode="score", n_lists=len(ranked_lists), n_items=len(fused))
    return fused


def fuse_with_mode(
    lists: Sequence[RankedList],
    mode: str = "rrf",
    k: int = 60,
    weights: Sequence[float] | None = None,
) -> list[FusedResult]:
    """Dispatch to exactly one fusion mode."""
    if mode == "rrf":
        return fuse(lists, k=k, weights=weights)
    if mode == "score":
        return fuse_scores(lists, weights=weights)
    raise InvalidInput(f"Unknown fusion mode {mode!r}, expected one of {FUSION_MODES}")


def normalize_scores(scores: Sequence[float]) -> list[float]:
    """Min-max rescale *scores* into [0, 1].

    A flat list (every score equal, including a single score) maps to 1.0
    for every entry. An empty list maps to an empty list.
    """
    if not scores:
        return []
    for s in scores:
        if not math.isfinite(s):
            raise InvalidInput(f"Cannot normalise non-finite score {s!r}")

    lo, hi = min(scores), max(scores)
    if hi > lo:
        span = hi - lo
        return [(s - lo) / span for s in scores]
    return [1.0] * len(scores)


def as_ranked_result(entry: Any) -> RankedResult:
    """Coerce one ranked-list entry into a :class:`RankedResult`."""
    if isinstance(entry, RankedResult):
        return entry
    try:
        if isinstance(entry, dict):
            return RankedResult(**entry)
        if isinstance(entry, (tuple, list)) and len(entry) == 2:
            item_id, score = entry
            return RankedResult(item_id=item_id, score=score)
    except ValidationError as exc:
        raise InvalidInput(f"Malformed ranked entry {entry!r}: {exc}") from exc
    raise InvalidInput(f"Expected RankedResult, (item_id, score) or mapping, got {entry!r}")


# Private Functions

def _coerce_lists(lists: Sequence[RankedList]) -> list[list[RankedResult]]:
    outer = list(lists) if _is_entry_sequence(lists) else []
    if not outer:
        raise InvalidInput("At least one ranked list is required")
    coerced = []
    for i, ranked_list in enumerate(outer):
        if not _is_entry_sequence(ranked_list):
            raise InvalidInput(f"Ranked list {i} must be a sequence of entries, got {ranked_list!r}")
        coerced.append([as_ranked_result(entry) for entry in ranked_list])
    return coerced


def _is_entry_sequence(value: Any) -> bool:
    return isinstance(value, Iterable) and not isinstance(value, (str, bytes, dict))


def _resolve_weights(weights: Sequence[float] | None, n_lists: int) -> list[float]:
    if weights is None:
        return [1.0] * n_lists
    if len(weights) != n_lists:
        raise InvalidInput(f"Got {len(weights)} weights for {n_lists} ranked lists")
    resolved = []
    for w in weights:
        if isinstance(w, bool) or not isinstance(w, (int, float)) or not math.isfinite(w) or w < 0:
            raise InvalidInput(f"Weights must be finite and non-negative, got {w!r}")
        resolved.append(float(w))
    return resolved


def _sorted_results(scores: dict[str, float]) -> list[FusedResult]:
    ordered = sorted(scores.items(), key=lambda x: (-x[1], x[0]))
    return [
        FusedResult(item_id=item_id, fusion_score=score, rank=rank)
        for rank, (item_id, score) in enumerate(ordered, 1)
    ]
