"""Pairwise reranking of fused candidates.

The scorer is treated as the only source of final ordering: fusion-stage
scores are never mixed back in. Sorting is stable, so candidates with equal
relevance keep the order they arrived in.
"""

from __future__ import annotations

import math
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Sequence

from pydantic import ValidationError

from ragfuse.errors import InvalidInput, ScoringFailure
from ragfuse.logging import get_logger
from ragfuse.search.schemas import Candidate, CandidateInput, RerankedResult

log = get_logger(__name__)

ScoreFn = Callable[[str, str], float]
ScorePairsFn = Callable[[str, list[str]], Sequence[float]]


def rerank(
    query: str,
    candidates: Sequence[CandidateInput],
    score_fn: ScoreFn,
    top_k: int,
    max_workers: int | None = None,
) -> list[RerankedResult]:
    """Score every candidate against *query* and return the best ``top_k``.

    ``score_fn(query, payload)`` is called exactly once per candidate. With
    ``max_workers > 1`` the calls run on a thread pool; the result is the
    same as serial scoring. ``top_k`` larger than the candidate count is
    clamped. Any scorer error aborts the whole call as :class:`ScoringFailure`.
    """
    items = _validate(candidates, top_k)

    if max_workers is not None and max_workers > 1 and len(items) > 1:
        with ThreadPoolExecutor(max_workers=min(max_workers, len(items))) as pool:
            futures = [pool.submit(_score_one, score_fn, query, c) for c in items]
            # Wait for every call before surfacing the first failure
            errors = [f.exception() for f in futures]
            for err in errors:
                if err is not None:
                    raise err
            scores = [f.result() for f in futures]
    else:
        scores = [_score_one(score_fn, query, c) for c in items]

    return _order(items, scores, top_k)


def rerank_batch(
    query: str,
    candidates: Sequence[CandidateInput],
    score_pairs_fn: ScorePairsFn,
    top_k: int,
) -> list[RerankedResult]:
    """Like :func:`rerank`, for scorers that take every payload in one call."""
    items = _validate(candidates, top_k)
    payloads = [c.payload for c in items]

    try:
        # A scalar, None or a stream that breaks midway all fail here
        raw_scores = list(score_pairs_fn(query, payloads))
    except Exception as exc:
        log.error("scoring_failed", n_candidates=len(items), error=str(exc))
        raise ScoringFailure(f"Batch scorer failed: {exc}") from exc

    if len(raw_scores) != len(items):
        raise ScoringFailure(
            f"Batch scorer returned {len(raw_scores)} scores for {len(items)} candidates"
        )
    scores = [_check_score(raw, c.item_id) for raw, c in zip(raw_scores, items)]
    return _order(items, scores, top_k)


def as_candidate(entry: Any) -> Candidate:
    """Coerce a ``(item_id, payload)`` pair or mapping into a :class:`Candidate`."""
    if isinstance(entry, Candidate):
        return entry
    try:
        if isinstance(entry, dict):
            return Candidate(**entry)
        if isinstance(entry, (tuple, list)) and len(entry) == 2:
            item_id, payload = entry
            return Candidate(item_id=item_id, payload=payload)
    except ValidationError as exc:
        raise InvalidInput(f"Malformed candidate {entry!r}: {exc}") from exc
    raise InvalidInput(f"Expected Candidate, (item_id, payload) or mapping, got {entry!r}")


# Private Functions

def _validate(candidates: Sequence[CandidateInput], top_k: int) -> list[Candidate]:
    if not candidates:
        raise InvalidInput("At least one candidate is required for reranking")
    if isinstance(top_k, bool) or not isinstance(top_k, int) or top_k <= 0:
        raise InvalidInput(f"top_k must be a positive integer, got {top_k!r}")
    return [as_candidate(c) for c in candidates]


def _score_one(score_fn: ScoreFn, query: str, candidate: Candidate) -> float:
    try:
        raw = score_fn(query, candidate.payload)
    except Exception as exc:
        log.error("scoring_failed", item_id=candidate.item_id, error=str(exc))
        raise ScoringFailure(
            f"Scorer failed on item {candidate.item_id!r}: {exc}", item_id=candidate.item_id
        ) from exc
    return _check_score(raw, candidate.item_id)


def _check_score(raw: Any, item_id: str) -> float:
    try:
        score = float(raw)
    except (TypeError, ValueError) as exc:
        raise ScoringFailure(
            f"Scorer returned non-numeric value {raw!r} for item {item_id!r}", item_id=item_id
        ) from exc
    if math.isnan(score):
        raise ScoringFailure(f"Scorer returned NaN for item {item_id!r}", item_id=item_id)
    return score


def _order(items: list[Candidate], scores: list[float], top_k: int) -> list[RerankedResult]:
    # sorted() is stable: equal scores keep their fusion-stage order
    order = sorted(range(len(items)), key=lambda i: scores[i], reverse=True)
    limit = min(top_k, len(items))
    results = [
        RerankedResult(
            item_id=items[i].item_id,
            payload=items[i].payload,
            relevance_score=scores[i],
            rank=rank,
        )
        for rank, i in enumerate(order[:limit], 1)
    ]
    log.debug("rerank_complete", n_candidates=len(items), n_results=len(results))
    return results
