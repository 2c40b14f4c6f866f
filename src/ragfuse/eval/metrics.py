"""Ranking evaluation metrics for comparing input lists with fused output."""

from __future__ import annotations

from typing import Sequence

import numpy as np


def recall_at_k(relevant_id: str, retrieved_ids: Sequence[str], k: int) -> float:
    """1.0 if the relevant id appears in the top-k retrieved, else 0.0."""
    return 1.0 if relevant_id in retrieved_ids[:k] else 0.0


def mrr_at_k(relevant_id: str, retrieved_ids: Sequence[str], k: int) -> float:
    """Reciprocal rank of the relevant id within the top-k, or 0 if absent."""
    for rank, rid in enumerate(retrieved_ids[:k], 1):
        if rid == relevant_id:
            return 1.0 / rank
    return 0.0


def ndcg_at_k(relevant_id: str, retrieved_ids: Sequence[str], k: int) -> float:
    """Binary-relevance nDCG@k with a single relevant item (ideal DCG is 1)."""
    for rank, rid in enumerate(retrieved_ids[:k], 1):
        if rid == relevant_id:
            return float(1.0 / np.log2(rank + 1))
    return 0.0


def compute_metrics(
    queries: list[dict],
    ks: Sequence[int] = (1, 5, 10),
) -> dict[str, dict[str, float]]:
    """Average metrics per named ranking over a list of query records.

    Each record must have:
        - relevant_id: str
        - rankings: dict[str, list[str]]  (ranking name -> ids, best first)

    Returns ``{ranking_name: {metric_name: mean}}``. MRR and nDCG use the
    largest k in *ks*.
    """
    if not ks:
        raise ValueError("At least one cutoff is required")
    top = max(ks)
    per_ranking: dict[str, dict[str, list[float]]] = {}

    for q in queries:
        rel_id = q["relevant_id"]
        for name, ids in q["rankings"].items():
            bucket = per_ranking.setdefault(name, {})
            for k in ks:
                bucket.setdefault(f"recall@{k}", []).append(recall_at_k(rel_id, ids, k))
            bucket.setdefault(f"mrr@{top}", []).append(mrr_at_k(rel_id, ids, top))
            bucket.setdefault(f"ndcg@{top}", []).append(ndcg_at_k(rel_id, ids, top))

    return {
        name: {metric: round(float(np.mean(vals)), 4) for metric, vals in sorted(bucket.items())}
        for name, bucket in per_ranking.items()
    }
