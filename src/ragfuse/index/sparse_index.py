"""BM25 keyword retriever producing ranked lists for fusion."""

from __future__ import annotations

from typing import Mapping

import numpy as np
from rank_bm25 import BM25Okapi

from ragfuse.errors import InvalidInput
from ragfuse.logging import get_logger
from ragfuse.search.schemas import RankedResult
from ragfuse.text import tokenize

log = get_logger(__name__)


class SparseIndex:
    """In-memory BM25 retrieval over ``item_id -> text`` documents."""

    def __init__(self) -> None:
        self._bm25: BM25Okapi | None = None
        self._ids: list[str] = []
        self._texts: list[str] = []

    def __len__(self) -> int:
        return len(self._ids)

    def __call__(self, query: str, top_k: int) -> list[RankedResult]:
        return self.search(query, top_k)

    def build(self, documents: Mapping[str, str]) -> None:
        if not documents:
            raise InvalidInput("Cannot build a BM25 index over zero documents")
        self._ids = list(documents.keys())
        self._texts = list(documents.values())
        self._bm25 = BM25Okapi([tokenize(t) for t in self._texts])
        log.info("sparse_index_built", n_docs=len(self._ids))

    def search(self, query: str, top_k: int) -> list[RankedResult]:
        """Return up to *top_k* positive-scoring documents, best first."""
        if self._bm25 is None:
            raise InvalidInput("Sparse index not built")
        if top_k <= 0:
            raise InvalidInput(f"top_k must be positive, got {top_k}")

        tokens = tokenize(query)
        if not tokens:
            return []
        scores = np.asarray(self._bm25.get_scores(tokens), dtype=np.float64)

        # Sort by score desc, then item id asc so equal scores rank stably
        order = sorted(range(len(self._ids)), key=lambda i: (-scores[i], self._ids[i]))
        results = []
        for idx in order[:top_k]:
            if scores[idx] <= 0:
                break
            results.append(
                RankedResult(item_id=self._ids[idx], score=float(scores[idx]), payload=self._texts[idx])
            )
        return results
