"""Search pipeline: rewrite -> retrieve (per variant, per strategy) -> fuse -> rerank."""

from __future__ import annotations

import contextvars
import time
import uuid
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeout
from typing import Callable, Mapping, Sequence

from ragfuse.config import RagFuseConfig
from ragfuse.errors import InvalidInput
from ragfuse.logging import get_logger, request_context
from ragfuse.search.fusion import as_ranked_result, fuse_with_mode
from ragfuse.search.rerank import rerank, rerank_batch
from ragfuse.search.schemas import (
    Candidate,
    FusedResult,
    RankedList,
    RankedResult,
    RerankedResult,
    SearchRequest,
    SearchResponse,
    SearchResultItem,
)

log = get_logger(__name__)

Retriever = Callable[[str, int], RankedList]
Rewriter = Callable[[str], Sequence[str]]


class FusionPipeline:
    """Runs every retriever over every query variant and fuses the results.

    ``retrievers`` maps a strategy name to a callable ``(query, top_k)``
    returning a ranked list. ``scorer`` is any ``(query, payload) -> float``
    callable; if it also has a ``score_pairs(query, payloads)`` method, the
    candidates are scored in one batch.
    """

    def __init__(
        self,
        config: RagFuseConfig,
        retrievers: Mapping[str, Retriever],
        scorer: Callable[[str, str], float] | None = None,
        rewriter: Rewriter | None = None,
    ) -> None:
        if not retrievers:
            raise InvalidInput("At least one retriever is required")
        self.config = config
        self.retrievers = dict(retrievers)
        self.scorer = scorer
        self.rewriter = rewriter
        self._pool = ThreadPoolExecutor(max_workers=max(2, len(self.retrievers)))
        # Separate from retrieval: a timed-out rerank keeps running here
        # until the scorer returns, without holding up later retrievals.
        self._rerank_pool = ThreadPoolExecutor(max_workers=1)

        log.info(
            "fusion_pipeline_ready",
            retrievers=sorted(self.retrievers),
            reranker=self.scorer is not None,
            rewriter=self.rewriter is not None,
        )

    def __enter__(self) -> FusionPipeline:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self._pool.shutdown(wait=True)
        self._rerank_pool.shutdown(wait=False, cancel_futures=True)

    # Public Functions

    def search(self, request: SearchRequest) -> SearchResponse:
        request_id = uuid.uuid4().hex[:12]
        with request_context(request_id=request_id):
            return self._search(request, request_id)

    # Private Functions

    def _search(self, request: SearchRequest, request_id: str) -> SearchResponse:
        timings: dict[str, float] = {}
        search_cfg = self.config.search
        mode = request.fusion_mode or self.config.fusion.mode
        top_k_retrieve = request.top_k_retrieve or search_cfg.top_k_retrieve
        max_rerank = request.max_rerank_candidates or search_cfg.max_rerank_candidates
        top_k = request.top_k_rerank or search_cfg.top_k_rerank

        # 1. Rewrite
        t0 = time.perf_counter()
        variants = self._variants(request.query, request.rewrite)
        timings["rewrite_ms"] = _ms(t0)

        # 2. Retrieval fan-out
        t1 = time.perf_counter()
        lists, weights = self._retrieve(variants, top_k_retrieve)
        timings["retrieval_ms"] = _ms(t1)

        # 3. Fuse
        t2 = time.perf_counter()
        fused = fuse_with_mode(lists, mode=mode, k=self.config.fusion.rrf_k, weights=weights)
        timings["fusion_ms"] = _ms(t2)
        total_candidates = len(fused)
        payloads = _collect_payloads(lists)

        # 4. Rerank the fused top-M
        rerank_skipped = False
        reranked: list[RerankedResult] | None = None
        t3 = time.perf_counter()
        head = fused[:max_rerank]
        if head and self.scorer is not None:
            candidates = [_candidate(f, payloads) for f in head]
            try:
                reranked = self._rerank_with_timeout(request.query, candidates, top_k)
            except FuturesTimeout:
                log.warning("rerank_timeout", request_id=request_id, n_candidates=len(candidates))
                rerank_skipped = True
        timings["rerank_ms"] = _ms(t3)

        # 5. Build results
        results = _build_results(fused, reranked, payloads, top_k)
        timings["total_ms"] = _ms(t0)

        log.info(
            "search_complete",
            request_id=request_id,
            n_variants=len(variants),
            n_lists=len(lists),
            total_candidates=total_candidates,
            rerank_skipped=rerank_skipped,
        )
        return SearchResponse(
            request_id=request_id,
            query=request.query,
            query_variants=variants,
            fusion_mode=mode,
            results=results,
            timings_ms={k: round(v, 2) for k, v in timings.items()},
            rerank_skipped=rerank_skipped,
            total_candidates=total_candidates,
        )

    def _variants(self, query: str, rewrite: bool | None) -> list[str]:
        enabled = self.config.search.rewrite_queries if rewrite is None else rewrite
        if not enabled or self.rewriter is None:
            return [query]
        variants = list(self.rewriter(query))[: self.config.search.max_query_variants]
        if not variants:
            return [query]
        return variants

    def _retrieve(
        self, variants: list[str], top_k: int
    ) -> tuple[list[list[RankedResult]], list[float]]:
        jobs = [
            (name, _submit(self._pool, retriever, variant, top_k))
            for variant in variants
            for name, retriever in self.retrievers.items()
        ]
        weight_map = self.config.fusion.weights
        lists = [[as_ranked_result(r) for r in future.result()] for _, future in jobs]
        weights = [weight_map.get(name, 1.0) for name, _ in jobs]
        return lists, weights

    def _rerank_with_timeout(
        self, query: str, candidates: list[Candidate], top_k: int
    ) -> list[RerankedResult]:
        future = _submit(self._rerank_pool, self._rerank, query, candidates, top_k)
        return future.result(timeout=self.config.search.rerank_timeout_seconds)

    def _rerank(self, query: str, candidates: list[Candidate], top_k: int) -> list[RerankedResult]:
        score_pairs = getattr(self.scorer, "score_pairs", None)
        if callable(score_pairs):
            return rerank_batch(query, candidates, score_pairs, top_k)
        return rerank(
            query, candidates, self.scorer, top_k, max_workers=self.config.rerank.max_workers
        )


def _submit(pool: ThreadPoolExecutor, fn, *args):
    # Worker threads see the caller's bound log context (request_id)
    return pool.submit(contextvars.copy_context().run, fn, *args)


def _collect_payloads(lists: list[list[RankedResult]]) -> dict[str, str]:
    payloads: dict[str, str] = {}
    for ranked_list in lists:
        for r in ranked_list:
            if r.payload is not None and r.item_id not in payloads:
                payloads[r.item_id] = r.payload
    return payloads


def _candidate(fused: FusedResult, payloads: dict[str, str]) -> Candidate:
    payload = payloads.get(fused.item_id)
    if payload is None:
        raise InvalidInput(f"No payload available to rerank item {fused.item_id!r}")
    return Candidate(item_id=fused.item_id, payload=payload)


def _build_results(
    fused: list[FusedResult],
    reranked: list[RerankedResult] | None,
    payloads: dict[str, str],
    top_k: int,
) -> list[SearchResultItem]:
    by_id = {f.item_id: f for f in fused}
    if reranked is None:
        return [
            SearchResultItem(
                item_id=f.item_id,
                payload=payloads.get(f.item_id),
                fused_rank=f.rank,
                fusion_score=round(f.fusion_score, 6),
                final_rank=f.rank,
            )
            for f in fused[:top_k]
        ]
    return [
        SearchResultItem(
            item_id=r.item_id,
            payload=r.payload,
            fused_rank=by_id[r.item_id].rank,
            fusion_score=round(by_id[r.item_id].fusion_score, 6),
            rerank_score=r.relevance_score,
            final_rank=r.rank,
        )
        for r in reranked
    ]


def _ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000
