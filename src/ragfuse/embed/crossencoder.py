"""Cross-encoder wrapper for scoring (query, passage) pairs."""

from __future__ import annotations

import numpy as np
from sentence_transformers import CrossEncoder as _CrossEncoder

from ragfuse.config import RerankConfig
from ragfuse.embed.cache import ScoreCache
from ragfuse.logging import get_logger

log = get_logger(__name__)


class CrossEncoder:
    """Wraps a cross-encoder model as a pairwise relevance scorer.

    Usable directly as a ``score_fn`` (``scorer(query, passage) -> float``)
    or in batch through :meth:`score_pairs`. Scores are memoised per
    (model, query, passage).
    """

    def __init__(self, config: RerankConfig, cache: ScoreCache | None = None) -> None:
        self.config = config
        log.info("loading_crossencoder", model=config.crossencoder_model)
        self.model = _CrossEncoder(
            config.crossencoder_model,
            max_length=config.max_length,
        )
        self.cache = cache if cache is not None else ScoreCache(max_size=config.score_cache_size)

    def __call__(self, query: str, passage: str) -> float:
        return float(self.score_pairs(query, [passage])[0])

    def score_pairs(self, query: str, passages: list[str]) -> np.ndarray:
        """Return relevance scores for each (query, passage) pair.

        Returns a 1-D float32 array of length ``len(passages)``.
        """
        if not passages:
            return np.array([], dtype=np.float32)

        model_id = self.config.crossencoder_model
        scores = np.empty(len(passages), dtype=np.float32)
        missing: list[int] = []
        for i, passage in enumerate(passages):
            cached = self.cache.get(model_id, query, passage)
            if cached is None:
                missing.append(i)
            else:
                scores[i] = cached

        if missing:
            pairs = [[query, passages[i]] for i in missing]
            predicted = self.model.predict(
                pairs,
                batch_size=self.config.batch_size,
                show_progress_bar=False,
            )
            for i, score in zip(missing, np.asarray(predicted, dtype=np.float32).reshape(-1)):
                scores[i] = score
                self.cache.put(model_id, query, passages[i], float(score))

        log.debug("crossencoder_scored", n_pairs=len(passages), n_computed=len(missing))
        return scores
