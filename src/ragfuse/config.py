"""Central configuration for ragfuse, driven by env vars and/or a .env file."""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings


class FusionConfig(BaseSettings):
    """How ranked lists from several retrievers are combined."""

    model_config = {"env_prefix": "RAGFUSE_FUSION_", "env_file": ".env", "extra": "ignore"}

    mode: Literal["rrf", "score"] = Field(
        "rrf", description="rrf = reciprocal rank fusion, score = min-max normalised score fusion"
    )
    rrf_k: int = Field(60, gt=0, description="RRF damping constant")
    weights: dict[str, float] = Field(
        default_factory=dict,
        description="Per-retriever weight, keyed by retriever name (missing names weigh 1.0)",
    )


class RerankConfig(BaseSettings):
    """Cross-encoder model settings for the reranking stage."""

    model_config = {"env_prefix": "RAGFUSE_RERANK_", "env_file": ".env", "extra": "ignore"}

    # ms-marco-MiniLM-L-6-v2 is ~80 MB and gives a reasonable
    # quality/latency tradeoff for reranking on CPU.
    crossencoder_model: str = Field(
        "cross-encoder/ms-marco-MiniLM-L-6-v2",
        description="Cross-encoder model id for reranking",
    )
    batch_size: int = 16
    max_length: int = 512
    max_workers: int = Field(1, ge=1, description="Threads used to score candidates one by one")
    score_cache_size: int = Field(4096, description="LRU cache size for (query, passage) scores")


class SearchConfig(BaseSettings):
    """Pipeline defaults."""

    model_config = {"env_prefix": "RAGFUSE_SEARCH_", "env_file": ".env", "extra": "ignore"}

    top_k_retrieve: int = Field(100, ge=1, description="Candidates requested from each retriever")
    max_rerank_candidates: int = Field(50, ge=1, description="Fused candidates sent to the reranker")
    top_k_rerank: int = Field(10, ge=1, description="Final results after reranking")
    rerank_timeout_seconds: float = Field(
        10.0, gt=0, description="If reranking exceeds this, return the fused order flagged as skipped"
    )
    rewrite_queries: bool = Field(True, description="Expand the query into variants before retrieval")
    max_query_variants: int = Field(3, ge=1)


class RagFuseConfig(BaseSettings):
    """Top-level ragfuse configuration."""

    model_config = {"env_prefix": "RAGFUSE_", "env_file": ".env", "extra": "ignore"}

    log_level: str = Field("INFO", description="Logging level")
    log_json: bool = Field(False, description="Emit JSON-formatted logs")

    fusion: FusionConfig = Field(default_factory=FusionConfig)
    rerank: RerankConfig = Field(default_factory=RerankConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)


def load_config(**overrides) -> RagFuseConfig:
    """Create a config instance, applying any programmatic overrides."""
    return RagFuseConfig(**overrides)
