"""Pydantic models for ranked lists, fusion/rerank output and pipeline I/O."""

from __future__ import annotations

from typing import Literal, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field


class RankedResult(BaseModel):
    """One hit from a retrieval strategy. Its rank is its position in the list."""

    model_config = ConfigDict(frozen=True)

    item_id: str
    score: float
    payload: str | None = None


class FusedResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    item_id: str
    fusion_score: float
    rank: int = Field(ge=1)


class Candidate(BaseModel):
    """An item handed to the reranker together with the text it is scored on."""

    model_config = ConfigDict(frozen=True)

    item_id: str
    payload: str


class RerankedResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    item_id: str
    payload: str
    relevance_score: float
    rank: int = Field(ge=1)


# Loose input shapes accepted by the public functions
RankedInput = Union[RankedResult, tuple[str, float]]
RankedList = Sequence[RankedInput]
CandidateInput = Union[Candidate, tuple[str, str]]


class SearchRequest(BaseModel):
    query: str = Field(min_length=1)
    top_k_retrieve: int | None = Field(None, ge=1, le=1000)
    max_rerank_candidates: int | None = Field(None, ge=1, le=500)
    top_k_rerank: int | None = Field(None, ge=1, le=200)
    fusion_mode: Literal["rrf", "score"] | None = None
    rewrite: bool | None = None


class SearchResultItem(BaseModel):
    item_id: str
    payload: str | None = None
    fused_rank: int
    fusion_score: float
    rerank_score: float | None = None
    final_rank: int


class SearchResponse(BaseModel):
    request_id: str
    query: str
    query_variants: list[str]
    fusion_mode: str
    results: list[SearchResultItem]
    timings_ms: dict[str, float]
    rerank_skipped: bool = False
    total_candidates: int = 0
