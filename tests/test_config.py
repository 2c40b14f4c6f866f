import pytest
from pydantic import ValidationError

from ragfuse.config import FusionConfig, RagFuseConfig, SearchConfig, load_config


def test_defaults():
    config = load_config()
    assert config.fusion.mode == "rrf"
    assert config.fusion.rrf_k == 60
    assert config.fusion.weights == {}
    assert config.rerank.crossencoder_model == "cross-encoder/ms-marco-MiniLM-L-6-v2"
    assert config.search.max_rerank_candidates == 50
    assert config.search.top_k_rerank == 10


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("RAGFUSE_FUSION_MODE", "score")
    monkeypatch.setenv("RAGFUSE_FUSION_WEIGHTS", '{"bm25": 0.5}')
    monkeypatch.setenv("RAGFUSE_SEARCH_TOP_K_RERANK", "3")
    monkeypatch.setenv("RAGFUSE_LOG_JSON", "true")

    config = RagFuseConfig()
    assert config.fusion.mode == "score"
    assert config.fusion.weights == {"bm25": 0.5}
    assert config.search.top_k_rerank == 3
    assert config.log_json is True


def test_programmatic_overrides():
    config = load_config(log_level="DEBUG", search=SearchConfig(rewrite_queries=False))
    assert config.log_level == "DEBUG"
    assert config.search.rewrite_queries is False


@pytest.mark.parametrize("kwargs", [{"rrf_k": 0}, {"mode": "borda"}])
def test_invalid_fusion_settings_rejected(kwargs):
    with pytest.raises(ValidationError):
        FusionConfig(**kwargs)


@pytest.mark.parametrize("timeout", [0, -1.5])
def test_non_positive_rerank_timeout_rejected(timeout):
    with pytest.raises(ValidationError):
        SearchConfig(rerank_timeout_seconds=timeout)
