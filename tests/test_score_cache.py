import numpy as np
import pytest

from ragfuse.config import RerankConfig
from ragfuse.embed.cache import ScoreCache


def test_get_put_and_hit_rate():
    cache = ScoreCache(max_size=4)
    assert cache.get("m", "q", "p") is None
    cache.put("m", "q", "p", 0.7)

    assert cache.get("m", "q", "p") == 0.7
    assert cache.hits == 1
    assert cache.misses == 1
    assert cache.hit_rate == 0.5


def test_keys_separate_namespace_query_and_passage():
    cache = ScoreCache()
    cache.put("m", "ab", "c", 1.0)
    assert cache.get("m", "a", "bc") is None
    assert cache.get("other", "ab", "c") is None


def test_least_recently_used_entry_is_evicted():
    cache = ScoreCache(max_size=2)
    cache.put("m", "q", "a", 1.0)
    cache.put("m", "q", "b", 2.0)
    cache.get("m", "q", "a")
    cache.put("m", "q", "c", 3.0)

    assert len(cache) == 2
    assert cache.get("m", "q", "b") is None
    assert cache.get("m", "q", "a") == 1.0


def test_clear_resets_counters():
    cache = ScoreCache()
    cache.put("m", "q", "p", 1.0)
    cache.get("m", "q", "p")
    cache.clear()
    assert len(cache) == 0
    assert cache.hit_rate == 0.0


class FakeModel:
    def __init__(self):
        self.seen = []

    def predict(self, pairs, batch_size=16, show_progress_bar=False):
        self.seen.extend(tuple(p) for p in pairs)
        return np.array([len(passage) / 10 for _, passage in pairs], dtype=np.float32)


@pytest.fixture
def crossencoder():
    module = pytest.importorskip("ragfuse.embed.crossencoder")
    # Skip model loading; attach a fake predictor
    enc = module.CrossEncoder.__new__(module.CrossEncoder)
    enc.config = RerankConfig()
    enc.model = FakeModel()
    enc.cache = ScoreCache()
    return enc


def test_crossencoder_scores_and_memoises(crossencoder):
    first = crossencoder.score_pairs("q", ["abc", "abcdef"])
    second = crossencoder.score_pairs("q", ["abcdef", "xy"])

    assert first.dtype == np.float32
    assert first.tolist() == pytest.approx([0.3, 0.6])
    assert second.tolist() == pytest.approx([0.6, 0.2])
    # "abcdef" was only sent to the model once
    assert crossencoder.model.seen == [("q", "abc"), ("q", "abcdef"), ("q", "xy")]


def test_crossencoder_is_a_score_fn(crossencoder):
    assert crossencoder("q", "abcd") == pytest.approx(0.4)
    assert crossencoder.score_pairs("q", []).size == 0
