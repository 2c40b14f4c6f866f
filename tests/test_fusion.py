import pytest

from ragfuse.errors import InvalidInput
from ragfuse.search.fusion import fuse, fuse_scores, fuse_with_mode, normalize_scores
from ragfuse.search.schemas import FusedResult, RankedResult


def _ids(fused):
    return [f.item_id for f in fused]


def test_rrf_consensus_item_ranks_first():
    lists = [
        [("A", 0.9), ("B", 0.8), ("C", 0.7)],
        [("B", 12.0), ("A", 11.0), ("D", 3.0)],
        [("C", 0.5), ("A", 0.4), ("E", 0.1)],
    ]
    fused = fuse(lists, k=60)

    assert isinstance(fused[0], FusedResult)
    assert fused[0].item_id == "A"
    assert fused[0].fusion_score == pytest.approx(1 / 61 + 1 / 62 + 1 / 62)
    assert fused[0].fusion_score == pytest.approx(0.0487, abs=1e-4)
    # D and E tie on 1/63 and fall back to id order
    assert _ids(fused) == ["A", "B", "C", "D", "E"]
    assert [f.rank for f in fused] == [1, 2, 3, 4, 5]


def test_output_is_deduplicated_union_of_inputs():
    lists = [[("x", 1.0), ("y", 0.5)], [("y", 3.0), ("z", 1.0)], []]
    fused = fuse(lists)

    assert sorted(_ids(fused)) == ["x", "y", "z"]
    assert len(_ids(fused)) == len(set(_ids(fused)))


def test_equal_scores_break_ties_by_item_id():
    fused = fuse([[("b", 1.0)], [("a", 1.0)]])
    assert _ids(fused) == ["a", "b"]
    assert fused[0].fusion_score == fused[1].fusion_score


def test_fusion_is_deterministic():
    lists = [[("q", 1.0), ("p", 0.9), ("r", 0.1)], [("r", 2.0), ("p", 1.0)]]
    assert fuse(lists) == fuse(lists)
    assert fuse_scores(lists) == fuse_scores(lists)


def test_appearing_in_more_lists_never_lowers_score():
    base = fuse([[("a", 1.0), ("b", 0.5)], [("c", 1.0)]])
    more = fuse([[("a", 1.0), ("b", 0.5)], [("c", 1.0), ("a", 0.2)]])

    score = {f.item_id: f.fusion_score for f in base}["a"]
    score_more = {f.item_id: f.fusion_score for f in more}["a"]
    assert score_more > score


def test_accepts_ranked_results_and_mappings():
    lists = [
        [RankedResult(item_id="a", score=1.0, payload="text a")],
        [{"item_id": "b", "score": 2.0}],
    ]
    assert _ids(fuse(lists)) == ["a", "b"]


def test_empty_outer_sequence_is_invalid():
    with pytest.raises(InvalidInput):
        fuse([], k=60)
    with pytest.raises(InvalidInput):
        fuse_scores([])


def test_all_inner_lists_empty_gives_empty_output():
    assert fuse([[], []]) == []


@pytest.mark.parametrize("k", [0, -5, True, "60"])
def test_non_positive_k_is_invalid(k):
    with pytest.raises(InvalidInput):
        fuse([[("a", 1.0)]], k=k)


def test_malformed_entry_is_invalid():
    with pytest.raises(InvalidInput):
        fuse([[("a", 1.0, "extra")]])
    with pytest.raises(InvalidInput):
        fuse([[("a", "not-a-number")]])
    with pytest.raises(InvalidInput):
        fuse([[("a", 1.0)], None])
    with pytest.raises(InvalidInput):
        fuse_scores([[("a", 1.0)], "ab"])
    with pytest.raises(InvalidInput):
        fuse([[("a", 1.0)], 7])
    with pytest.raises(InvalidInput):
        fuse(None)


def test_weighted_rrf_scales_each_list():
    fused = fuse([[("a", 1.0)], [("b", 1.0)]], k=60, weights=[1.0, 3.0])
    assert _ids(fused) == ["b", "a"]
    assert fused[0].fusion_score == pytest.approx(3 / 61)


def test_zero_weight_list_still_contributes_items():
    fused = fuse([[("a", 1.0)], [("b", 1.0)]], weights=[1.0, 0.0])
    assert _ids(fused) == ["a", "b"]
    assert fused[1].fusion_score == 0.0


@pytest.mark.parametrize("weights", [[1.0], [1.0, -1.0], [1.0, float("nan")], [1.0, float("inf")]])
def test_bad_weights_are_invalid(weights):
    with pytest.raises(InvalidInput):
        fuse([[("a", 1.0)], [("b", 1.0)]], weights=weights)


def test_score_fusion_normalises_each_list():
    lists = [
        [("a", 10.0), ("b", 5.0), ("c", 0.0)],
        [("c", -1.0), ("a", -3.0)],
    ]
    fused = fuse_scores(lists)
    scores = {f.item_id: f.fusion_score for f in fused}

    assert scores == pytest.approx({"a": 1.0, "b": 0.5, "c": 1.0})
    assert _ids(fused) == ["a", "c", "b"]


def test_score_fusion_applies_weights_after_normalising():
    lists = [[("a", 100.0), ("b", 0.0)], [("b", 0.3), ("a", 0.1)]]
    fused = fuse_scores(lists, weights=[0.5, 2.0])
    scores = {f.item_id: f.fusion_score for f in fused}

    assert scores == pytest.approx({"a": 0.5, "b": 2.0})


def test_flat_list_contributes_one_per_item():
    fused = fuse_scores([[("x", 3.0), ("y", 3.0)], [("y", 7.0)]])
    scores = {f.item_id: f.fusion_score for f in fused}
    assert scores == pytest.approx({"x": 1.0, "y": 2.0})


def test_normalize_scores_edge_cases():
    assert normalize_scores([]) == []
    assert normalize_scores([4.2]) == [1.0]
    assert normalize_scores([2.0, 4.0, 3.0]) == pytest.approx([0.0, 1.0, 0.5])
    with pytest.raises(InvalidInput):
        normalize_scores([1.0, float("inf")])


def test_fuse_with_mode_dispatch():
    lists = [[("a", 10.0), ("b", 1.0)]]
    assert fuse_with_mode(lists, "rrf") == fuse(lists)
    assert fuse_with_mode(lists, "score") == fuse_scores(lists)
    with pytest.raises(InvalidInput):
        fuse_with_mode(lists, "borda")
