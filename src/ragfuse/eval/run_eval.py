"""Offline evaluation: compare each input ranking with the fused ranking."""

from __future__ import annotations

import json
from pathlib import Path

from ragfuse.config import RagFuseConfig
from ragfuse.errors import InvalidInput
from ragfuse.eval.metrics import compute_metrics
from ragfuse.logging import get_logger
from ragfuse.search.fusion import as_ranked_result, fuse_with_mode

log = get_logger(__name__)

FUSED = "fused"


def load_eval_dataset(path: Path) -> list[dict]:
    """Read a JSONL dataset of ``{"query", "relevant_id", "lists"}`` records.

    ``lists`` is either a mapping of retriever name to ranked list or a plain
    list of ranked lists (named ``list_1``, ``list_2``, ...).
    """
    records = []
    with open(path) as f:
        for lineno, line in enumerate(f, 1):
            line = line.strip()
            if not line:
                continue
            obj = json.loads(line)
            if "relevant_id" not in obj or "lists" not in obj:
                raise InvalidInput(f"{path}:{lineno}: record needs 'relevant_id' and 'lists'")
            lists = obj["lists"]
            if isinstance(lists, list):
                lists = {f"list_{i}": lst for i, lst in enumerate(lists, 1)}
            records.append({"query": obj.get("query", ""), "relevant_id": obj["relevant_id"], "lists": lists})
    log.info("eval_dataset_loaded", path=str(path), n_queries=len(records))
    return records


def run_evaluation(
    config: RagFuseConfig,
    dataset_path: Path,
    output_dir: Path | None = None,
) -> dict[str, dict[str, float]]:
    """Fuse every record's lists and score all rankings.

    Returns ``{ranking_name: {metric: value}}``. When *output_dir* is given
    a markdown report is written there as well.
    """
    records = load_eval_dataset(dataset_path)
    if not records:
        raise InvalidInput("No evaluation records available")

    fusion_cfg = config.fusion
    query_results: list[dict] = []
    for rec in records:
        names = list(rec["lists"])
        lists = [[as_ranked_result(e) for e in rec["lists"][n]] for n in names]
        weights = [fusion_cfg.weights.get(n, 1.0) for n in names]
        fused = fuse_with_mode(lists, mode=fusion_cfg.mode, k=fusion_cfg.rrf_k, weights=weights)

        rankings = {n: [r.item_id for r in lst] for n, lst in zip(names, lists)}
        rankings[FUSED] = [f.item_id for f in fused]
        query_results.append({"relevant_id": rec["relevant_id"], "rankings": rankings})

    metrics = compute_metrics(query_results)

    if output_dir is not None:
        output_dir.mkdir(parents=True, exist_ok=True)
        report_path = output_dir / "eval_report.md"
        _write_report(report_path, config, len(records), metrics)
        log.info("evaluation_complete", report=str(report_path))

    return metrics


def _write_report(
    path: Path,
    config: RagFuseConfig,
    n_queries: int,
    metrics: dict[str, dict[str, float]],
) -> None:
    metric_names = sorted({m for per in metrics.values() for m in per})
    lines = [
        "# ragfuse Evaluation Report",
        "",
        "## Configuration",
        "",
        f"- **Fusion mode**: `{config.fusion.mode}`",
        f"- **RRF k**: {config.fusion.rrf_k}",
        f"- **Weights**: {config.fusion.weights or 'uniform'}",
        f"- **Number of queries**: {n_queries}",
        "",
        "## Ranking Metrics",
        "",
        "| Ranking | " + " | ".join(metric_names) + " |",
        "|---------|" + "|".join("-------" for _ in metric_names) + "|",
    ]
    for name, per in metrics.items():
        row = " | ".join(f"{per.get(m, 0.0):.4f}" for m in metric_names)
        lines.append(f"| {name} | {row} |")
    lines.append("")

    path.write_text("\n".join(lines))
