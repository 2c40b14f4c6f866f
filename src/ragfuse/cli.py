"""ragfuse command-line interface."""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click
from pydantic import ValidationError

from ragfuse.config import load_config
from ragfuse.errors import RagFuseError
from ragfuse.logging import setup_logging_from_config

# Bad input files and out-of-range options end in a one-line error, not a traceback
USER_ERRORS = (RagFuseError, ValidationError, json.JSONDecodeError)


@click.group()
@click.option("--log-level", default=None, help="Logging level (default: RAGFUSE_LOG_LEVEL or INFO)")
@click.option("--log-json/--no-log-json", default=None, help="Emit JSON-formatted logs (default: RAGFUSE_LOG_JSON)")
def cli(log_level: str | None, log_json: bool | None):
    """ragfuse: fuse ranked retrieval results and rerank them with a cross-encoder."""
    setup_logging_from_config(load_config(), level=log_level, json_output=log_json)


@cli.command()
@click.argument("input_path", type=click.Path(exists=True, dir_okay=False))
@click.option("--mode", type=click.Choice(["rrf", "score"]), default=None, help="Fusion mode")
@click.option("--k", "rrf_k", type=int, default=None, help="RRF damping constant")
@click.option("--top-n", type=int, default=None, help="Only print the best N fused results")
def fuse(input_path: str, mode: str | None, rrf_k: int | None, top_n: int | None):
    """Fuse the ranked lists in INPUT_PATH (JSON) and print the consensus ranking."""
    from ragfuse.search.fusion import fuse_with_mode

    config = load_config()
    try:
        data = json.loads(Path(input_path).read_text())
        lists, weights = _parse_lists(data, config.fusion.weights)
        fused = fuse_with_mode(
            lists,
            mode=mode or config.fusion.mode,
            k=rrf_k if rrf_k is not None else config.fusion.rrf_k,
            weights=weights,
        )
    except USER_ERRORS as exc:
        _fail(exc)

    if top_n is not None:
        fused = fused[:top_n]
    click.echo(json.dumps([f.model_dump() for f in fused], indent=2))


@cli.command()
@click.argument("input_path", type=click.Path(exists=True, dir_okay=False))
@click.option("--query", required=True, help="Query the candidates are scored against")
@click.option("--top-k", default=10, type=int, help="Number of reranked results to print")
def rerank(input_path: str, query: str, top_k: int):
    """Rerank the candidates in INPUT_PATH (JSON) with the configured cross-encoder."""
    from ragfuse.embed.crossencoder import CrossEncoder
    from ragfuse.search.rerank import rerank_batch

    config = load_config()
    try:
        candidates = json.loads(Path(input_path).read_text())
        scorer = CrossEncoder(config.rerank)
        results = rerank_batch(query, candidates, scorer.score_pairs, top_k)
    except USER_ERRORS as exc:
        _fail(exc)

    click.echo(json.dumps([r.model_dump() for r in results], indent=2))


@cli.command()
@click.option("--corpus", required=True, type=click.Path(exists=True), help="JSONL file of {id, text}")
@click.option("--query", required=True, help="Search query")
@click.option("--top-k", default=None, type=int, help="Final number of results")
@click.option("--mode", type=click.Choice(["rrf", "score"]), default=None, help="Fusion mode")
@click.option("--no-rewrite", is_flag=True, help="Search the query as given, without variants")
@click.option("--no-rerank", is_flag=True, help="Skip cross-encoder reranking")
def search(corpus: str, query: str, top_k: int | None, mode: str | None, no_rewrite: bool, no_rerank: bool):
    """Keyword search a corpus with query rewriting, fusion and reranking."""
    from ragfuse.index.sparse_index import SparseIndex
    from ragfuse.search.pipeline import FusionPipeline
    from ragfuse.search.rewrite import QueryRewriter
    from ragfuse.search.schemas import SearchRequest

    config = load_config()
    try:
        documents = _load_corpus(Path(corpus))
        request = SearchRequest(query=query, top_k_rerank=top_k, fusion_mode=mode, rewrite=not no_rewrite)
    except USER_ERRORS as exc:
        _fail(exc)
    if not documents:
        click.echo("No documents found in corpus", err=True)
        sys.exit(1)

    index = SparseIndex()
    index.build(documents)

    scorer = None
    if not no_rerank:
        from ragfuse.embed.crossencoder import CrossEncoder

        scorer = CrossEncoder(config.rerank)

    rewriter = QueryRewriter(max_variants=config.search.max_query_variants)

    try:
        with FusionPipeline(config, {"bm25": index}, scorer=scorer, rewriter=rewriter) as pipeline:
            response = pipeline.search(request)
    except USER_ERRORS as exc:
        _fail(exc)

    click.echo(response.model_dump_json(indent=2))


@cli.command("eval")
@click.argument("dataset", type=click.Path(exists=True, dir_okay=False))
@click.option("--out", default=None, type=click.Path(), help="Directory for a markdown report")
def eval_cmd(dataset: str, out: str | None):
    """Score every input ranking and the fused ranking over a JSONL DATASET."""
    from ragfuse.eval.run_eval import run_evaluation

    config = load_config()
    try:
        metrics = run_evaluation(config, Path(dataset), output_dir=Path(out) if out else None)
    except USER_ERRORS as exc:
        _fail(exc)

    metric_names = sorted({m for per in metrics.values() for m in per})
    click.echo(f"\n{'Ranking':<15}" + "".join(f"{m:>12}" for m in metric_names))
    click.echo("-" * (15 + 12 * len(metric_names)))
    for name, per in metrics.items():
        click.echo(f"{name:<15}" + "".join(f"{per[m]:>12.4f}" for m in metric_names))


def _parse_lists(data, config_weights: dict[str, float]):
    """Accept a bare list of lists, or {"lists": ..., "weights": ...}.

    Named lists (a mapping) pick up configured per-retriever weights.
    """
    weights = None
    if isinstance(data, dict):
        weights = data.get("weights")
        data = data.get("lists", [])
    if isinstance(data, dict):
        names = list(data)
        if weights is None and config_weights:
            weights = [config_weights.get(n, 1.0) for n in names]
        elif isinstance(weights, dict):
            weights = [weights.get(n, 1.0) for n in names]
        data = [data[n] for n in names]
    return data, weights


def _load_corpus(path: Path) -> dict[str, str]:
    documents: dict[str, str] = {}
    with open(path) as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            obj = json.loads(line)
            documents[str(obj["id"])] = obj["text"]
    return documents


def _fail(exc: Exception):
    click.echo(f"Error: {exc}", err=True)
    sys.exit(1)


if __name__ == "__main__":
    cli()
