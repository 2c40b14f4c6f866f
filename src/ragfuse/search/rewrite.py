"""Rule-based query rewriting.

Each variant is retrieved independently and the resulting lists are fused,
so a rewrite only needs to surface documents the original phrasing misses.
"""

from __future__ import annotations

from typing import Mapping

from ragfuse.errors import InvalidInput
from ragfuse.logging import get_logger
from ragfuse.text import keywords

log = get_logger(__name__)


class QueryRewriter:
    """Expands a query into a small, ordered set of variants.

    Variants, in order: the original query, its keyword-only form, then one
    variant per synonym substitution. Duplicates are dropped and at most
    ``max_variants`` are returned.
    """

    def __init__(self, synonyms: Mapping[str, list[str]] | None = None, max_variants: int = 3) -> None:
        if max_variants < 1:
            raise InvalidInput(f"max_variants must be >= 1, got {max_variants}")
        self.synonyms = {k.lower(): list(v) for k, v in (synonyms or {}).items()}
        self.max_variants = max_variants

    def __call__(self, query: str) -> list[str]:
        return self.rewrite(query)

    def rewrite(self, query: str) -> list[str]:
        original = query.strip() if isinstance(query, str) else ""
        if not original:
            raise InvalidInput("Cannot rewrite an empty query")

        variants = [original]
        terms = keywords(original)
        if terms:
            variants.append(" ".join(terms))
            for i, term in enumerate(terms):
                for alt in self.synonyms.get(term, []):
                    variants.append(" ".join([*terms[:i], alt.lower(), *terms[i + 1:]]))

        unique = list(dict.fromkeys(variants))[: self.max_variants]
        log.debug("query_rewritten", n_variants=len(unique))
        return unique
