"""Tokenisation shared by the keyword index and the query rewriter."""

from __future__ import annotations

import re

_TOKEN_RE = re.compile(r"[a-z0-9]+")

STOPWORDS = frozenset(
    """
    a an and are as at be but by can do does for from how i if in into is it
    its of on or so than that the their then there these this to was what
    when where which who why will with you your
    """.split()
)


def tokenize(text: str) -> list[str]:
    """Lower-case word tokens; single characters are dropped."""
    return [tok for tok in _TOKEN_RE.findall(text.lower()) if len(tok) > 1]


def keywords(text: str) -> list[str]:
    """Tokens with stop words removed, in original order."""
    return [tok for tok in tokenize(text) if tok not in STOPWORDS]
