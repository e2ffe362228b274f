"""Fuzzy keyword matching for operator feed search.

Key Components:
    - normalize, tokenize, trigrams: Text preparation
    - fuzzy_score: Weighted coverage/trigram/partial similarity
    - rank: Threshold filter and stable best-first ordering
"""
from dropship_sync.services.matching.fuzzy import (
    DEFAULT_THRESHOLD,
    MAX_RANK_ITEMS,
    fuzzy_score,
    hay_text,
    normalize,
    rank,
    score_items,
    tokenize,
    trigrams,
)

__all__ = [
    "DEFAULT_THRESHOLD",
    "MAX_RANK_ITEMS",
    "fuzzy_score",
    "hay_text",
    "normalize",
    "rank",
    "score_items",
    "tokenize",
    "trigrams",
]
