"""Keyword scoring and ranking of feed items.

Scoring is a weighted blend of three signals over normalized text:

    score = 0.55 * coverage + 0.30 * trigram + 0.15 * partial

where ``coverage`` is the share of query tokens with an exact, substring
or small-edit-distance hit among hay tokens, ``trigram`` is the Jaccard
index of padded 3-character shingles, and ``partial`` is the share of
query tokens found inside some hay token. A literal substring match of
the whole query short-circuits to 1.0.

Key Components:
    - normalize / tokenize / trigrams: Text preparation
    - fuzzy_score: Score one hay string against a query
    - rank: Filter and order feed items for a keyword
"""
import math
import re
import unicodedata
from typing import Any, List, Sequence, Set, Tuple

import structlog
from rapidfuzz.distance import Levenshtein

from dropship_sync.models.feed import FeedItem

logger = structlog.get_logger(__name__)

DEFAULT_THRESHOLD = 0.30
MAX_RANK_ITEMS = 5000
HAY_FIELDS = ("name", "title", "sku", "description")

COVERAGE_WEIGHT = 0.55
TRIGRAM_WEIGHT = 0.30
PARTIAL_WEIGHT = 0.15

_NON_ALNUM = re.compile(r"[^a-z0-9\s]")
_WHITESPACE = re.compile(r"\s+")


def normalize(text: Any) -> str:
    """Lowercase, fold accents to ASCII, turn punctuation into spaces."""
    lowered = str(text if text is not None else "").lower()
    decomposed = unicodedata.normalize("NFKD", lowered)
    ascii_text = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return _WHITESPACE.sub(" ", _NON_ALNUM.sub(" ", ascii_text)).strip()


def tokenize(text: Any) -> List[str]:
    normalized = normalize(text)
    return [token for token in normalized.split(" ") if token] if normalized else []


def trigrams(text: str) -> Set[str]:
    """Distinct 3-character shingles of ``text`` padded with two spaces each side."""
    padded = f"  {text}  "
    return {padded[i:i + 3] for i in range(len(padded) - 2)}


def _token_hit(query_token: str, hay_tokens: Sequence[str]) -> bool:
    max_distance = math.ceil(max(len(query_token), 1) / 4)
    for hay_token in hay_tokens:
        if query_token in hay_token:
            return True
        if Levenshtein.distance(hay_token, query_token, score_cutoff=max_distance) <= max_distance:
            return True
    return False


def fuzzy_score(hay: Any, query: Any) -> float:
    """Similarity of ``query`` to ``hay`` in [0, 1].

    Returns:
        1.0 when the normalized query is a substring of the normalized hay,
        0.0 when either side normalizes to empty, otherwise the weighted blend
    """
    h = normalize(hay)
    q = normalize(query)
    if not h or not q:
        return 0.0
    if q in h:
        return 1.0

    hay_tokens = tokenize(h)
    query_tokens = tokenize(q)
    if not hay_tokens or not query_tokens:
        return 0.0

    covered = sum(1 for token in query_tokens if _token_hit(token, hay_tokens))
    coverage = covered / len(query_tokens)

    hay_grams = trigrams(h)
    query_grams = trigrams(q)
    union = hay_grams | query_grams
    trigram = len(hay_grams & query_grams) / len(union) if union else 0.0

    partial_hits = sum(
        1 for token in query_tokens if any(token in hay_token for hay_token in hay_tokens)
    )
    partial = min(1.0, partial_hits / len(query_tokens))

    score = COVERAGE_WEIGHT * coverage + TRIGRAM_WEIGHT * trigram + PARTIAL_WEIGHT * partial
    return max(0.0, min(1.0, score))


def hay_text(item: FeedItem) -> str:
    """Concatenate the non-empty searchable fields of an item."""
    parts = []
    for field in HAY_FIELDS:
        value = item.get(field)
        if value is None or isinstance(value, (bool, dict, list)):
            continue
        text = str(value).strip()
        if text:
            parts.append(text)
    return " ".join(parts)


def _sku_of(item: FeedItem) -> str:
    sku = item.get("sku")
    if isinstance(sku, bool) or not isinstance(sku, (str, int)):
        return ""
    return str(sku)


def score_items(
    items: Sequence[FeedItem],
    keyword: str,
    threshold: float = DEFAULT_THRESHOLD,
) -> List[Tuple[float, FeedItem]]:
    """Score items and keep those at or above ``threshold``, best first.

    The sort is stable: equal scores keep their feed order.
    """
    scored = []
    for item in items[:MAX_RANK_ITEMS]:
        score = fuzzy_score(hay_text(item), keyword)
        if score >= threshold:
            scored.append((score, item))
    scored.sort(key=lambda pair: pair[0], reverse=True)
    return scored


def rank(
    items: Sequence[FeedItem],
    keyword: str,
    sku_only: bool = False,
    threshold: float = DEFAULT_THRESHOLD,
) -> List[FeedItem]:
    """Filter and order feed items for an operator keyword.

    Args:
        items: Feed items (only the first MAX_RANK_ITEMS are considered)
        keyword: Operator search text
        sku_only: Exact normalized SKU equality instead of scoring
        threshold: Minimum score kept in scoring mode

    Returns:
        Matching items, best first
    """
    candidates = items[:MAX_RANK_ITEMS]
    if len(items) > MAX_RANK_ITEMS:
        logger.info("rank_input_truncated", total=len(items), kept=MAX_RANK_ITEMS)

    if sku_only:
        wanted = normalize(keyword)
        if not wanted:
            return []
        return [item for item in candidates if normalize(_sku_of(item)) == wanted]

    return [item for _, item in score_items(candidates, keyword, threshold)]
