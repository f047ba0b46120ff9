"""
Result assembler, baseline ranker and plain user sorts.

The assembler turns a combined (and membership-checked) recommendation
list into the final response: score-descending order with ties broken by
item id, 1-based ranks, truncation to the limit, and summary metadata.

Two producers bypass the signal generators:

- ``baseline_rank``: transparent point table (stock, price tier, recency,
  merchandiser featured rank) used when no generator produced anything, so
  the engine always returns a renderable list (strategy ``fallback``).
- ``standard_sort``: plain user-chosen order (price, newest, name). Scoring
  is skipped entirely; every item carries score 0 and bucket ``none``
  (strategy ``standard-<criterion>``).
"""

import math
import time
from datetime import datetime, timezone
from typing import Collection, Dict, List, Optional, Sequence

from config.constants import (
    DEFAULT_ASSEMBLER_CONFIG,
    DEFAULT_BASELINE_CONFIG,
    RECOMMENDED_SORT,
    SORT_ALIASES,
    STRATEGY_COLLECTION,
    STRATEGY_PERSONALIZED,
    STRATEGY_SEARCH,
    STRATEGY_STANDARD_PREFIX,
    AssemblerConfig,
    BaselineRankerConfig,
)
from core.utils import clamp
from recs.models import (
    CatalogItem,
    ConfidenceBucket,
    FilterContext,
    RankedResult,
    RankingMetadata,
    Recommendation,
    SourceTag,
    bucket_for_confidence,
)


# =============================================================================
# Strategy & Sort Resolution
# =============================================================================

def resolve_sort(sort_by: Optional[str]) -> Optional[str]:
    """Canonical plain-sort criterion, or None when the ranking is scored."""
    if not sort_by or sort_by == RECOMMENDED_SORT:
        return None
    return SORT_ALIASES.get(sort_by.strip().lower())


def select_strategy(context: FilterContext) -> str:
    """Strategy name for a scored ranking of this context."""
    if context.search_query and context.search_query.strip():
        return STRATEGY_SEARCH
    if context.collection_handle:
        return STRATEGY_COLLECTION
    return STRATEGY_PERSONALIZED


# =============================================================================
# Baseline Ranker
# =============================================================================

def _stock_points(item: CatalogItem, cfg: BaselineRankerConfig) -> float:
    if not item.is_available:
        return 0.0
    if not item.variants:
        return cfg.STOCK_UNKNOWN
    quantity = item.variants[0].quantity_available
    if quantity is None:
        return cfg.STOCK_UNKNOWN
    for minimum, points in cfg.STOCK_TIERS:
        if quantity >= minimum:
            return points
    return 0.0


def _price_quartiles(items: Sequence[CatalogItem]) -> Optional[tuple]:
    prices = sorted(item.price for item in items if item.price > 0)
    if not prices:
        return None
    return prices[math.floor(len(prices) * 0.25)], prices[math.floor(len(prices) * 0.75)]


def _price_points(
    item: CatalogItem, quartiles: Optional[tuple], cfg: BaselineRankerConfig
) -> float:
    if item.price <= 0:
        return 0.0
    if quartiles is None:
        return cfg.PRICE_NO_REFERENCE
    p25, p75 = quartiles
    if p25 <= item.price <= p75:
        return cfg.PRICE_MID_RANGE
    if item.price < p25:
        return cfg.PRICE_BUDGET
    return cfg.PRICE_PREMIUM


def _recency_points(item: CatalogItem, now: datetime, cfg: BaselineRankerConfig) -> float:
    if item.published_at is None:
        return 0.0
    published = item.published_at
    if published.tzinfo is None:
        published = published.replace(tzinfo=timezone.utc)
    days = math.floor((now - published).total_seconds() / 86400)
    for max_days, points in cfg.RECENCY_TIERS:
        if days <= max_days:
            return points
    return 0.0


def _featured_points(item: CatalogItem, cfg: BaselineRankerConfig) -> float:
    rank = item.featured_rank
    if rank is None or rank <= 0:
        return 0.0
    return max(cfg.FEATURED_TOP_BONUS - (rank - 1) * cfg.FEATURED_STEP, 0.0)


def baseline_rank(
    items: Sequence[CatalogItem],
    now: Optional[datetime] = None,
    config: BaselineRankerConfig = DEFAULT_BASELINE_CONFIG,
) -> List[Recommendation]:
    """
    Score every item with the transparent point table.

    stock 0-25 + price tier 0-20 + recency 0-20, plus a featured bonus of
    100 for rank 1 and 10 less per rank after that. Price tiers come from
    the quartiles of the given items' prices.
    """
    now = now or datetime.now(timezone.utc)
    quartiles = _price_quartiles(items)

    recommendations: List[Recommendation] = []
    for item in items:
        stock = _stock_points(item, config)
        price = _price_points(item, quartiles, config)
        recency = _recency_points(item, now, config)
        featured = _featured_points(item, config)

        reasons = [f"stock {stock:g}", f"price tier {price:g}", f"recency {recency:g}"]
        if featured:
            reasons.append(f"featured #{item.featured_rank}")

        confidence = clamp((stock + price + recency) / config.BASE_SCORE_SCALE)
        recommendations.append(Recommendation(
            item_id=item.id,
            score=stock + price + recency + featured,
            reasons=tuple(reasons),
            source_tag=SourceTag.BASELINE,
            confidence=confidence,
            confidence_bucket=bucket_for_confidence(confidence),
            sources=(SourceTag.BASELINE,),
        ))
    return recommendations


# =============================================================================
# Plain Sorts
# =============================================================================

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _published_key(item: CatalogItem) -> datetime:
    if item.published_at is None:
        return _EPOCH
    if item.published_at.tzinfo is None:
        return item.published_at.replace(tzinfo=timezone.utc)
    return item.published_at


def standard_sort(items: Sequence[CatalogItem], criterion: str) -> List[Recommendation]:
    """
    Order items by a plain criterion without scoring.

    Ties fall back to item id so the order is deterministic. Unknown
    criteria keep the input order.
    """
    if criterion == "price-asc":
        ordered = sorted(items, key=lambda i: (i.price, i.id))
    elif criterion == "price-desc":
        ordered = sorted(items, key=lambda i: (-i.price, i.id))
    elif criterion == "newest":
        ordered = sorted(sorted(items, key=lambda i: i.id), key=_published_key, reverse=True)
    elif criterion == "name-asc":
        ordered = sorted(items, key=lambda i: (i.title.casefold(), i.id))
    elif criterion == "name-desc":
        ordered = sorted(
            sorted(items, key=lambda i: i.id),
            key=lambda i: i.title.casefold(),
            reverse=True,
        )
    else:
        ordered = list(items)

    return [
        Recommendation(
            item_id=item.id,
            score=0.0,
            reasons=(),
            source_tag=SourceTag.BASELINE,
            confidence=0.0,
            confidence_bucket=ConfidenceBucket.NONE,
            sources=(),
        )
        for item in ordered
    ]


# =============================================================================
# Assembly
# =============================================================================

def order_recommendations(
    recommendations: Sequence[Recommendation],
    allowed_ids: Collection[str],
) -> List[Recommendation]:
    """
    Drop recommendations for items outside ``allowed_ids`` and sort
    score-descending, ties by item id.
    """
    kept = [r for r in recommendations if r.item_id in allowed_ids]
    return sorted(kept, key=lambda r: (-r.score, r.item_id))


def per_source_counts(recommendations: Sequence[Recommendation]) -> Dict[str, int]:
    """How many recommendations each generator contributed to."""
    counts: Dict[str, int] = {}
    for rec in recommendations:
        for source in rec.sources:
            counts[source.value] = counts.get(source.value, 0) + 1
    return counts


def assemble(
    ordered: Sequence[Recommendation],
    limit: int,
    total_candidates: int,
    strategy: str,
    context: str,
    cached: bool = False,
    timestamp: Optional[int] = None,
    config: AssemblerConfig = DEFAULT_ASSEMBLER_CONFIG,
) -> RankedResult:
    """
    Assign 1-based ranks, truncate to ``limit`` and attach metadata.

    ``ordered`` must already be in final order; per-source counts are taken
    over the full list, the confidence and activity counts over the
    returned slice.
    """
    top = [
        rec.model_copy(update={"rank": position})
        for position, rec in enumerate(ordered[:max(0, limit)], start=1)
    ]
    metadata = RankingMetadata(
        total_candidates=total_candidates,
        per_source_counts=per_source_counts(ordered),
        high_confidence_count=sum(
            1 for r in top if r.confidence_bucket.value in config.HIGH_CONFIDENCE_BUCKETS
        ),
        active_count=sum(1 for r in top if r.score > config.ACTIVE_SCORE_THRESHOLD),
        strategy=strategy,
        context=context,
        timestamp=timestamp if timestamp is not None else int(time.time() * 1000),
        cached=cached,
    )
    return RankedResult(recommendations=top, metadata=metadata)


def standard_strategy(criterion: str) -> str:
    return f"{STRATEGY_STANDARD_PREFIX}{criterion}"
