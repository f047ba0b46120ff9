"""
Signal generators.

Each generator scores the candidate set against the current page context
and emits single-source Recommendations:

- CollaborativeFilter:     similarity edges of the anchor item
- MarketBasketEngine:      association rules fired by the interacted set
- BehavioralRecommender:   curated picks for the session's intent label
- SearchRelevanceScorer:   query matches in title/description/tags/type
- ContextualBooster:       collection / product-page / home boosts

All share ``generate(candidates, context, profile, classification, anchor)``.
Generators are pure: no shared mutable state, inputs are never changed, and
the same inputs always give the same output. Collaborative and basket
output may reference items outside the candidate set; the pipeline drops
those before assembly.
"""

from typing import List, Optional, Sequence, Set, Tuple

from config.constants import (
    DEFAULT_CONTEXT_BOOSTS,
    DEFAULT_SEARCH_WEIGHTS,
    DEFAULT_SIGNAL_WEIGHTS,
    ContextBoosts,
    SearchWeights,
    SignalWeights,
)
from core.utils import clamp, tokenize_query
from recs.models import (
    BehaviorProfile,
    CatalogItem,
    FilterContext,
    IntentClassification,
    PageContext,
    Recommendation,
    SourceTag,
    bucket_for_confidence,
)
from recs.reference_data import CuratedPick, ReferenceData


class SignalGenerator:
    """Base interface. ``source_tag`` names the generator in metadata."""

    source_tag: SourceTag

    def generate(
        self,
        candidates: Sequence[CatalogItem],
        context: FilterContext,
        profile: BehaviorProfile,
        classification: Optional[IntentClassification] = None,
        anchor: Optional[CatalogItem] = None,
    ) -> List[Recommendation]:
        raise NotImplementedError


class CollaborativeFilter(SignalGenerator):
    """'Users who liked this also liked': score = similarity x weight."""

    source_tag = SourceTag.COLLABORATIVE

    def __init__(
        self,
        reference: ReferenceData,
        weights: SignalWeights = DEFAULT_SIGNAL_WEIGHTS,
    ):
        self.reference = reference
        self.weights = weights

    def generate(self, candidates, context, profile, classification=None, anchor=None):
        anchor_id = context.current_product_id
        if not anchor_id:
            return []
        return [
            Recommendation.create(
                item_id=edge.to_item,
                score=edge.similarity * self.weights.COLLABORATIVE,
                reason=f"{round(edge.similarity * 100)}% of similar users also liked this",
                source_tag=self.source_tag,
                confidence=edge.similarity,
            )
            for edge in self.reference.edges_from(anchor_id)
            if edge.to_item != anchor_id
        ]


class MarketBasketEngine(SignalGenerator):
    """
    'Frequently bought together'.

    A rule fires when its whole antecedent is inside the interacted set
    (viewed, carted or wishlisted items plus the anchor). Consequents the
    visitor already interacted with, and the anchor itself, are skipped.
    Score = confidence x lift x weight.
    """

    source_tag = SourceTag.MARKET_BASKET

    def __init__(
        self,
        reference: ReferenceData,
        weights: SignalWeights = DEFAULT_SIGNAL_WEIGHTS,
    ):
        self.reference = reference
        self.weights = weights

    def generate(self, candidates, context, profile, classification=None, anchor=None):
        interacted: Set[str] = set(profile.interacted_product_ids)
        anchor_id = context.current_product_id
        basket = interacted | ({anchor_id} if anchor_id else set())
        if not basket:
            return []

        recommendations: List[Recommendation] = []
        for rule in self.reference.association_rules:
            if not rule.antecedent <= basket:
                continue
            for item_id in sorted(rule.consequent):
                if item_id in interacted or item_id == anchor_id:
                    continue
                recommendations.append(Recommendation.create(
                    item_id=item_id,
                    score=rule.confidence * rule.lift * self.weights.MARKET_BASKET,
                    reason=(
                        f"{round(rule.confidence * 100)}% of customers buy this together "
                        f"({rule.lift:.1f}x more likely)"
                    ),
                    source_tag=self.source_tag,
                    confidence=rule.confidence,
                ))
        return recommendations


class BehavioralRecommender(SignalGenerator):
    """
    Curated picks for the session's intent label.

    A pick matches candidates carrying its tag. "sale" also matches items
    priced below their compare-at price; the default "general" list matches
    featured items. Each candidate takes its first matching pick only.
    Needs a non-empty interaction history.
    """

    source_tag = SourceTag.BEHAVIORAL

    def __init__(
        self,
        reference: ReferenceData,
        weights: SignalWeights = DEFAULT_SIGNAL_WEIGHTS,
    ):
        self.reference = reference
        self.weights = weights

    @staticmethod
    def _matches(pick: CuratedPick, item: CatalogItem) -> bool:
        tag = pick.tag.lower()
        tags = item.tag_set
        if tag in tags:
            return True
        if tag == "sale" and item.is_on_sale:
            return True
        if tag == "general":
            return "featured" in tags or item.featured_rank is not None
        return False

    def generate(self, candidates, context, profile, classification=None, anchor=None):
        if profile.total_interactions == 0 or classification is None:
            return []

        label = classification.label.value
        picks = self.reference.picks_for(label)
        recommendations: List[Recommendation] = []
        for item in candidates:
            if context.current_product_id and item.id == context.current_product_id:
                continue
            pick = next((p for p in picks if self._matches(p, item)), None)
            if pick is None:
                continue
            recommendations.append(Recommendation.create(
                item_id=item.id,
                score=pick.base_score * self.weights.BEHAVIORAL,
                reason=f"matches your {label} shopping pattern",
                source_tag=self.source_tag,
                confidence=pick.confidence,
            ))
        return recommendations


class SearchRelevanceScorer(SignalGenerator):
    """
    Additive text relevance, only active with a search query.

    Title: +30 if it contains the whole query, else +15 per matching token.
    Description: +20 whole query, else +10 per token. Tags: +12 per tag
    containing the query or a token. Product type: +25 if it contains the
    query. Case-insensitive; tokens shorter than 3 chars are ignored.
    """

    source_tag = SourceTag.SEARCH

    def __init__(self, weights: SearchWeights = DEFAULT_SEARCH_WEIGHTS):
        self.weights = weights

    def score_item(self, item: CatalogItem, query: str, tokens: Sequence[str]) -> float:
        w = self.weights
        score = 0.0

        title = item.title.lower()
        if query in title:
            score += w.TITLE_EXACT
        else:
            score += w.TITLE_TOKEN * sum(1 for t in tokens if t in title)

        description = item.description.lower()
        if query in description:
            score += w.DESCRIPTION_EXACT
        else:
            score += w.DESCRIPTION_TOKEN * sum(1 for t in tokens if t in description)

        score += w.TAG_MATCH * sum(
            1 for tag in item.tag_set
            if query in tag or any(t in tag for t in tokens)
        )

        if item.product_type and query in item.product_type.lower():
            score += w.PRODUCT_TYPE_EXACT

        return score

    def generate(self, candidates, context, profile, classification=None, anchor=None):
        query = (context.search_query or "").strip().lower()
        if not query:
            return []
        tokens = tokenize_query(query, self.weights.MIN_TOKEN_LENGTH)

        recommendations: List[Recommendation] = []
        for item in candidates:
            score = self.score_item(item, query, tokens)
            if score <= 0:
                continue
            recommendations.append(Recommendation.create(
                item_id=item.id,
                score=score,
                reason=f"matches your search for \"{context.search_query.strip()}\"",
                source_tag=self.source_tag,
                confidence=clamp(score / self.weights.CONFIDENCE_SCALE),
            ))
        return recommendations


class ContextualBooster(SignalGenerator):
    """
    Page-context boosts.

    collection:   +15 for members of the active collection
    product-page: +20 same product type as the anchor, +5 per shared tag
    home:         +10 for items tagged featured or popular

    The anchor item itself is never boosted.
    """

    source_tag = SourceTag.CONTEXTUAL

    def __init__(self, boosts: ContextBoosts = DEFAULT_CONTEXT_BOOSTS):
        self.boosts = boosts

    def boost_item(
        self,
        item: CatalogItem,
        context: FilterContext,
        anchor: Optional[CatalogItem],
    ) -> Tuple[float, List[str]]:
        b = self.boosts
        score = 0.0
        reasons: List[str] = []

        if context.context == PageContext.COLLECTION and context.collection_handle:
            if context.collection_handle in item.collections:
                score += b.COLLECTION_MEMBER
                reasons.append(f"part of the {context.collection_handle} collection")

        elif context.context == PageContext.PRODUCT_PAGE and anchor is not None:
            if item.product_type and item.product_type == anchor.product_type:
                score += b.SAME_PRODUCT_TYPE
                reasons.append(f"same type as the product you're viewing ({item.product_type})")
            shared = item.tag_set & anchor.tag_set
            if shared:
                score += b.SHARED_TAG * len(shared)
                reasons.append(f"shares {len(shared)} tag(s) with the product you're viewing")

        elif context.context == PageContext.HOME:
            if item.tag_set & set(b.HOME_HIGHLIGHT_TAGS):
                score += b.HOME_HIGHLIGHT
                reasons.append("featured on the home page")

        return score, reasons

    def generate(self, candidates, context, profile, classification=None, anchor=None):
        anchor_id = context.current_product_id
        recommendations: List[Recommendation] = []
        for item in candidates:
            if anchor_id and item.id == anchor_id:
                continue
            score, reasons = self.boost_item(item, context, anchor)
            if score <= 0:
                continue
            confidence = clamp(score / self.boosts.CONFIDENCE_SCALE)
            recommendations.append(Recommendation(
                item_id=item.id,
                score=score,
                reasons=tuple(reasons),
                source_tag=self.source_tag,
                confidence=confidence,
                confidence_bucket=bucket_for_confidence(confidence),
                sources=(self.source_tag,),
            ))
        return recommendations


def default_generators(reference: ReferenceData) -> List[SignalGenerator]:
    """Generators in the order their reasons are concatenated."""
    return [
        CollaborativeFilter(reference),
        MarketBasketEngine(reference),
        BehavioralRecommender(reference),
        SearchRelevanceScorer(),
        ContextualBooster(),
    ]
