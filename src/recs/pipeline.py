"""
Recommendation Pipeline

Orchestrates the ranking flow for one request:
1. Filter the candidate set with the hard constraints
2. Plain user sort? Skip scoring and order by the criterion
3. Ranking cache lookup (session-scoped, TTL)
4. On a miss: aggregate behavior, classify, run every signal generator,
   combine by item id, drop catalog misses, sort
5. Nothing scored? Rank the filtered candidates with the baseline ranker
6. Assemble: ranks, limit, metadata

Strategies:
- search-optimized:       a search query is present
- collection-contextual:  a collection handle is present
- ai-personalized:        otherwise
- fallback:               no generator produced anything
- standard-<criterion>:   plain user sort, scoring bypassed
"""

import time
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from config.constants import STRATEGY_FALLBACK
from config.settings import Settings, get_settings
from core.logging import LoggerMixin
from recs.assembler import (
    assemble,
    baseline_rank,
    order_recommendations,
    resolve_sort,
    select_strategy,
    standard_sort,
    standard_strategy,
)
from recs.behavior import BehaviorClassifier, aggregate_behavior
from recs.ensemble import combine
from recs.filter_utils import apply_filters
from recs.inference import InferenceChain
from recs.models import (
    BehaviorProfile,
    CatalogItem,
    FilterContext,
    IntentClassification,
    InteractionEvent,
    RankedResult,
    Recommendation,
    SourceTag,
)
from recs.ranking_cache import RankingCache, ranking_cache_key
from recs.reference_data import ReferenceData, load_reference_data
from recs.signals import SignalGenerator, default_generators


# =============================================================================
# Configuration
# =============================================================================

@dataclass
class PipelineConfig:
    """Configuration for the recommendation pipeline."""

    DEFAULT_LIMIT: int = 10
    MAX_LIMIT: int = 200

    @classmethod
    def from_settings(cls, settings: Settings) -> "PipelineConfig":
        return cls(DEFAULT_LIMIT=settings.default_limit, MAX_LIMIT=settings.max_limit)


# =============================================================================
# Recommendation Pipeline
# =============================================================================

class RecommendationPipeline(LoggerMixin):
    """
    Behavior analysis plus scored ranking over a caller-supplied candidate set.

    Holds only read-only collaborators (reference data, generators,
    inference chain); session state such as the ranking cache is passed in
    per call.
    """

    def __init__(
        self,
        reference: Optional[ReferenceData] = None,
        config: Optional[PipelineConfig] = None,
        inference: Optional[InferenceChain] = None,
        generators: Optional[Sequence[SignalGenerator]] = None,
        classifier: Optional[BehaviorClassifier] = None,
    ):
        self.reference = reference or ReferenceData.default()
        self.config = config or PipelineConfig()
        self.classifier = classifier or BehaviorClassifier()
        self.inference = inference or InferenceChain(classifier=self.classifier)
        self.generators: List[SignalGenerator] = list(
            generators if generators is not None else default_generators(self.reference)
        )

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "RecommendationPipeline":
        settings = settings or get_settings()
        classifier = BehaviorClassifier()
        inference = InferenceChain.from_settings(settings)
        inference.classifier = classifier
        return cls(
            reference=load_reference_data(settings),
            config=PipelineConfig.from_settings(settings),
            inference=inference,
            classifier=classifier,
        )

    # =========================================================
    # Behavior Analysis
    # =========================================================

    def analyze(
        self,
        events: Optional[Sequence[InteractionEvent]] = None,
        behavior_data: Optional[BehaviorProfile] = None,
        now: Optional[float] = None,
    ) -> Tuple[BehaviorProfile, IntentClassification]:
        """
        Profile and classify a session.

        Events win over a pre-aggregated profile. With neither, returns a zeroed
        profile and the default rule classification without touching any
        provider.
        """
        if events:
            profile = aggregate_behavior(events, now=now)
            return profile, self.inference.classify(profile)
        if behavior_data is not None:
            return behavior_data, self.inference.classify(behavior_data)
        profile = BehaviorProfile()
        return profile, self.classifier.classify(profile)

    # =========================================================
    # Ranking
    # =========================================================

    def clamp_limit(self, limit: Optional[int]) -> int:
        if limit is None:
            return self.config.DEFAULT_LIMIT
        return max(0, min(limit, self.config.MAX_LIMIT))

    def score(
        self,
        candidates: Sequence[CatalogItem],
        context: FilterContext,
        profile: BehaviorProfile,
        classification: IntentClassification,
        anchor: Optional[CatalogItem] = None,
    ) -> List[Recommendation]:
        """
        Full ordered ranking of ``candidates`` (already filtered).

        Runs every generator in order, merges by item id, drops items that
        are not candidates, and falls back to the baseline ranker when
        nothing was scored.
        """
        outputs = []
        for generator in self.generators:
            produced = generator.generate(candidates, context, profile, classification, anchor)
            outputs.append(produced)
            self.logger.debug(
                "Signal generated", source=generator.source_tag.value, count=len(produced)
            )

        allowed = {item.id for item in candidates}
        ordered = order_recommendations(combine(outputs), allowed)
        if ordered:
            return ordered

        if candidates:
            self.logger.info(
                "No signal produced recommendations, using baseline ranker",
                candidates=len(candidates),
                context=context.context.value,
            )
        return order_recommendations(baseline_rank(candidates), allowed)

    def rank(
        self,
        candidates: Sequence[CatalogItem],
        context: FilterContext,
        events: Sequence[InteractionEvent] = (),
        classification: Optional[IntentClassification] = None,
        limit: Optional[int] = None,
        cache: Optional[RankingCache] = None,
        anchor: Optional[CatalogItem] = None,
    ) -> RankedResult:
        """
        Rank candidates for a page.

        Args:
            candidates: Candidate catalog items (unfiltered)
            context: Page context, constraints and sort
            events: Session interaction log
            classification: Session intent; rule-based from ``events`` if None
            limit: Max recommendations returned (default/max from config)
            cache: Session ranking cache; no caching when None
            anchor: Item being viewed; looked up in ``candidates`` if None

        Returns:
            RankedResult
        """
        t_start = time.time()
        limit = self.clamp_limit(limit)
        filtered = apply_filters(candidates, context)
        total = len(filtered)

        criterion = resolve_sort(context.sort_by)
        if criterion is not None:
            return assemble(
                standard_sort(filtered, criterion),
                limit=limit,
                total_candidates=total,
                strategy=standard_strategy(criterion),
                context=context.context.value,
            )

        if anchor is None and context.current_product_id:
            anchor = next((c for c in candidates if c.id == context.current_product_id), None)

        def compute() -> List[Recommendation]:
            profile = aggregate_behavior(events)
            intent = classification or self.classifier.classify(profile)
            return self.score(filtered, context, profile, intent, anchor)

        if cache is not None:
            allowed = {item.id for item in filtered}
            key = ranking_cache_key(context, total, allowed)
            ordered, hit = cache.get_or_compute(key, compute)
            if hit and any(r.item_id not in allowed for r in ordered):
                self.logger.warning("Stale cached ranking replaced", key=key)
                ordered, hit = cache.put(key, compute()).recommendations, False
        else:
            ordered, hit = tuple(compute()), False

        if ordered and all(r.source_tag == SourceTag.BASELINE for r in ordered):
            strategy = STRATEGY_FALLBACK
        else:
            strategy = select_strategy(context)

        result = assemble(
            ordered,
            limit=limit,
            total_candidates=total,
            strategy=strategy,
            context=context.context.value,
            cached=hit,
        )
        self.logger.info(
            "Ranking assembled",
            strategy=strategy,
            context=context.context.value,
            candidates=total,
            returned=len(result.recommendations),
            cached=hit,
            latency_ms=int((time.time() - t_start) * 1000),
        )
        return result


_pipeline: Optional[RecommendationPipeline] = None


def get_pipeline() -> RecommendationPipeline:
    """Get or create the recommendation pipeline singleton."""
    global _pipeline
    if _pipeline is None:
        _pipeline = RecommendationPipeline.from_settings()
    return _pipeline


def reset_pipeline() -> None:
    """Drop the singleton so the next call rebuilds it from settings."""
    global _pipeline
    _pipeline = None
