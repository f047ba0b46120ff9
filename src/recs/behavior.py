"""
Behavior aggregation and rule-based intent classification.

``aggregate_behavior`` reduces a session's interaction log to a fixed-shape
BehaviorProfile. ``BehaviorClassifier`` maps that profile to one intent
label through a fixed-priority rule table; the first matching rule wins.

The rule table is the mandatory fallback for remote inference, so it must
never depend on anything outside this module and config.constants.
"""

from typing import Dict, List, Optional, Sequence

from config.constants import (
    DEFAULT_AGGREGATOR_CONFIG,
    DEFAULT_CLASSIFIER_THRESHOLDS,
    DEFAULT_INTENT,
    AggregatorConfig,
    ClassifierThresholds,
)
from recs.models import (
    BehaviorProfile,
    IntentClassification,
    IntentLabel,
    InteractionEvent,
    InteractionKind,
)


# =============================================================================
# Aggregator
# =============================================================================

def _hover_durations(
    events: Sequence[InteractionEvent], window_ms: int
) -> List[float]:
    """
    Collect hover durations.

    A hover_end carrying ``duration_ms`` contributes it directly. Otherwise
    each hover_start is paired with the first later hover_end for the same
    product inside the window; an end is paired at most once.
    """
    durations: List[float] = []
    ends = [e for e in events if e.kind == InteractionKind.HOVER_END]
    for end in ends:
        if end.duration_ms is not None:
            durations.append(end.duration_ms)

    used: set = set()
    for start in events:
        if start.kind != InteractionKind.HOVER_START:
            continue
        for idx, end in enumerate(ends):
            if idx in used or end.product_id != start.product_id:
                continue
            gap = end.timestamp - start.timestamp
            if 0 < gap < window_ms:
                used.add(idx)
                # already counted through its explicit duration
                if end.duration_ms is None:
                    durations.append(gap)
                break
    return durations


_INTERACTED_KINDS = (
    InteractionKind.VIEW,
    InteractionKind.CART_ADD,
    InteractionKind.WISHLIST_ADD,
)


def _interacted_ids(events: Sequence[InteractionEvent]) -> List[str]:
    seen: Dict[str, None] = {}
    for event in events:
        if event.kind in _INTERACTED_KINDS and event.product_id:
            seen.setdefault(event.product_id, None)
    return list(seen)


def _categories(events: Sequence[InteractionEvent]) -> List[str]:
    seen: Dict[str, None] = {}
    for event in events:
        category = event.metadata.get("category") or (
            event.context.value if event.context else None
        )
        if category:
            seen.setdefault(str(category), None)
    return list(seen)


def aggregate_behavior(
    events: Sequence[InteractionEvent],
    now: Optional[float] = None,
    config: AggregatorConfig = DEFAULT_AGGREGATOR_CONFIG,
) -> BehaviorProfile:
    """
    Reduce an interaction log to a BehaviorProfile.

    Pure: the same events (and ``now``) always give the same profile. An
    empty log gives the all-zero profile.

    Args:
        events: Interaction events, any order (sorted by timestamp here)
        now: Epoch ms used for ``session_duration_ms``; defaults to the
            last event's timestamp
        config: Aggregation windows

    Returns:
        BehaviorProfile
    """
    if not events:
        return BehaviorProfile()

    ordered = sorted(events, key=lambda e: e.timestamp)
    timestamps = [e.timestamp for e in ordered]
    first, last = timestamps[0], timestamps[-1]

    gaps = [b - a for a, b in zip(timestamps, timestamps[1:])]
    hovers = _hover_durations(ordered, config.HOVER_PAIR_WINDOW_MS)
    recent = [e.kind.value for e in ordered[-config.RECENT_SEQUENCE_LENGTH:]]

    return BehaviorProfile(
        total_interactions=len(ordered),
        page_visits=sum(1 for e in ordered if e.kind == InteractionKind.PAGE_VISIT),
        avg_hover_duration_ms=sum(hovers) / len(hovers) if hovers else 0.0,
        cart_actions=sum(1 for e in ordered if "cart" in e.kind.value),
        wishlist_actions=sum(1 for e in ordered if "wishlist" in e.kind.value),
        quick_bounces=sum(1 for e in ordered if e.kind == InteractionKind.QUICK_BOUNCE),
        session_duration_ms=max(0.0, (last if now is None else now) - first),
        categories_seen=_categories(ordered),
        avg_time_between_actions_ms=sum(gaps) / len(gaps) if gaps else 0.0,
        recent_action_sequence=recent,
        interacted_product_ids=_interacted_ids(ordered),
        fast_action_count=sum(1 for g in gaps if g < config.FAST_ACTION_GAP_MS),
        slow_action_count=sum(1 for g in gaps if g > config.SLOW_ACTION_GAP_MS),
        session_length_ms=last - first,
        sequence_pattern=" -> ".join(recent),
    )


# =============================================================================
# Classifier
# =============================================================================

class BehaviorClassifier:
    """
    Deterministic rule table, evaluated in fixed priority order:

    1. fast hovers with cart actions       -> impulse_buyer   (0.8)
    2. many page visits with long hovers   -> researcher      (0.7)
    3. more wishlist than cart actions     -> price_sensitive (0.6)
    4. default                             -> researcher      (0.6)
    """

    def __init__(self, thresholds: ClassifierThresholds = DEFAULT_CLASSIFIER_THRESHOLDS):
        self.thresholds = thresholds

    def classify(self, profile: BehaviorProfile) -> IntentClassification:
        t = self.thresholds

        if (
            profile.avg_hover_duration_ms < t.IMPULSE_MAX_AVG_HOVER_MS
            and profile.cart_actions > t.IMPULSE_MIN_CART_ACTIONS
        ):
            return IntentClassification(
                label=IntentLabel.IMPULSE_BUYER,
                confidence=0.8,
                indicators=["quick decisions with immediate cart actions"],
                predicted_actions=["complete purchase quickly"],
                estimated_time_to_convert_sec=15,
                estimated_order_value=40,
            )

        if (
            profile.page_visits > t.RESEARCHER_MIN_PAGE_VISITS
            and profile.avg_hover_duration_ms > t.RESEARCHER_MIN_AVG_HOVER_MS
        ):
            return IntentClassification(
                label=IntentLabel.RESEARCHER,
                confidence=0.7,
                indicators=["multiple page visits with long engagement"],
                predicted_actions=["compare more options", "read reviews"],
                estimated_time_to_convert_sec=120,
                estimated_order_value=80,
            )

        if (
            profile.wishlist_actions > profile.cart_actions
            and profile.wishlist_actions > t.PRICE_SENSITIVE_MIN_WISHLIST
        ):
            return IntentClassification(
                label=IntentLabel.PRICE_SENSITIVE,
                confidence=0.6,
                indicators=["saves items to wishlist rather than purchasing"],
                predicted_actions=["wait for sales", "compare prices"],
                estimated_time_to_convert_sec=180,
                estimated_order_value=35,
            )

        return IntentClassification(
            label=IntentLabel(DEFAULT_INTENT.LABEL),
            confidence=DEFAULT_INTENT.CONFIDENCE,
            indicators=["mixed behavior signals"],
            predicted_actions=["continue browsing"],
            estimated_time_to_convert_sec=DEFAULT_INTENT.TIME_TO_CONVERT_SEC,
            estimated_order_value=DEFAULT_INTENT.ORDER_VALUE,
        )
