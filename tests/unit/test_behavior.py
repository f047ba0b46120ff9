"""
Tests for behavior aggregation and the rule-based classifier.
"""

import pytest


class TestAggregateBehavior:
    """Tests for aggregate_behavior."""

    def test_empty_log_gives_zero_profile(self):
        from recs.behavior import aggregate_behavior
        from recs.models import BehaviorProfile

        assert aggregate_behavior([]) == BehaviorProfile()

    def test_counts(self, make_event):
        from recs.behavior import aggregate_behavior

        events = [
            make_event("page_visit", 0),
            make_event("view", 100, "a"),
            make_event("cart_add", 200, "a"),
            make_event("cart_remove", 300, "a"),
            make_event("wishlist_add", 400, "b"),
            make_event("quick_bounce", 500, "c", duration_ms=150),
        ]
        profile = aggregate_behavior(events)

        assert profile.total_interactions == 6
        assert profile.page_visits == 1
        assert profile.cart_actions == 2
        assert profile.wishlist_actions == 1
        assert profile.quick_bounces == 1
        assert profile.interacted_product_ids == ["a", "b"]

    def test_hover_durations_explicit_and_paired(self, make_event):
        """Explicit durations count directly; a start pairs with a later end within 30 s."""
        from recs.behavior import aggregate_behavior

        events = [
            make_event("hover_start", 1_000, "a"),
            make_event("hover_end", 3_000, "a"),
            make_event("hover_end", 5_000, "b", duration_ms=4_000),
        ]

        assert aggregate_behavior(events).avg_hover_duration_ms == 3_000

    def test_hover_pair_outside_window_ignored(self, make_event):
        from recs.behavior import aggregate_behavior

        events = [
            make_event("hover_start", 0, "a"),
            make_event("hover_end", 31_000, "a"),
        ]

        assert aggregate_behavior(events).avg_hover_duration_ms == 0.0

    def test_timing_and_sequence(self, make_event):
        from recs.behavior import aggregate_behavior

        events = [
            make_event("view", 20_500, "b"),
            make_event("view", 0, "a"),
            make_event("cart_add", 500, "a"),
        ]
        profile = aggregate_behavior(events)

        # sorted by timestamp: gaps 500 and 20000
        assert profile.avg_time_between_actions_ms == 10_250
        assert profile.fast_action_count == 1
        assert profile.slow_action_count == 1
        assert profile.session_duration_ms == 20_500
        assert profile.recent_action_sequence == ["view", "cart_add", "view"]
        assert profile.sequence_pattern == "view -> cart_add -> view"

    def test_session_duration_uses_now(self, make_event):
        from recs.behavior import aggregate_behavior

        profile = aggregate_behavior([make_event("view", 1_000)], now=61_000)

        assert profile.session_duration_ms == 60_000

    def test_recent_sequence_capped(self, make_event):
        from recs.behavior import aggregate_behavior

        events = [make_event("view", i) for i in range(30)]

        assert len(aggregate_behavior(events).recent_action_sequence) == 20

    def test_categories_from_metadata_and_context(self, make_event):
        from recs.behavior import aggregate_behavior

        events = [
            make_event("view", 0, "a", metadata={"category": "kits"}),
            make_event("view", 1, "b", context="search"),
            make_event("view", 2, "c", metadata={"category": "kits"}),
        ]

        assert aggregate_behavior(events).categories_seen == ["kits", "search"]

    def test_deterministic(self, impulse_events):
        from recs.behavior import aggregate_behavior

        assert aggregate_behavior(impulse_events) == aggregate_behavior(list(reversed(impulse_events)))


class TestBehaviorClassifier:
    """Tests for the fixed-priority rule table."""

    def test_priority_impulse_over_price_sensitive(self):
        """avg hover 500, 2 cart actions, 5 wishlist actions: rules 1 and 3 both match, rule 1 wins."""
        from recs.behavior import BehaviorClassifier
        from recs.models import BehaviorProfile, IntentLabel

        profile = BehaviorProfile(avg_hover_duration_ms=500, cart_actions=2, wishlist_actions=5)

        result = BehaviorClassifier().classify(profile)

        assert result.label == IntentLabel.IMPULSE_BUYER
        assert result.confidence == 0.8

    def test_priority_researcher_over_price_sensitive(self):
        """Rules 2 and 3 both match: rule 2 wins."""
        from recs.behavior import BehaviorClassifier
        from recs.models import BehaviorProfile, IntentLabel

        profile = BehaviorProfile(avg_hover_duration_ms=4_000, page_visits=5, wishlist_actions=3)

        assert BehaviorClassifier().classify(profile).label == IntentLabel.RESEARCHER

    def test_priority_impulse_over_researcher(self):
        """Thresholds widened so rules 1 and 2 overlap: rule 1 wins."""
        from config.constants import ClassifierThresholds
        from recs.behavior import BehaviorClassifier
        from recs.models import BehaviorProfile, IntentLabel

        thresholds = ClassifierThresholds(
            IMPULSE_MAX_AVG_HOVER_MS=5_000, RESEARCHER_MIN_AVG_HOVER_MS=1_000,
        )
        profile = BehaviorProfile(avg_hover_duration_ms=2_000, cart_actions=2, page_visits=5)

        assert BehaviorClassifier(thresholds).classify(profile).label == IntentLabel.IMPULSE_BUYER

    def test_impulse_scenario(self):
        """avg hover 900 ms, 1 cart action, 1 page visit."""
        from recs.behavior import BehaviorClassifier
        from recs.models import BehaviorProfile, IntentLabel

        result = BehaviorClassifier().classify(
            BehaviorProfile(avg_hover_duration_ms=900, cart_actions=1, page_visits=1)
        )

        assert result.label == IntentLabel.IMPULSE_BUYER
        assert result.confidence == 0.8
        assert result.estimated_time_to_convert_sec == 15
        assert result.estimated_order_value == 40
        assert result.source == "rules"

    def test_researcher(self):
        from recs.behavior import BehaviorClassifier
        from recs.models import BehaviorProfile, IntentLabel

        result = BehaviorClassifier().classify(
            BehaviorProfile(avg_hover_duration_ms=4_000, page_visits=4)
        )

        assert result.label == IntentLabel.RESEARCHER
        assert result.confidence == 0.7
        assert result.predicted_actions == ["compare more options", "read reviews"]

    def test_price_sensitive(self):
        from recs.behavior import BehaviorClassifier
        from recs.models import BehaviorProfile, IntentLabel

        result = BehaviorClassifier().classify(
            BehaviorProfile(avg_hover_duration_ms=2_000, wishlist_actions=3, cart_actions=1)
        )

        assert result.label == IntentLabel.PRICE_SENSITIVE
        assert result.confidence == 0.6

    @pytest.mark.parametrize("profile_fields", [
        {},
        {"page_visits": 3, "avg_hover_duration_ms": 5_000},   # not strictly greater
        {"cart_actions": 1, "avg_hover_duration_ms": 1_000},  # hover not below 1000
        {"wishlist_actions": 2, "cart_actions": 2, "avg_hover_duration_ms": 2_000},
    ])
    def test_default(self, profile_fields):
        from config.constants import DEFAULT_INTENT
        from recs.behavior import BehaviorClassifier
        from recs.models import BehaviorProfile, IntentLabel

        result = BehaviorClassifier().classify(BehaviorProfile(**profile_fields))

        assert result.label == IntentLabel(DEFAULT_INTENT.LABEL)
        assert result.confidence == DEFAULT_INTENT.CONFIDENCE
        assert result.indicators == ["mixed behavior signals"]

    def test_empty_profile_gives_default(self):
        from recs.behavior import BehaviorClassifier
        from recs.models import BehaviorProfile, IntentLabel

        result = BehaviorClassifier().classify(BehaviorProfile())

        assert result.label == IntentLabel.RESEARCHER
        assert result.confidence == 0.6
