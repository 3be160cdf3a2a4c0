"""Tests for A/B test statistics and traffic splitting."""

from datetime import datetime, timezone

import pytest
from pagelink_analytics.core.ab_test import (
    ABTestError,
    ab_test_status,
    add_variant,
    apply_variant_events,
    calculate_confidence,
    declare_winner,
    is_ready_to_declare,
    rank_variants,
    rebalance_traffic,
    remove_variant,
    update_traffic_percent,
)
from pagelink_analytics.core.models import ABTestConfig, ABTestEvent, ABTestStatus, ABVariant


def _variant(variant_id, views=0, conversions=0, traffic_percent=50):
    return ABVariant(
        id=variant_id,
        name=variant_id.upper(),
        html=f"<p>{variant_id}</p>",
        traffic_percent=traffic_percent,
        views=views,
        conversions=conversions,
    )


def _config(*variants, **fields):
    return ABTestConfig(enabled=True, variants=list(variants), **fields)


class TestConfidence:
    """Test the confidence heuristic."""

    def test_needs_two_variants(self):
        assert calculate_confidence([_variant("a", 1000, 100)]) == 0

    def test_sample_floor(self):
        """Fewer than 30 views on a leading variant means no confidence."""
        variants = [_variant("a", 10, 9), _variant("b", 10, 0)]
        assert calculate_confidence(variants) == 0

    def test_clamped_to_99(self):
        variants = [_variant("a", 1000, 100), _variant("b", 1000, 50)]
        assert calculate_confidence(variants) == 99

    def test_formula(self):
        # diff 1 point, avg views 100: 1 * 10 * 2
        variants = [_variant("a", 100, 6), _variant("b", 100, 5)]
        assert calculate_confidence(variants) == pytest.approx(20)

    def test_order_of_input_irrelevant(self):
        variants = [_variant("b", 100, 5), _variant("a", 100, 6)]
        assert calculate_confidence(variants) == pytest.approx(20)

    def test_equal_rates_zero(self):
        assert calculate_confidence([_variant("a", 100, 5), _variant("b", 100, 5)]) == 0

    def test_rates_derived_from_counts(self):
        """Variants built from views and conversions alone carry their rate."""
        variants = [
            ABVariant(id="a", name="A", views=1000, conversions=100),
            ABVariant(id="b", name="B", views=1000, conversions=50),
        ]
        assert [v.conversion_rate for v in variants] == [10.0, 5.0]
        assert calculate_confidence(variants) == 99

    def test_stored_rate_is_recomputed(self):
        variant = ABVariant(id="a", name="A", views=1000, conversions=100, conversion_rate=1.0)
        assert variant.conversion_rate == 10.0

    def test_stale_rate_in_stored_config_ignored(self):
        config = ABTestConfig.model_validate({
            "variants": [
                {"id": "a", "name": "A", "views": 40, "conversions": 4, "conversionRate": 99},
                {"id": "b", "name": "B", "views": 40, "conversions": 0},
            ],
        })
        assert config.variants[0].conversion_rate == 10.0
        assert config.variants[1].conversion_rate == 0.0


class TestStatus:
    """Test the not_configured -> running -> concluded lifecycle."""

    def test_not_configured(self):
        assert ab_test_status(None) == ABTestStatus.NOT_CONFIGURED
        assert ab_test_status(ABTestConfig()) == ABTestStatus.NOT_CONFIGURED

    def test_running(self):
        assert ab_test_status(_config(_variant("a"), _variant("b"))) == ABTestStatus.RUNNING

    def test_concluded(self):
        config = _config(_variant("a"), _variant("b"), winner_id="a")
        assert ab_test_status(config) == ABTestStatus.CONCLUDED

    def test_high_confidence_only_signals_readiness(self):
        config = _config(_variant("a", 1000, 100), _variant("b", 1000, 50))
        assert is_ready_to_declare(config) is True
        assert ab_test_status(config) == ABTestStatus.RUNNING

    def test_concluded_not_ready(self):
        config = _config(_variant("a", 1000, 100), _variant("b", 1000, 50), winner_id="a")
        assert is_ready_to_declare(config) is False

    def test_below_confidence_level_not_ready(self):
        config = _config(_variant("a", 100, 6), _variant("b", 100, 5))
        assert is_ready_to_declare(config) is False


class TestVariantEvents:
    """Test recomputing variant stats from raw events."""

    def test_counts_views_and_conversions(self):
        config = _config(_variant("a"), _variant("b"))
        events = [
            ABTestEvent(variant_id="a", event_type="view"),
            ABTestEvent(variant_id="a", event_type="view"),
            ABTestEvent(variant_id="a", event_type="conversion"),
            ABTestEvent(variant_id="b", event_type="view"),
            ABTestEvent(variant_id="zzz", event_type="view"),
        ]
        updated = apply_variant_events(config, events)
        a, b = updated.variants
        assert (a.views, a.conversions, a.conversion_rate) == (2, 1, 50.0)
        assert (b.views, b.conversions, b.conversion_rate) == (1, 0, 0.0)

    def test_no_events_resets_stats(self):
        config = _config(_variant("a", 100, 10))
        updated = apply_variant_events(config, [])
        assert updated.variants[0].views == 0
        assert updated.variants[0].conversion_rate == 0

    def test_rank_variants(self):
        ranked = rank_variants([_variant("a", 100, 5), _variant("b", 100, 9)])
        assert [v.id for v in ranked] == ["b", "a"]


class TestTrafficSplit:
    """Test traffic percentage maintenance."""

    def test_rebalance_three_way(self):
        variants = rebalance_traffic([_variant("a"), _variant("b"), _variant("c")])
        assert [v.traffic_percent for v in variants] == [34, 33, 33]
        assert sum(v.traffic_percent for v in variants) == 100

    def test_rebalance_empty(self):
        assert rebalance_traffic([]) == []

    def test_add_variant_rebalances(self):
        variants = add_variant([_variant("a", traffic_percent=100)], _variant("b", traffic_percent=0))
        assert [v.traffic_percent for v in variants] == [50, 50]

    def test_remove_variant_rebalances(self):
        variants = remove_variant(rebalance_traffic([_variant("a"), _variant("b"), _variant("c")]), "b")
        assert [(v.id, v.traffic_percent) for v in variants] == [("a", 50), ("c", 50)]

    def test_update_within_budget(self):
        variants = [_variant("a", traffic_percent=30), _variant("b", traffic_percent=30)]
        updated = update_traffic_percent(variants, "a", 60)
        assert [v.traffic_percent for v in updated] == [60, 30]

    def test_update_scales_others_down(self):
        variants = [_variant("a", traffic_percent=50), _variant("b", traffic_percent=50)]
        updated = update_traffic_percent(variants, "a", 75)
        assert [v.traffic_percent for v in updated] == [75, 25]

    def test_update_floors_scaled_shares(self):
        variants = [
            _variant("a", traffic_percent=20),
            _variant("b", traffic_percent=45),
            _variant("c", traffic_percent=35),
        ]
        updated = update_traffic_percent(variants, "a", 50)
        # Others scaled by 50/80 and floored: 28.125 -> 28, 21.875 -> 21
        assert [v.traffic_percent for v in updated] == [50, 28, 21]
        assert sum(v.traffic_percent for v in updated) <= 100

    def test_update_clamps(self):
        variants = [_variant("a", traffic_percent=50), _variant("b", traffic_percent=50)]
        updated = update_traffic_percent(variants, "a", 150)
        assert [v.traffic_percent for v in updated] == [100, 0]

    def test_update_unknown_variant(self):
        variants = [_variant("a", traffic_percent=60), _variant("b", traffic_percent=40)]
        with pytest.raises(ABTestError, match="Variant not found"):
            update_traffic_percent(variants, "zzz", 50)
        assert [v.traffic_percent for v in variants] == [60, 40]


class TestDeclareWinner:
    """Test explicit test conclusion."""

    def test_declares_winner(self):
        now = datetime(2026, 3, 30, tzinfo=timezone.utc)
        config = _config(_variant("a"), _variant("b"))

        updated, winner = declare_winner(config, "b", now=now)

        assert winner.id == "b"
        assert updated.winner_id == "b"
        assert updated.ended_at == now
        assert updated.enabled is False
        assert ab_test_status(updated) == ABTestStatus.CONCLUDED
        # Original left untouched
        assert config.winner_id is None

    def test_no_test_configured(self):
        with pytest.raises(ABTestError, match="No A/B test configured"):
            declare_winner(None, "a")

    def test_unknown_variant(self):
        with pytest.raises(ABTestError, match="Variant not found"):
            declare_winner(_config(_variant("a")), "zzz")

    def test_camel_case_round_trip(self):
        config = _config(_variant("a"), _variant("b"), test_name="Hero")
        dumped = config.model_dump(mode="json", by_alias=True)
        assert dumped["testName"] == "Hero"
        assert dumped["variants"][0]["trafficPercent"] == 50
        assert ABTestConfig.model_validate(dumped).test_name == "Hero"
