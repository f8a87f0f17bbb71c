"""
Unit tests for the Duration Balancer.

Modules must keep course order, stay within capacity unless a single video
is longer than a session, and respect cluster boundaries where possible.
"""
import pytest

from coursepilot.core.models import Cluster
from coursepilot.semantic.featurizer import TextFeaturizer
from coursepilot.study.duration_balancer import DurationBalancer, balance_metrics


def clusters_of(*groups):
    return [Cluster(indices=tuple(g), member_ids=tuple(f"v{i}" for i in g)) for g in groups]


class TestDurationBalancer:
    """Tests for DurationBalancer.balance."""

    @pytest.fixture
    def balancer(self):
        return DurationBalancer()

    def test_scenario_modules(self, balancer, scenario_items):
        clusters = clusters_of((0, 1), (2, 3), (4,))

        modules = balancer.balance(clusters, scenario_items, target_seconds=1200, buffer_percent=20)

        assert [m.total_duration for m in modules] == [580, 900, 1150]
        assert [m.member_ids for m in modules] == [("v0", "v1"), ("v2",), ("v3", "v4")]
        assert not any(m.overflow for m in modules)

    def test_order_and_capacity(self, balancer, networking_items):
        clusters = clusters_of(range(len(networking_items)))

        modules = balancer.balance(clusters, networking_items, target_seconds=1800, buffer_percent=20)

        flattened = [item_id for m in modules for item_id in m.member_ids]
        assert flattened == [item.id for item in networking_items]
        for module in modules:
            assert module.total_duration <= module.capacity or len(module.indices) == 1

    def test_module_indices_are_sequential(self, balancer, networking_items):
        clusters = clusters_of(range(len(networking_items)))

        modules = balancer.balance(clusters, networking_items, target_seconds=1800)

        assert [m.index for m in modules] == list(range(len(modules)))

    def test_cluster_boundaries_are_kept(self, balancer, item_factory):
        items = item_factory(["a", "b", "c", "d"], [400, 400, 400, 400])

        modules = balancer.balance(clusters_of((0, 1), (2, 3)), items, target_seconds=1200)

        assert [m.indices for m in modules] == [(0, 1), (2, 3)]

    def test_oversized_video_gets_its_own_module(self, balancer, item_factory):
        items = item_factory(["short", "marathon", "short again"], [300, 5000, 300])

        modules = balancer.balance(clusters_of((0, 1, 2)), items, target_seconds=1200)

        overflow = [m for m in modules if m.overflow]
        assert len(overflow) == 1
        assert overflow[0].member_ids == ("v1",)

    def test_undersized_neighbours_are_merged(self, balancer, item_factory):
        items = item_factory(["one", "two"], [100, 100])

        modules = balancer.balance(clusters_of((0,), (1,)), items, target_seconds=1200)

        assert len(modules) == 1
        assert modules[0].total_duration == 200

    def test_unknown_durations_use_estimate(self, balancer, item_factory):
        items = item_factory([f"video {i}" for i in range(6)], [0] * 6)

        modules = balancer.balance(clusters_of(range(6)), items, target_seconds=1200)

        assert [len(m.indices) for m in modules] == [2, 2, 2]
        assert all(m.total_duration == 0 for m in modules)

    def test_packing_uses_median_of_known_durations(self, balancer, item_factory):
        items = item_factory(["a", "b", "c"], [0, 300, 900])

        assert balancer.packing_durations(items) == [600.0, 300.0, 900.0]

    def test_items_missing_from_clusters_are_kept(self, balancer, scenario_items):
        modules = balancer.balance(clusters_of((0, 1)), scenario_items, target_seconds=1200)

        assert sorted(i for m in modules for i in m.indices) == [0, 1, 2, 3, 4]

    def test_empty_items(self, balancer):
        assert balancer.balance([], [], target_seconds=1200) == []

    def test_module_difficulty_is_duration_weighted(self, balancer, item_factory):
        items = item_factory(["a", "b"], [100, 300])

        modules = balancer.balance(clusters_of((0, 1)), items, target_seconds=1200, difficulties=[0.2, 0.8])

        assert modules[0].difficulty == pytest.approx(0.65)

    def test_titles_come_from_representative_terms(self, balancer, scenario_items):
        features = TextFeaturizer().featurize([item.title for item in scenario_items])

        modules = balancer.balance(
            clusters_of((0, 1), (2, 3), (4,)), scenario_items, target_seconds=1200, features=features
        )

        assert modules[0].title == "Intro"
        assert modules[0].representative_terms == ("intro",)


class TestGreedyBalance:
    """Tests for the greedy fallback used when balancing runs out of time."""

    def test_splits_on_cluster_change_and_overflow(self, scenario_items):
        modules = DurationBalancer().greedy_balance(
            clusters_of((0, 1), (2, 3), (4,)), scenario_items, target_seconds=1200
        )

        assert [m.total_duration for m in modules] == [580, 900, 950, 200]


class TestBalanceMetrics:
    """Tests for balance_metrics."""

    def test_metrics(self, scenario_items):
        modules = DurationBalancer().balance(clusters_of((0, 1), (2, 3), (4,)), scenario_items, 1200)

        metrics = balance_metrics(modules)

        assert metrics.module_count == 3
        assert metrics.overflow_count == 0
        assert metrics.mean_utilization == pytest.approx(2630 / 3600)
        assert 0.0 < metrics.duration_variance_score < 1.0

    def test_empty(self):
        metrics = balance_metrics([])

        assert metrics.module_count == 0
        assert metrics.duration_variance_score == 1.0
