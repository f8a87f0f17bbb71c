"""
Duration Balancer - Cut clustered, ordered videos into session-sized modules.

Videos keep their course order. Each video carries its cluster label and a
change of label is a natural breakpoint. Dynamic programming over cut
positions then minimises, per module:

    (1 - w) * ((target - total) / target)^2 + w * 0.5 * (cluster runs merged - 1)

where w is the profile's content-vs-duration weight, subject to
``total <= capacity``. A module may only exceed capacity when it is a
single video. Cuts inside a cluster run are allowed only when that run
alone exceeds capacity.

A final pass merges adjacent undersized modules when the result still fits.
"""

from __future__ import annotations

import statistics
from dataclasses import dataclass

from loguru import logger

from config import Settings, get_settings
from coursepilot.core.cancellation import PhaseBudget, unbounded
from coursepilot.core.models import BalancedModule, Cluster, UserPreferenceProfile, VideoItem
from coursepilot.semantic.featurizer import FeaturizationResult
from coursepilot.semantic.similarity_service import SimilarityMatrix
from coursepilot.study.difficulty import DifficultyAnalyzer


@dataclass
class BalanceMetrics:
    """Aggregate view of how well modules match the session target."""

    module_count: int
    mean_utilization: float
    duration_variance_score: float  # 1.0 = all modules the same length
    overflow_count: int


def balance_metrics(modules: list[BalancedModule]) -> BalanceMetrics:
    if not modules:
        return BalanceMetrics(0, 0.0, 1.0, 0)

    totals = [m.total_duration for m in modules]
    mean_total = statistics.fmean(totals)
    if len(totals) > 1 and mean_total > 0:
        variation = statistics.pstdev(totals) / mean_total
        variance_score = max(0.0, 1.0 - variation)
    else:
        variance_score = 1.0

    return BalanceMetrics(
        module_count=len(modules),
        mean_utilization=statistics.fmean(m.utilization for m in modules),
        duration_variance_score=variance_score,
        overflow_count=sum(1 for m in modules if m.overflow),
    )


class DurationBalancer:
    """
    Turn clusters into ordered, capacity-bounded modules.

    Example:
        >>> balancer = DurationBalancer()
        >>> modules = balancer.balance(clusters, items, target_seconds=3600, buffer_percent=20)
        >>> [m.total_duration for m in modules]
    """

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()

    def balance(
        self,
        clusters: list[Cluster],
        items: list[VideoItem],
        target_seconds: int,
        buffer_percent: float = 20.0,
        profile: UserPreferenceProfile | None = None,
        features: FeaturizationResult | None = None,
        similarity: SimilarityMatrix | None = None,
        difficulties: list[float] | None = None,
        budget: PhaseBudget | None = None,
    ) -> list[BalancedModule]:
        """Partition items into modules; every item lands in exactly one module."""
        if not items:
            return []

        profile = profile or UserPreferenceProfile()
        budget = budget or unbounded("balancing")
        capacity = target_seconds * (1 + buffer_percent / 100)
        labels = self._labels(clusters, len(items))
        packing = self.packing_durations(items)

        groups = self._cut(labels, packing, target_seconds, capacity, profile.content_vs_duration_weight, budget)
        groups = self._merge_undersized(groups, packing, target_seconds, capacity, similarity)

        logger.debug(f"Balanced {len(items)} items into {len(groups)} modules (capacity {capacity:.0f}s)")
        return self._build_modules(groups, items, packing, target_seconds, capacity, features, similarity, difficulties)

    def greedy_balance(
        self,
        clusters: list[Cluster],
        items: list[VideoItem],
        target_seconds: int,
        buffer_percent: float = 20.0,
        features: FeaturizationResult | None = None,
        similarity: SimilarityMatrix | None = None,
        difficulties: list[float] | None = None,
    ) -> list[BalancedModule]:
        """One module per cluster run, split greedily only where a run overflows."""
        if not items:
            return []

        capacity = target_seconds * (1 + buffer_percent / 100)
        labels = self._labels(clusters, len(items))
        packing = self.packing_durations(items)

        groups: list[list[int]] = []
        current: list[int] = []
        current_total = 0.0
        for i in range(len(items)):
            new_run = bool(current) and labels[i] != labels[current[-1]]
            overflows = bool(current) and current_total + packing[i] > capacity
            if new_run or overflows:
                groups.append(current)
                current, current_total = [], 0.0
            current.append(i)
            current_total += packing[i]
        groups.append(current)

        return self._build_modules(groups, items, packing, target_seconds, capacity, features, similarity, difficulties)

    def packing_durations(self, items: list[VideoItem]) -> list[float]:
        """Durations used for packing; unknown (0) ones get an estimate."""
        known = [item.duration for item in items if item.duration > 0]
        estimate = statistics.median(known) if known else self.settings.unknown_duration_seconds
        return [float(item.duration) if item.duration > 0 else float(estimate) for item in items]

    @staticmethod
    def _labels(clusters: list[Cluster], n: int) -> list[int]:
        labels = [-1] * n
        for label, cluster in enumerate(clusters):
            for i in cluster.indices:
                labels[i] = label
        # Items a strategy left out keep their own singleton label
        next_label = len(clusters)
        for i in range(n):
            if labels[i] < 0:
                labels[i] = next_label
                next_label += 1
        return labels

    @staticmethod
    def _cut(
        labels: list[int],
        packing: list[float],
        target: float,
        capacity: float,
        content_weight: float,
        budget: PhaseBudget,
    ) -> list[list[int]]:
        n = len(labels)

        run_id = [0] * n
        for i in range(1, n):
            run_id[i] = run_id[i - 1] + (labels[i] != labels[i - 1])
        run_totals: dict[int, float] = {}
        for i in range(n):
            run_totals[run_id[i]] = run_totals.get(run_id[i], 0.0) + packing[i]

        # allowed[i]: a module may start at item i
        allowed = [True] + [
            labels[i] != labels[i - 1] or run_totals[run_id[i]] > capacity
            for i in range(1, n)
        ]

        inf = float("inf")
        best = [inf] * (n + 1)
        back = [0] * (n + 1)
        best[0] = 0.0
        for j in range(1, n + 1):
            if j < n and not allowed[j]:
                continue
            budget.check()
            total = 0.0
            for i in range(j - 1, -1, -1):
                total += packing[i]
                if total > capacity and j - i > 1:
                    break
                if not allowed[i] or best[i] == inf:
                    continue
                deviation = (target - total) / target if target > 0 else 0.0
                runs = run_id[j - 1] - run_id[i] + 1
                cost = (1 - content_weight) * deviation**2 + content_weight * 0.5 * (runs - 1)
                if best[i] + cost < best[j]:
                    best[j] = best[i] + cost
                    back[j] = i

        groups = []
        j = n
        while j > 0:
            i = back[j]
            groups.append(list(range(i, j)))
            j = i
        groups.reverse()
        return groups

    def _merge_undersized(
        self,
        groups: list[list[int]],
        packing: list[float],
        target: float,
        capacity: float,
        similarity: SimilarityMatrix | None,
    ) -> list[list[int]]:
        floor = self.settings.min_utilization * target

        def total(group: list[int]) -> float:
            return sum(packing[i] for i in group)

        merged = True
        while merged and len(groups) > 1:
            merged = False
            for k, group in enumerate(groups):
                if total(group) >= floor:
                    continue
                options = []
                for neighbour in (k - 1, k + 1):
                    if 0 <= neighbour < len(groups) and total(group) + total(groups[neighbour]) <= capacity:
                        affinity = similarity.mean_between(group, groups[neighbour]) if similarity else 0.0
                        options.append((affinity, -neighbour, neighbour))
                if not options:
                    continue
                neighbour = max(options)[2]
                lo, hi = sorted((k, neighbour))
                groups = groups[:lo] + [groups[lo] + groups[hi]] + groups[hi + 1:]
                merged = True
                break
        return groups

    @staticmethod
    def _build_modules(
        groups: list[list[int]],
        items: list[VideoItem],
        packing: list[float],
        target: int,
        capacity: float,
        features: FeaturizationResult | None,
        similarity: SimilarityMatrix | None,
        difficulties: list[float] | None,
    ) -> list[BalancedModule]:
        modules = []
        for index, group in enumerate(groups):
            terms = features.terms_for(group) if features is not None else ()
            if terms:
                title = " & ".join(term.title() for term in terms[:2])
            else:
                title = items[group[0]].title or f"Module {index + 1}"

            durations = [items[i].duration for i in group]
            difficulty = 0.5
            if difficulties is not None:
                difficulty = DifficultyAnalyzer.module_difficulty([difficulties[i] for i in group], durations)

            modules.append(
                BalancedModule(
                    index=index,
                    title=title,
                    indices=tuple(group),
                    member_ids=tuple(items[i].id for i in group),
                    total_duration=sum(durations),
                    target_duration=target,
                    capacity=capacity,
                    representative_terms=terms,
                    cohesion=similarity.mean_within(group) if similarity is not None else 0.0,
                    overflow=len(group) == 1 and packing[group[0]] > capacity,
                    difficulty=difficulty,
                )
            )
        return modules
