"""Clusters and centroid strategies for semcluster.

compute_medoid / compute_entropy — low-level helpers
MedoidStrategy  — exact medoid, recomputed only when entropy grows too high
LazyStrategy    — centroid follows the member nearest the newest insert
Cluster         — append-only members, a member centroid, bounded search
"""

from __future__ import annotations

import abc
import logging
from typing import Any, Iterator, List, Optional, Sequence, Union

import numpy as np

from .metrics import Metric
from .types import ClusterSummary

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Low-level helpers
# ---------------------------------------------------------------------------


def compute_medoid(members: Sequence[Any], metric: Metric) -> Any:
    """Member with the smallest total distance to all other members.

    Assumes a symmetric metric, so each pair is measured once.  Ties go to
    the earliest member.
    """
    if not members:
        raise ValueError("Cannot compute medoid of an empty list.")
    n = len(members)
    totals = np.zeros(n, dtype=np.float64)
    for i in range(n):
        for j in range(i + 1, n):
            d = metric(members[i], members[j])
            totals[i] += d
            totals[j] += d
    return members[int(np.argmin(totals))]


def compute_entropy(centroid: Any, members: Sequence[Any], metric: Metric) -> float:
    """Mean distance from ``centroid`` to every member (centroid included)."""
    if not members:
        raise ValueError("Cannot compute entropy of an empty list.")
    return float(np.mean([metric(centroid, m) for m in members]))


# ---------------------------------------------------------------------------
# Centroid strategies
# ---------------------------------------------------------------------------


class CentroidStrategy(abc.ABC):
    """Decides a cluster's centroid after ``item`` has been appended to it."""

    name: str = ""

    @abc.abstractmethod
    def update(self, cluster: "Cluster", item: Any) -> Any:
        """Return the new centroid; must be one of ``cluster``'s members."""


class MedoidStrategy(CentroidStrategy):
    """Exact medoid, gated by entropy.

    Entropy is checked on every insert (O(n)); the O(n²) medoid scan runs
    only when entropy exceeds ``entropy_threshold``.
    """

    name = "medoid"

    def __init__(self, entropy_threshold: float = 0.5) -> None:
        if entropy_threshold < 0:
            raise ValueError(f"entropy_threshold must be >= 0, got {entropy_threshold}")
        self.entropy_threshold = float(entropy_threshold)

    def update(self, cluster: "Cluster", item: Any) -> Any:
        entropy = compute_entropy(cluster.centroid, cluster._members, cluster.metric)
        if entropy <= self.entropy_threshold:
            return cluster.centroid
        medoid = compute_medoid(cluster._members, cluster.metric)
        logger.debug(
            "recomputed medoid of %d members (entropy %.4g > %.4g)",
            len(cluster), entropy, self.entropy_threshold,
        )
        return medoid


class LazyStrategy(CentroidStrategy):
    """Centroid becomes the existing member closest to the new item.

    O(n) at worst and usually much less thanks to the bounded scan, but it
    drifts from the true medoid as the cluster grows.
    """

    name = "lazy"

    def update(self, cluster: "Cluster", item: Any) -> Any:
        return cluster._scan(item, len(cluster) - 1)


def make_strategy(
    strategy: Union[str, CentroidStrategy],
    entropy_threshold: float = 0.5,
) -> CentroidStrategy:
    """Build a strategy from its name, or pass an instance through."""
    if isinstance(strategy, CentroidStrategy):
        return strategy
    if strategy == "medoid":
        return MedoidStrategy(entropy_threshold)
    if strategy == "lazy":
        return LazyStrategy()
    raise ValueError(
        f"Unknown centroid strategy {strategy!r}. Valid options: 'medoid', 'lazy'."
    )


# ---------------------------------------------------------------------------
# Cluster
# ---------------------------------------------------------------------------


class Cluster:
    """Append-only group of items with a member centroid.

    Parameters
    ----------
    metric   : distance callable shared with the owning index.
    strategy : centroid strategy applied on every ``add`` after the first.
    patience : consecutive non-improving members after which
               ``find_closest`` stops scanning; None disables the cutoff.
    """

    def __init__(
        self,
        metric: Metric,
        strategy: Optional[CentroidStrategy] = None,
        patience: Optional[int] = 5,
    ) -> None:
        if patience is not None and patience < 1:
            raise ValueError(f"patience must be >= 1 or None, got {patience}")
        self.metric: Metric = metric
        self.strategy: CentroidStrategy = strategy or MedoidStrategy()
        self.patience: Optional[int] = patience
        self.centroid: Any = None
        self._members: List[Any] = []

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def add(self, item: Any) -> None:
        """Append ``item`` and let the strategy re-derive the centroid.

        If the strategy raises, the append is undone.
        """
        if not self._members:
            self._members.append(item)
            self.centroid = item
            return
        self._members.append(item)
        try:
            centroid = self.strategy.update(self, item)
        except Exception:
            self._members.pop()
            raise
        self.centroid = centroid

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def _scan(self, query: Any, stop: int) -> Any:
        # Walk members[:stop] newest-first; equal distances prefer the older member.
        if stop <= 0:
            return None
        best = self._members[stop - 1]
        if stop == 1:
            return best
        best_distance = self.metric(query, best)
        misses = 0
        for i in range(stop - 2, -1, -1):
            member = self._members[i]
            d = self.metric(query, member)
            if d < best_distance:
                best, best_distance, misses = member, d, 0
                continue
            if d == best_distance:
                best = member
            misses += 1
            if self.patience is not None and misses >= self.patience:
                break
        return best

    def find_closest(self, query: Any) -> Any:
        """Approximate nearest member to ``query``, or None if empty.

        Scans from the most recent member backwards and gives up after
        ``patience`` members in a row fail to improve on the best distance.
        """
        return self._scan(query, len(self._members))

    def contains(self, item: Any, threshold: float) -> bool:
        """True iff some member lies within ``threshold`` of ``item``."""
        if threshold < 0:
            raise ValueError(f"threshold must be >= 0, got {threshold}")
        return any(self.metric(item, m) <= threshold for m in self._members)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def entropy(self) -> float:
        """Mean distance from the centroid to the members; 0.0 when empty."""
        if not self._members:
            return 0.0
        return compute_entropy(self.centroid, self._members, self.metric)

    def medoid(self) -> Any:
        """Exact medoid of the current members, or None when empty."""
        if not self._members:
            return None
        return compute_medoid(self._members, self.metric)

    @property
    def members(self) -> tuple:
        return tuple(self._members)

    @property
    def size(self) -> int:
        return len(self._members)

    def summary(self, position: int) -> ClusterSummary:
        return ClusterSummary(position=position, size=self.size, centroid=self.centroid)

    def __len__(self) -> int:
        return len(self._members)

    def __iter__(self) -> Iterator[Any]:
        return iter(self._members)

    def __repr__(self) -> str:
        return (
            f"Cluster(size={self.size} centroid={self.centroid!r} "
            f"strategy={self.strategy.name})"
        )
