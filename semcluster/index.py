"""ClusterIndex — online approximate nearest-neighbour index.

Items are grouped into clusters as they arrive.  Inserts and queries only
compare against a handful of candidate clusters picked by cheap heuristics
(a scalar Prefilter and centroid ranking), never against the full dataset.

Public API
----------
ClusterIndex
    .insert()              — add one item
    .insert_many()         — add items in order
    .query()               — approximate nearest stored item
    .query_with_distance() — same, with its distance
    .contains()            — is any stored item within a threshold?
    .items()               — iterate stored items, cluster by cluster
    .summaries()           — per-cluster ClusterSummary list
    .stats()               — live statistics dict
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple, Union

from .clustering import CentroidStrategy, Cluster, MedoidStrategy, make_strategy
from .metrics import DistanceName, Metric, resolve_metric
from .prefilter import Prefilter
from .types import ClusterSummary, IndexConfig

logger = logging.getLogger(__name__)


class EmptyIndexError(LookupError):
    """Raised when querying an index that holds no items."""


class ClusterIndex:
    """Online clustered nearest-neighbour index over arbitrary items.

    Routing
    -------
    Without a prefilter, an item goes to the cluster with the nearest
    centroid (best-fit); a full best-fit cluster makes it open a new one.
    With a prefilter, an item the prefilter rejects opens a new cluster;
    otherwise it goes to the first cluster, in creation order, that has
    room and whose centroid projects close to it (first-fit, no metric
    calls).  The per-centroid ``admits_near`` screen is stricter than the
    global gate alone, which would send every admitted item to the first
    cluster; queries use the same screen to narrow the ranked clusters,
    falling back to all clusters when none pass.

    Parameters
    ----------
    metric            : distance callable or built-in metric name.
    capacity          : target maximum members per cluster.
    prefilter         : optional Prefilter that has not observed anything
                        yet; owned by this index from then on.
    entropy_threshold : see MedoidStrategy; ignored when a MedoidStrategy
                        instance is passed, whose own threshold wins.
    candidate_count   : clusters searched per query.
    centroid_strategy : 'medoid', 'lazy', or a CentroidStrategy instance.
    scan_patience     : cutoff of the intra-cluster scan; None = full scan.
    """

    def __init__(
        self,
        metric: Union[DistanceName, Metric],
        capacity: int,
        prefilter: Optional[Prefilter] = None,
        entropy_threshold: float = 0.5,
        candidate_count: int = 3,
        centroid_strategy: Union[str, CentroidStrategy] = "medoid",
        scan_patience: Optional[int] = 5,
    ) -> None:
        strategy = make_strategy(centroid_strategy, entropy_threshold)
        if isinstance(strategy, MedoidStrategy):
            entropy_threshold = strategy.entropy_threshold
        if prefilter is not None and prefilter.count:
            raise ValueError(
                f"prefilter has already observed {prefilter.count} items; "
                "pass a fresh Prefilter or reset() it first."
            )
        self.config = IndexConfig(
            capacity=capacity,
            entropy_threshold=entropy_threshold,
            candidate_count=candidate_count,
            centroid_strategy=strategy.name or type(strategy).__name__,
            scan_patience=scan_patience,
        )
        self.metric: Metric = resolve_metric(metric)
        self.prefilter: Optional[Prefilter] = prefilter
        self.strategy: CentroidStrategy = strategy
        self._clusters: List[Cluster] = []
        self._count: int = 0

    @classmethod
    def from_config(
        cls,
        metric: Union[DistanceName, Metric],
        config: IndexConfig,
        prefilter: Optional[Prefilter] = None,
        strategy: Optional[CentroidStrategy] = None,
    ) -> "ClusterIndex":
        """Build an index from ``config``.

        Only the built-in strategies can be rebuilt from their name; a
        custom CentroidStrategy must be passed again as ``strategy``.
        """
        params = config.to_dict()
        if strategy is not None:
            params["centroid_strategy"] = strategy
        return cls(metric, prefilter=prefilter, **params)

    @classmethod
    def for_dataset(
        cls,
        metric: Union[DistanceName, Metric],
        dataset_size: int,
        prefilter: Optional[Prefilter] = None,
        **overrides: Any,
    ) -> "ClusterIndex":
        """Index whose cluster capacity is sized for ``dataset_size`` items."""
        config = IndexConfig.for_dataset(dataset_size, **overrides)
        return cls.from_config(metric, config, prefilter=prefilter)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _new_cluster(self, item: Any) -> Cluster:
        cluster = Cluster(self.metric, self.strategy, self.config.scan_patience)
        cluster.add(item)
        self._clusters.append(cluster)
        logger.debug("opened cluster #%d", len(self._clusters) - 1)
        return cluster

    def _first_fit(self, item: Any, value: float) -> Optional[Cluster]:
        if not self.prefilter.admits_value(value):
            return None
        for cluster in self._clusters:
            if len(cluster) >= self.config.capacity:
                continue
            if self.prefilter.admits_near(item, cluster.centroid):
                return cluster
        return None

    def _best_fit(self, item: Any) -> Optional[Cluster]:
        best: Optional[Cluster] = None
        best_distance = float("inf")
        for cluster in self._clusters:
            d = self.metric(item, cluster.centroid)
            if best is None or d < best_distance:
                best, best_distance = cluster, d
        if best is not None and len(best) >= self.config.capacity:
            return None
        return best

    def _candidates(self, target: Any) -> List[Tuple[int, Cluster]]:
        # (position, cluster) pairs of the top-ranked clusters, nearest first.
        pool = list(enumerate(self._clusters))
        if self.prefilter is not None:
            near = [(pos, c) for pos, c in pool if self.prefilter.admits_near(target, c.centroid)]
            pool = near or pool
        ranked = sorted(
            ((self.metric(target, c.centroid), pos, c) for pos, c in pool),
            key=lambda t: (t[0], t[1]),
        )
        return [(pos, c) for _, pos, c in ranked[: self.config.candidate_count]]

    # ------------------------------------------------------------------
    # Insert
    # ------------------------------------------------------------------

    def insert(self, item: Any) -> None:
        """Store ``item``.

        The prefilter is updated last and Cluster.add undoes its append on
        failure, so a raising metric or projection leaves the index unchanged.
        """
        if item is None:
            raise ValueError("None cannot be stored in a ClusterIndex.")
        value = self.prefilter.project(item) if self.prefilter is not None else None

        if not self._clusters:
            self._new_cluster(item)
        else:
            if self.prefilter is not None:
                target = self._first_fit(item, value)
            else:
                target = self._best_fit(item)
            if target is None:
                self._new_cluster(item)
            else:
                target.add(item)

        if self.prefilter is not None:
            self.prefilter.update(value)
        self._count += 1

    def insert_many(self, items: Iterable[Any]) -> int:
        """Insert ``items`` in order; returns how many were stored."""
        n = 0
        for item in items:
            self.insert(item)
            n += 1
        return n

    # ------------------------------------------------------------------
    # Query
    # ------------------------------------------------------------------

    def query_with_distance(self, target: Any) -> Tuple[Any, float]:
        """Approximate nearest stored item and its distance to ``target``.

        Ranks clusters by centroid distance, searches the top
        ``candidate_count`` with the bounded scan, and keeps the best.
        Equal distances favour the earlier-created cluster.

        Raises
        ------
        EmptyIndexError if nothing has been inserted.
        """
        if not self._clusters:
            raise EmptyIndexError("Cannot query an empty ClusterIndex.")
        best: Any = None
        best_key: Optional[Tuple[float, int]] = None
        for pos, cluster in self._candidates(target):
            match = cluster.find_closest(target)
            if match is None:
                continue
            key = (self.metric(target, match), pos)
            if best_key is None or key < best_key:
                best, best_key = match, key
        return best, best_key[0]

    def query(self, target: Any) -> Any:
        """Approximate nearest stored item to ``target``."""
        return self.query_with_distance(target)[0]

    def contains(self, item: Any, threshold: float) -> bool:
        """True iff any stored item lies within ``threshold`` of ``item``."""
        return any(c.contains(item, threshold) for c in self._clusters)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def clusters(self) -> Tuple[Cluster, ...]:
        return tuple(self._clusters)

    def items(self) -> Iterator[Any]:
        for cluster in self._clusters:
            yield from cluster

    def summaries(self) -> List[ClusterSummary]:
        return [c.summary(pos) for pos, c in enumerate(self._clusters)]

    def stats(self) -> Dict[str, Any]:
        """Return live statistics for monitoring / debugging."""
        sizes = [len(c) for c in self._clusters]
        return {
            "item_count": self._count,
            "cluster_count": len(self._clusters),
            "largest_cluster": max(sizes, default=0),
            "mean_cluster_size": self._count / len(sizes) if sizes else 0.0,
            "config": self.config.to_dict(),
            "prefilter": self.prefilter.to_dict() if self.prefilter is not None else None,
        }

    def __len__(self) -> int:
        return self._count

    def __repr__(self) -> str:
        return (
            f"ClusterIndex(items={self._count} clusters={len(self._clusters)} "
            f"capacity={self.config.capacity} strategy={self.strategy.name})"
        )
