"""Record types for semcluster.

IndexConfig    — validated tunables of a ClusterIndex.
ClusterSummary — read-only snapshot of one cluster, for stats / debugging.
"""

from __future__ import annotations

import json
import math
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

CENTROID_STRATEGIES = ("medoid", "lazy")


def capacity_for(dataset_size: int) -> int:
    """Target cluster size for an expected dataset: ``max(1, floor(sqrt(n)))``."""
    if dataset_size < 0:
        raise ValueError(f"dataset_size must be >= 0, got {dataset_size}")
    return max(1, int(math.sqrt(dataset_size)))


# ---------------------------------------------------------------------------
# IndexConfig
# ---------------------------------------------------------------------------


@dataclass
class IndexConfig:
    """Tunables of a ClusterIndex.

    Schema
    ------
    capacity          : target maximum members per cluster (>= 1)
    entropy_threshold : mean centroid distance above which the medoid
                        strategy recomputes the exact medoid (>= 0)
    candidate_count   : clusters examined per query (>= 1)
    centroid_strategy : 'medoid' or 'lazy'
    scan_patience     : non-improving members tolerated by the bounded
                        intra-cluster scan; None scans the whole cluster
    """

    capacity: int
    entropy_threshold: float = 0.5
    candidate_count: int = 3
    centroid_strategy: str = "medoid"
    scan_patience: Optional[int] = 5

    def __post_init__(self) -> None:
        if self.capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {self.capacity}")
        if self.entropy_threshold < 0:
            raise ValueError(
                f"entropy_threshold must be >= 0, got {self.entropy_threshold}"
            )
        if self.candidate_count < 1:
            raise ValueError(
                f"candidate_count must be >= 1, got {self.candidate_count}"
            )
        # Custom CentroidStrategy subclasses record their own name here.
        if not self.centroid_strategy:
            raise ValueError(
                "centroid_strategy must name a strategy, "
                f"e.g. one of {', '.join(repr(s) for s in CENTROID_STRATEGIES)}."
            )
        if self.scan_patience is not None and self.scan_patience < 1:
            raise ValueError(
                f"scan_patience must be >= 1 or None, got {self.scan_patience}"
            )

    @classmethod
    def for_dataset(cls, dataset_size: int, **overrides: Any) -> "IndexConfig":
        """Config whose capacity is sized for ``dataset_size`` items."""
        return cls(capacity=capacity_for(dataset_size), **overrides)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "IndexConfig":
        return cls(**data)


# ---------------------------------------------------------------------------
# ClusterSummary
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ClusterSummary:
    """Snapshot of one cluster.

    ``position`` is the cluster's creation order within its index.
    """

    position: int
    size: int
    centroid: Any

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
