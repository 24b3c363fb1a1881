"""semcluster — online clustered approximate nearest-neighbour index.

Items of any type are grouped into clusters as they arrive; inserts and
queries only compare against a few candidate clusters.

Public API::

    from semcluster import ClusterIndex, Prefilter

    index = ClusterIndex("absolute", capacity=4)
    index.insert_many([0.0, 1.0, 2.0, 100.0])
    index.query(1.4)
"""

from .types import ClusterSummary, IndexConfig, capacity_for
from .metrics import distance, resolve_metric
from .prefilter import Prefilter
from .clustering import (
    CentroidStrategy,
    Cluster,
    LazyStrategy,
    MedoidStrategy,
    compute_entropy,
    compute_medoid,
)
from .index import ClusterIndex, EmptyIndexError

__version__ = "0.1.0"
__all__ = [
    "ClusterIndex",
    "EmptyIndexError",
    "Cluster",
    "CentroidStrategy",
    "MedoidStrategy",
    "LazyStrategy",
    "Prefilter",
    "IndexConfig",
    "ClusterSummary",
    "capacity_for",
    "distance",
    "resolve_metric",
    "compute_medoid",
    "compute_entropy",
]
