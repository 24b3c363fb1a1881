"""Unit tests for semcluster.index.ClusterIndex."""

import numpy as np
import pytest

from semcluster.clustering import CentroidStrategy, LazyStrategy, MedoidStrategy
from semcluster.index import ClusterIndex, EmptyIndexError
from semcluster.metrics import absolute_difference
from semcluster.prefilter import Prefilter
from semcluster.types import IndexConfig


@pytest.fixture
def index():
    return ClusterIndex("absolute", capacity=2)


def random_values(n, seed=0):
    rng = np.random.default_rng(seed)
    return [float(v) for v in rng.uniform(-500, 500, size=n)]


def all_configs():
    return [
        dict(centroid_strategy="medoid"),
        dict(centroid_strategy="lazy"),
        dict(centroid_strategy="medoid", prefilter=Prefilter(threshold=1.5)),
        dict(centroid_strategy="lazy", prefilter=Prefilter(threshold=2.0)),
    ]


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------


def test_construction(index):
    assert len(index) == 0
    assert index.clusters == ()
    assert index.config.capacity == 2
    assert index.config.candidate_count == 3
    assert index.prefilter is None


@pytest.mark.parametrize("kwargs", [
    {"capacity": 0},
    {"capacity": 2, "candidate_count": 0},
    {"capacity": 2, "entropy_threshold": -1.0},
    {"capacity": 2, "scan_patience": 0},
    {"capacity": 2, "centroid_strategy": "mean"},
])
def test_invalid_parameters(kwargs):
    with pytest.raises(ValueError):
        ClusterIndex("absolute", **kwargs)


def test_unknown_metric():
    with pytest.raises(ValueError, match="Unknown metric"):
        ClusterIndex("bogus", capacity=2)


def test_for_dataset_sizes_capacity():
    assert ClusterIndex.for_dataset("absolute", 100).config.capacity == 10
    assert ClusterIndex.for_dataset("absolute", 0).config.capacity == 1


def test_from_config():
    config = IndexConfig(capacity=7, candidate_count=2, centroid_strategy="lazy")
    index = ClusterIndex.from_config(absolute_difference, config)
    assert index.config == config
    assert isinstance(index.strategy, LazyStrategy)


# ---------------------------------------------------------------------------
# Empty index
# ---------------------------------------------------------------------------


def test_query_empty_raises(index):
    with pytest.raises(EmptyIndexError):
        index.query(1.0)
    # repeated rejection, still no crash
    with pytest.raises(LookupError):
        index.query_with_distance(1.0)
    assert not index.contains(1.0, 10.0)


def test_insert_none_rejected(index):
    with pytest.raises(ValueError):
        index.insert(None)
    assert len(index) == 0


# ---------------------------------------------------------------------------
# Worked scenarios
# ---------------------------------------------------------------------------


def test_best_fit_scenario_capacity_two(index):
    index.insert_many([0.0, 1.0, 2.0, 100.0])
    assert len(index) == 4
    assert [c.members for c in index.clusters] == [(0.0, 1.0), (2.0, 100.0)]
    assert index.query(1.5) == 1.0
    assert index.query(99.0) == 100.0


def test_best_fit_scenario_capacity_three():
    index = ClusterIndex("absolute", capacity=3)
    index.insert_many([0.0, 1.0, 2.0, 100.0])
    assert [c.members for c in index.clusters] == [(0.0, 1.0, 2.0), (100.0,)]
    assert index.clusters[0].centroid == 1.0
    assert index.query(1.5) == 1.0
    assert index.query(99.0) == 100.0


def test_query_with_distance(index):
    index.insert_many([0.0, 1.0, 2.0, 100.0])
    item, d = index.query_with_distance(97.0)
    assert item == 100.0
    assert d == pytest.approx(3.0)


def test_prefilter_outlier_opens_cluster():
    prefilter = Prefilter(threshold=1.5)
    index = ClusterIndex("absolute", capacity=5, prefilter=prefilter)
    values = [0.1 * i for i in range(20)]
    index.insert_many(values + [1000.0])
    assert index.clusters[-1].members == (1000.0,)
    assert prefilter.count == 21
    assert prefilter.mean == pytest.approx(np.mean(values + [1000.0]))
    assert index.query(999.0) == 1000.0
    # no centroid passes the pairwise screen: every cluster is ranked instead
    assert index.query(500.0) in values + [1000.0]


def test_first_fit_skips_clusters_with_distant_centroids():
    index = ClusterIndex("absolute", capacity=10, prefilter=Prefilter(threshold=1.5))
    index.insert(0.0)
    # tolerance 1.5 around mean 0.0: rejected, opens a second cluster
    index.insert(3.0)
    # globally admitted (mean 1.5, tolerance ~3.18), too far from centroid 0.0
    index.insert(3.5)
    assert [c.members for c in index.clusters] == [(0.0,), (3.0, 3.5)]


# ---------------------------------------------------------------------------
# Candidate clusters
# ---------------------------------------------------------------------------


def candidate_scenario(candidate_count):
    index = ClusterIndex("absolute", capacity=2, entropy_threshold=1e9,
                         candidate_count=candidate_count)
    index.insert_many([0.0, 1.0, 20.0, 12.0])
    return index


def test_candidate_count_limits_searched_clusters():
    index = candidate_scenario(candidate_count=1)
    assert [c.members for c in index.clusters] == [(0.0, 1.0), (20.0, 12.0)]
    # centroid 0.0 outranks centroid 20.0, but 12.0 is the true nearest
    assert index.query(9.0) == 1.0


def test_more_candidates_reach_second_ranked_cluster():
    assert candidate_scenario(candidate_count=2).query(9.0) == 12.0


# ---------------------------------------------------------------------------
# Configuration round trip
# ---------------------------------------------------------------------------


def test_medoid_strategy_instance_threshold_recorded():
    index = ClusterIndex("absolute", capacity=4, centroid_strategy=MedoidStrategy(9.0))
    assert index.config.entropy_threshold == 9.0
    assert index.stats()["config"]["entropy_threshold"] == 9.0
    rebuilt = ClusterIndex.from_config(
        "absolute", IndexConfig.from_dict(index.stats()["config"])
    )
    assert rebuilt.strategy.entropy_threshold == 9.0


class NewestCentroid(CentroidStrategy):
    def update(self, cluster, item):
        return item


def test_custom_strategy_needs_instance_to_rebuild():
    index = ClusterIndex("absolute", capacity=4, centroid_strategy=NewestCentroid())
    assert index.config.centroid_strategy == "NewestCentroid"
    with pytest.raises(ValueError, match="Unknown centroid strategy"):
        ClusterIndex.from_config("absolute", index.config)
    rebuilt = ClusterIndex.from_config("absolute", index.config, strategy=NewestCentroid())
    rebuilt.insert_many([1.0, 2.0])
    assert rebuilt.clusters[0].centroid == 2.0


def test_used_prefilter_rejected():
    prefilter = Prefilter()
    for v in range(100):
        prefilter.observe(v)
    with pytest.raises(ValueError, match="already observed"):
        ClusterIndex("absolute", capacity=4, prefilter=prefilter)
    prefilter.reset()
    index = ClusterIndex("absolute", capacity=4, prefilter=prefilter)
    index.insert(1.0)
    assert prefilter.count == len(index) == 1


# ---------------------------------------------------------------------------
# Properties
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("kwargs", all_configs())
def test_insert_monotonicity(kwargs):
    values = random_values(300, seed=1)
    index = ClusterIndex("absolute", capacity=17, **kwargs)
    for n, v in enumerate(values, start=1):
        index.insert(v)
        assert len(index) == n
        assert sum(len(c) for c in index.clusters) == n
    assert sorted(index.items()) == sorted(values)


@pytest.mark.parametrize("kwargs", all_configs())
def test_clusters_respect_capacity(kwargs):
    index = ClusterIndex("absolute", capacity=8, **kwargs)
    index.insert_many(random_values(200, seed=2))
    assert all(len(c) <= 8 for c in index.clusters)


@pytest.mark.parametrize("kwargs", all_configs())
def test_centroids_are_own_members(kwargs):
    index = ClusterIndex("absolute", capacity=10, entropy_threshold=1.0, **kwargs)
    index.insert_many(random_values(150, seed=3))
    for cluster in index.clusters:
        assert cluster.centroid in cluster.members


@pytest.mark.parametrize("kwargs", all_configs())
def test_query_returns_stored_item(kwargs):
    values = random_values(120, seed=4)
    index = ClusterIndex("absolute", capacity=11, **kwargs)
    index.insert_many(values)
    stored = set(values)
    for q in random_values(30, seed=5):
        assert index.query(q) in stored


def test_exhaustive_configuration_is_exact():
    values = random_values(150, seed=6)
    index = ClusterIndex("absolute", capacity=12, candidate_count=10_000,
                         scan_patience=None)
    index.insert_many(values)
    for q in random_values(40, seed=7):
        assert index.query(q) == min(values, key=lambda v: abs(v - q))


def test_stored_items_are_found_exactly():
    values = random_values(100, seed=8)
    index = ClusterIndex("absolute", capacity=10, candidate_count=10_000,
                         scan_patience=None)
    index.insert_many(values)
    for v in values:
        assert index.query_with_distance(v) == (v, 0.0)


# ---------------------------------------------------------------------------
# Atomic inserts
# ---------------------------------------------------------------------------


def test_failed_metric_leaves_index_unchanged():
    def fragile(a, b):
        if 13.0 in (a, b):
            raise RuntimeError("boom")
        return absolute_difference(a, b)

    index = ClusterIndex(fragile, capacity=4)
    index.insert_many([1.0, 2.0])
    with pytest.raises(RuntimeError):
        index.insert(13.0)
    assert len(index) == 2
    assert sorted(index.items()) == [1.0, 2.0]


def test_failed_projection_leaves_index_unchanged():
    prefilter = Prefilter(projection=lambda x: float("nan") if x == 13.0 else x)
    index = ClusterIndex("absolute", capacity=4, prefilter=prefilter)
    index.insert_many([1.0, 2.0])
    with pytest.raises(ValueError, match="finite"):
        index.insert(13.0)
    assert len(index) == 2
    assert prefilter.count == 2
    assert sum(len(c) for c in index.clusters) == 2


# ---------------------------------------------------------------------------
# Vectors
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("prefilter", [
    None,
    Prefilter(projection=lambda v: float(v[0]), threshold=1e6),
])
def test_vector_items_euclidean(prefilter):
    rng = np.random.default_rng(9)
    centres = np.array([[0.0, 0.0], [50.0, 50.0], [-50.0, 50.0]])
    points = [c + rng.normal(0, 1, size=2) for c in centres for _ in range(10)]
    index = ClusterIndex("euclidean", capacity=10, prefilter=prefilter)
    index.insert_many(points)
    assert len(index.clusters) == 3
    found = index.query(np.array([50.0, 50.0]))
    assert np.linalg.norm(found - np.array([50.0, 50.0])) < 5.0


# ---------------------------------------------------------------------------
# contains / stats
# ---------------------------------------------------------------------------


def test_contains(index):
    index.insert_many([0.0, 1.0, 2.0, 100.0])
    assert index.contains(1.05, 0.1)
    assert index.contains(100.0, 0.0)
    assert not index.contains(50.0, 1.0)


def test_summaries(index):
    index.insert_many([0.0, 1.0, 2.0, 100.0])
    summaries = index.summaries()
    assert [s.position for s in summaries] == [0, 1]
    assert [s.size for s in summaries] == [2, 2]


def test_stats(index):
    index.insert_many([0.0, 1.0, 2.0])
    s = index.stats()
    assert s["item_count"] == 3
    assert s["cluster_count"] == 2
    assert s["largest_cluster"] == 2
    assert s["mean_cluster_size"] == pytest.approx(1.5)
    assert s["config"]["capacity"] == 2
    assert s["prefilter"] is None


def test_repr(index):
    r = repr(index)
    assert "ClusterIndex" in r
    assert "capacity=2" in r
