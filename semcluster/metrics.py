"""Distance metrics for semcluster.

The index only ever sees items through a distance callable, so any function
``(a, b) -> float`` that is non-negative and symmetric will do.  The built-ins
below cover plain numbers and 1-D numpy arrays.

Metrics
-------
absolute   — |a − b| for scalars
euclidean  — L2 distance
manhattan  — L1 distance
cosine     — 1 − cosine similarity, clamped to [0, 2]
"""

from __future__ import annotations

from typing import Any, Callable, Literal, Union

import numpy as np

DistanceName = Literal["absolute", "euclidean", "manhattan", "cosine"]
Metric = Callable[[Any, Any], float]


# ---------------------------------------------------------------------------
# Individual metrics
# ---------------------------------------------------------------------------


def absolute_difference(a: float, b: float) -> float:
    """Absolute difference between two scalars."""
    return abs(float(a) - float(b))


def euclidean_distance(a: np.ndarray, b: np.ndarray) -> float:
    """L2 (Euclidean) distance between two vectors."""
    diff = np.asarray(a, dtype=np.float64) - np.asarray(b, dtype=np.float64)
    return float(np.linalg.norm(diff))


def manhattan_distance(a: np.ndarray, b: np.ndarray) -> float:
    """L1 (city-block) distance between two vectors."""
    diff = np.asarray(a, dtype=np.float64) - np.asarray(b, dtype=np.float64)
    return float(np.abs(diff).sum())


def cosine_distance(a: np.ndarray, b: np.ndarray) -> float:
    """One minus cosine similarity; zero vectors are guarded by 1e-12."""
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    denom = float(np.linalg.norm(a)) * float(np.linalg.norm(b)) + 1e-12
    return max(0.0, 1.0 - float(np.dot(a, b)) / denom)


_METRICS = {
    "absolute": absolute_difference,
    "euclidean": euclidean_distance,
    "manhattan": manhattan_distance,
    "cosine": cosine_distance,
}


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------


def resolve_metric(metric: Union[DistanceName, Metric]) -> Metric:
    """Return a distance callable for a built-in name, or ``metric`` itself."""
    if isinstance(metric, str):
        try:
            return _METRICS[metric]
        except KeyError:
            raise ValueError(
                f"Unknown metric {metric!r}. "
                f"Valid options: {', '.join(repr(k) for k in _METRICS)}."
            ) from None
    if not callable(metric):
        raise TypeError(f"metric must be a name or a callable, got {type(metric).__name__}")
    return metric


def distance(a: Any, b: Any, metric: DistanceName = "euclidean") -> float:
    """Compute the distance between two items using a built-in metric.

    Parameters
    ----------
    a, b   : scalars or 1-D numpy arrays, depending on the metric.
    metric : one of 'absolute', 'euclidean', 'manhattan', 'cosine'.

    Returns
    -------
    float — dissimilarity (lower = more similar for all metrics).
    """
    return resolve_metric(metric)(a, b)
