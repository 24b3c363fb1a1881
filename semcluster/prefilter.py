"""Scalar admission prefilter.

A Prefilter keeps a running mean and variance of a scalar projection of every
stored item (Welford's single-pass update) and answers "is this value within
``threshold`` standard deviations?" without touching the distance metric.
False positives only cost an extra metric call later on; false negatives lose
recall, so keep ``threshold`` generous.
"""

from __future__ import annotations

import math
from typing import Any, Callable, Dict, Optional

Projection = Callable[[Any], float]


class Prefilter:
    """Online mean / standard-deviation gate over ``projection(item)``.

    Parameters
    ----------
    projection     : maps an item to a float; defaults to ``float(item)``.
    threshold      : admission width in standard deviations (> 0).
    default_stddev : spread assumed before two values have been observed,
                     and whenever the observed spread is zero.
    """

    def __init__(
        self,
        projection: Optional[Projection] = None,
        threshold: float = 1.5,
        default_stddev: float = 1.0,
    ) -> None:
        if threshold <= 0:
            raise ValueError(f"threshold must be > 0, got {threshold}")
        if default_stddev <= 0:
            raise ValueError(f"default_stddev must be > 0, got {default_stddev}")
        self.projection: Projection = projection or float
        self.threshold: float = float(threshold)
        self.default_stddev: float = float(default_stddev)
        self.count: int = 0
        self.mean: float = 0.0
        self.m2: float = 0.0

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    @property
    def variance(self) -> float:
        """Sample variance of the observed projections."""
        if self.count < 2:
            return 0.0
        return self.m2 / (self.count - 1)

    @property
    def stddev(self) -> float:
        """Sample standard deviation, or ``default_stddev`` below two values."""
        if self.count < 2:
            return self.default_stddev
        return math.sqrt(self.m2 / (self.count - 1))

    @property
    def tolerance(self) -> float:
        """Largest admitted deviation: ``threshold`` times the spread."""
        spread = self.stddev
        if spread <= 0.0:
            spread = self.default_stddev
        return self.threshold * spread

    # ------------------------------------------------------------------
    # Projection / update
    # ------------------------------------------------------------------

    def project(self, item: Any) -> float:
        value = float(self.projection(item))
        if not math.isfinite(value):
            raise ValueError(f"projection must be finite, got {value!r} for {item!r}")
        return value

    def update(self, value: float) -> None:
        """Fold an already-projected value into the running statistic."""
        self.count += 1
        delta = value - self.mean
        self.mean += delta / self.count
        self.m2 += delta * (value - self.mean)

    def observe(self, item: Any) -> None:
        """Record a stored item.  Call exactly once per insert, in order."""
        self.update(self.project(item))

    def reset(self) -> None:
        self.count = 0
        self.mean = 0.0
        self.m2 = 0.0

    # ------------------------------------------------------------------
    # Admission
    # ------------------------------------------------------------------

    def admits_value(self, value: float) -> bool:
        return abs(value - self.mean) <= self.tolerance

    def admits(self, item: Any) -> bool:
        """True iff ``item`` projects within the tolerance of the running mean."""
        return self.admits_value(self.project(item))

    def admits_near(self, item: Any, reference: Any) -> bool:
        """True iff ``item`` and ``reference`` project within the tolerance of each other.

        Used to screen clusters by their centroid before any metric call.
        """
        return abs(self.project(item) - self.project(reference)) <= self.tolerance

    def to_dict(self) -> Dict[str, Any]:
        return {
            "count": self.count,
            "mean": self.mean,
            "stddev": self.stddev,
            "threshold": self.threshold,
        }

    def __repr__(self) -> str:
        return (
            f"Prefilter(n={self.count} mean={self.mean:.4g} "
            f"stddev={self.stddev:.4g} threshold={self.threshold})"
        )
