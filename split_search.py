from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from data_structures.dataset import Dataset


@dataclass(frozen=True)
class SplitCandidate:
    feature_index: int
    threshold: float
    variance: float


def population_variance(values: np.ndarray) -> float:
    if values.size <= 1:
        return 0.0
    return float(np.var(values))


class VarianceSplitFinder:
    """Exhaustive threshold search minimizing the row-weighted child variance.

    For every candidate feature, thresholds are the midpoints between
    consecutive distinct values present in the node. Rows with
    value <= threshold go left. A split is rejected when either child has
    fewer than `min_samples_split` or `min_samples_leaf` rows. Ties keep the
    first split found, in candidate-feature order and then ascending
    threshold order.
    """

    def __init__(self, min_samples_split: int = 2, min_samples_leaf: int = 1) -> None:
        self.min_samples_split = int(min_samples_split)
        self.min_samples_leaf = int(min_samples_leaf)
        self._min_child = max(self.min_samples_split, self.min_samples_leaf, 1)

    def _best_for_feature(
        self,
        column: np.ndarray,
        targets: np.ndarray,
    ) -> tuple[float, float] | None:
        n = column.size
        order = np.argsort(column, kind="stable")
        xs = column[order]
        ys = targets[order]

        # Distinct-value boundaries: split after position i when xs[i] < xs[i + 1].
        boundaries = np.flatnonzero(xs[:-1] < xs[1:])
        if boundaries.size == 0:
            return None

        n_left = boundaries + 1
        n_right = n - n_left
        valid = (n_left >= self._min_child) & (n_right >= self._min_child)
        if not np.any(valid):
            return None
        boundaries = boundaries[valid]
        n_left = n_left[valid].astype(np.float64)
        n_right = n_right[valid].astype(np.float64)

        centered = ys - ys.mean()
        csum = np.cumsum(centered)
        csq = np.cumsum(centered * centered)
        total_sum = csum[-1]
        total_sq = csq[-1]

        left_sum = csum[boundaries]
        left_sq = csq[boundaries]
        sse_left = np.maximum(left_sq - left_sum * left_sum / n_left, 0.0)
        right_sum = total_sum - left_sum
        sse_right = np.maximum((total_sq - left_sq) - right_sum * right_sum / n_right, 0.0)
        weighted = (sse_left + sse_right) / n

        best = int(np.argmin(weighted))
        lo = float(xs[boundaries[best]])
        hi = float(xs[boundaries[best] + 1])
        threshold = (lo + hi) / 2.0
        if threshold >= hi:
            # Adjacent floats: the midpoint rounds up onto the right value.
            threshold = lo
        return threshold, float(weighted[best])

    def find_best_split(
        self,
        dataset: Dataset,
        candidate_features,
        rows: np.ndarray | None = None,
    ) -> SplitCandidate | None:
        if rows is None:
            X, y = dataset.X, dataset.y
        else:
            X, y = dataset.X[rows], dataset.y[rows]
        if y.size < 2 * self._min_child:
            return None

        best: SplitCandidate | None = None
        for feature in candidate_features:
            found = self._best_for_feature(X[:, int(feature)], y)
            if found is None:
                continue
            threshold, variance = found
            if best is None or variance < best.variance:
                best = SplitCandidate(
                    feature_index=int(feature),
                    threshold=threshold,
                    variance=variance,
                )
        return best
