import numpy as np
import pytest

from data_structures.dataset import Dataset
from split_search import VarianceSplitFinder, population_variance


def _brute_force_split(X, y, features, min_samples_split, min_samples_leaf):
    best = None
    for feature in features:
        values = np.unique(X[:, feature])
        for lo, hi in zip(values[:-1], values[1:]):
            threshold = (lo + hi) / 2.0
            left = X[:, feature] <= threshold
            n_left, n_right = int(left.sum()), int((~left).sum())
            if min(n_left, n_right) < max(min_samples_split, min_samples_leaf):
                continue
            variance = (
                n_left * population_variance(y[left]) + n_right * population_variance(y[~left])
            ) / y.size
            if best is None or variance < best[2]:
                best = (feature, threshold, variance)
    return best


def test_splits_four_points_at_median():
    dataset = Dataset([[1.0], [2.0], [3.0], [4.0]], [1.0, 2.0, 3.0, 4.0])

    split = VarianceSplitFinder(min_samples_split=1, min_samples_leaf=1).find_best_split(dataset, [0])

    assert split.feature_index == 0
    assert split.threshold == pytest.approx(2.5)
    assert split.variance == pytest.approx(0.25)


def test_matches_brute_force_search():
    rng = np.random.default_rng(7)
    X = np.round(rng.normal(size=(60, 4)), 2)
    y = 2.0 * X[:, 1] - X[:, 3] + 0.3 * rng.normal(size=60)
    dataset = Dataset(X, y)

    for min_split, min_leaf in [(2, 1), (5, 2), (3, 8)]:
        finder = VarianceSplitFinder(min_samples_split=min_split, min_samples_leaf=min_leaf)
        split = finder.find_best_split(dataset, [0, 1, 2, 3])
        expected = _brute_force_split(X, y, [0, 1, 2, 3], min_split, min_leaf)

        assert split.feature_index == expected[0]
        assert split.threshold == pytest.approx(expected[1])
        assert split.variance == pytest.approx(expected[2])


def test_only_uses_given_rows():
    X = np.array([[1.0], [2.0], [3.0], [4.0], [100.0], [200.0]])
    y = np.array([0.0, 0.0, 10.0, 10.0, 50.0, 60.0])
    dataset = Dataset(X, y)

    split = VarianceSplitFinder(min_samples_split=1).find_best_split(
        dataset, [0], rows=np.array([0, 1, 2, 3])
    )

    assert split.threshold == pytest.approx(2.5)
    assert split.variance == pytest.approx(0.0)


def test_constant_feature_gives_no_split():
    dataset = Dataset([[5.0, 1.0], [5.0, 2.0], [5.0, 3.0]], [1.0, 2.0, 3.0])

    assert VarianceSplitFinder(min_samples_split=1).find_best_split(dataset, [0]) is None


def test_children_below_min_samples_split_are_rejected():
    dataset = Dataset([[1.0], [2.0], [3.0], [4.0]], [1.0, 2.0, 3.0, 4.0])

    assert VarianceSplitFinder(min_samples_split=3).find_best_split(dataset, [0]) is None
    assert VarianceSplitFinder(min_samples_split=2, min_samples_leaf=3).find_best_split(dataset, [0]) is None


def test_ties_keep_first_candidate_feature():
    column = np.array([1.0, 2.0, 3.0, 4.0])
    dataset = Dataset(np.column_stack([column, column]), [1.0, 1.0, 5.0, 5.0])
    finder = VarianceSplitFinder(min_samples_split=1)

    assert finder.find_best_split(dataset, [1, 0]).feature_index == 1
    assert finder.find_best_split(dataset, [0, 1]).feature_index == 0


def test_ties_keep_lowest_threshold():
    # Splits at 1.5 and 3.5 both leave one child pure and score the same.
    dataset = Dataset([[1.0], [2.0], [3.0], [4.0]], [0.0, 1.0, 1.0, 0.0])

    split = VarianceSplitFinder(min_samples_split=1).find_best_split(dataset, [0])

    assert split.threshold == pytest.approx(1.5)


def test_duplicate_rows_count_once_per_copy():
    X = np.array([[1.0], [1.0], [1.0], [2.0]])
    y = np.array([3.0, 3.0, 3.0, 7.0])

    split = VarianceSplitFinder(min_samples_split=1).find_best_split(Dataset(X, y), [0])

    assert split.threshold == pytest.approx(1.5)
    assert split.variance == pytest.approx(0.0)


def test_population_variance_of_tiny_sets_is_zero():
    assert population_variance(np.array([])) == 0.0
    assert population_variance(np.array([4.2])) == 0.0
