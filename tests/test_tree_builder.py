import numpy as np
import pytest

from data_structures.dataset import Dataset
from data_structures.tree import RegressionTree
from errors import InvalidInputError
from random_source import RandomSource
from tree_builder import TreeBuilder, TreeBuilderParams, n_features_to_try


def _make_dataset(seed=0, n=120, k=5):
    rng = np.random.default_rng(seed)
    X = rng.normal(size=(n, k))
    y = 3.0 * X[:, 0] + np.where(X[:, 2] > 0.0, 2.0, -1.0) + 0.1 * rng.normal(size=n)
    return Dataset(X, y)


def _leaf_row_counts(tree: RegressionTree, X: np.ndarray) -> dict:
    counts = {}
    for x in X:
        node = 0
        while not tree.is_leaf(node):
            if x[tree.feature[node]] <= tree.threshold[node]:
                node = int(tree.left[node])
            else:
                node = int(tree.right[node])
        counts[node] = counts.get(node, 0) + 1
    return counts


def test_max_depth_zero_gives_mean_leaf():
    dataset = _make_dataset()
    builder = TreeBuilder(TreeBuilderParams(max_depth=0), RandomSource(1))

    tree = builder.build(dataset)

    assert tree.node_count == 1
    assert tree.is_leaf(0)
    assert tree.value[0] == pytest.approx(float(np.mean(dataset.y)))


def test_constant_targets_give_single_leaf():
    rng = np.random.default_rng(4)
    dataset = Dataset(rng.normal(size=(50, 3)), np.full(50, 6.0))
    builder = TreeBuilder(
        TreeBuilderParams(max_depth=25, min_samples_split=2, max_features=1.0),
        RandomSource(4),
    )

    tree = builder.build(dataset)

    assert tree.node_count == 1
    assert tree.value[0] == 6.0


def test_too_few_rows_gives_leaf():
    dataset = Dataset([[1.0], [2.0], [3.0]], [1.0, 5.0, 9.0])
    builder = TreeBuilder(TreeBuilderParams(min_samples_split=4, max_features=1.0), RandomSource(0))

    tree = builder.build(dataset)

    assert tree.node_count == 1
    assert tree.value[0] == pytest.approx(5.0)


def test_same_seed_builds_identical_tree():
    dataset = _make_dataset(seed=3)
    params = TreeBuilderParams(max_depth=6, min_samples_split=4, max_features="sqrt")

    first = TreeBuilder(params, RandomSource(11)).build(dataset)
    second = TreeBuilder(params, RandomSource(11)).build(dataset)

    assert first.signature() == second.signature()


def test_tree_respects_depth_and_leaf_size():
    dataset = _make_dataset(seed=5, n=200)
    params = TreeBuilderParams(max_depth=4, min_samples_split=2, min_samples_leaf=7, max_features=1.0)

    tree = TreeBuilder(params, RandomSource(5)).build(dataset)

    assert not tree.is_leaf(0)
    assert tree.max_depth() <= 4
    assert min(_leaf_row_counts(tree, dataset.X).values()) >= 7


def test_training_rows_reach_leaf_with_their_mean():
    dataset = _make_dataset(seed=8, n=80)
    params = TreeBuilderParams(max_depth=3, min_samples_split=2, max_features=1.0)
    tree = TreeBuilder(params, RandomSource(8)).build(dataset)

    preds = tree.predict_batch(dataset.X)
    for value in np.unique(preds):
        members = dataset.y[preds == value]
        assert np.mean(members) == pytest.approx(value)


def test_full_feature_set_finds_informative_feature_at_root():
    dataset = _make_dataset(seed=2, n=300)
    params = TreeBuilderParams(max_depth=1, min_samples_split=2, max_features=1.0)

    tree = TreeBuilder(params, RandomSource(2)).build(dataset)

    assert tree.feature[0] == 0


@pytest.mark.parametrize(
    "max_features, k, expected",
    [
        ("sqrt", 9, 3),
        ("sqrt", 2, 1),
        (None, 16, 4),
        ("log2", 8, 3),
        ("log2", 1, 1),
        (0.5, 5, 2),
        (0.01, 5, 1),
        (1.0, 3, 3),
    ],
)
def test_n_features_to_try(max_features, k, expected):
    assert n_features_to_try(max_features, k) == expected


@pytest.mark.parametrize(
    "kwargs",
    [
        {"max_depth": -1},
        {"min_samples_split": 0},
        {"min_samples_leaf": 0},
        {"max_features": "third"},
        {"max_features": 1.5},
        {"max_features": 0.0},
    ],
)
def test_invalid_params_rejected(kwargs):
    with pytest.raises(InvalidInputError):
        TreeBuilderParams(**kwargs)


def test_tree_record_round_trip_keeps_structure():
    dataset = _make_dataset(seed=6)
    tree = TreeBuilder(TreeBuilderParams(max_depth=4, max_features=1.0), RandomSource(6)).build(dataset)

    restored = RegressionTree.from_record(tree.to_record())

    assert restored.signature() == tree.signature()
    assert np.array_equal(restored.predict_batch(dataset.X), tree.predict_batch(dataset.X))


@pytest.mark.parametrize(
    "kwargs",
    [
        {"max_depth": 2.5},
        {"min_samples_split": "4"},
        {"min_samples_leaf": True},
    ],
)
def test_non_integer_params_rejected(kwargs):
    with pytest.raises(InvalidInputError):
        TreeBuilderParams(**kwargs)
