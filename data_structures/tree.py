from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from errors import InvalidInputError

LEAF = -1


class TreeArenaBuilder:
    """Append-only node arena. Children are referenced by position, root is node 0."""

    def __init__(self) -> None:
        self.feature: list[int] = []
        self.threshold: list[float] = []
        self.left: list[int] = []
        self.right: list[int] = []
        self.value: list[float] = []
        self.depth: list[int] = []

    def _append(self, depth: int) -> int:
        self.feature.append(LEAF)
        self.threshold.append(0.0)
        self.left.append(LEAF)
        self.right.append(LEAF)
        self.value.append(0.0)
        self.depth.append(depth)
        return len(self.feature) - 1

    def add_leaf(self, prediction: float, depth: int) -> int:
        node_id = self._append(depth)
        self.value[node_id] = float(prediction)
        return node_id

    def add_internal(self, feature_index: int, threshold: float, depth: int) -> int:
        node_id = self._append(depth)
        self.feature[node_id] = int(feature_index)
        self.threshold[node_id] = float(threshold)
        return node_id

    def set_children(self, node_id: int, left: int, right: int) -> None:
        self.left[node_id] = left
        self.right[node_id] = right

    def attach(self, parent_id: int, child_id: int, is_left: bool) -> None:
        if is_left:
            self.left[parent_id] = child_id
        else:
            self.right[parent_id] = child_id

    def freeze(self) -> "RegressionTree":
        return RegressionTree(
            feature=np.asarray(self.feature, dtype=np.int64),
            threshold=np.asarray(self.threshold, dtype=np.float64),
            left=np.asarray(self.left, dtype=np.int64),
            right=np.asarray(self.right, dtype=np.int64),
            value=np.asarray(self.value, dtype=np.float64),
            depth=np.asarray(self.depth, dtype=np.int64),
        )


@dataclass(frozen=True, eq=False)
class RegressionTree:
    feature: np.ndarray
    threshold: np.ndarray
    left: np.ndarray
    right: np.ndarray
    value: np.ndarray
    depth: np.ndarray

    def __post_init__(self) -> None:
        for name in ("feature", "threshold", "left", "right", "value", "depth"):
            getattr(self, name).flags.writeable = False

    @property
    def node_count(self) -> int:
        return int(self.feature.size)

    def is_leaf(self, node_id: int) -> bool:
        return int(self.feature[node_id]) == LEAF

    def internal_nodes(self) -> np.ndarray:
        return np.flatnonzero(self.feature != LEAF)

    def max_depth(self) -> int:
        return int(self.depth.max()) if self.depth.size else 0

    def predict_row(self, x: np.ndarray) -> float:
        node = 0
        while self.feature[node] != LEAF:
            if x[self.feature[node]] <= self.threshold[node]:
                node = self.left[node]
            else:
                node = self.right[node]
        return float(self.value[node])

    def predict_batch(self, X: np.ndarray) -> np.ndarray:
        preds = np.zeros(X.shape[0], dtype=np.float64)
        for i in range(X.shape[0]):
            preds[i] = self.predict_row(X[i])
        return preds

    def signature(self) -> list[tuple]:
        """Pre-order structural signature, used to compare two trees exactly."""
        out = []
        stack = [0]
        while stack:
            node = stack.pop()
            if self.is_leaf(node):
                out.append(("L", int(self.depth[node]), float(self.value[node])))
                continue
            out.append(
                ("S", int(self.depth[node]), int(self.feature[node]), float(self.threshold[node]))
            )
            stack.append(int(self.right[node]))
            stack.append(int(self.left[node]))
        return out

    def to_record(self, node_id: int = 0) -> dict:
        if self.is_leaf(node_id):
            return {"prediction": float(self.value[node_id])}
        return {
            "feature_index": int(self.feature[node_id]),
            "threshold": float(self.threshold[node_id]),
            "left": self.to_record(int(self.left[node_id])),
            "right": self.to_record(int(self.right[node_id])),
        }

    @classmethod
    def from_record(cls, record: dict) -> "RegressionTree":
        arena = TreeArenaBuilder()

        def _load(node: dict, depth: int) -> int:
            if not isinstance(node, dict):
                raise InvalidInputError(f"tree node must be a mapping, got {type(node).__name__}")
            try:
                if "prediction" in node:
                    prediction = float(node["prediction"])
                    if not np.isfinite(prediction):
                        raise InvalidInputError("leaf prediction must be finite")
                    return arena.add_leaf(prediction, depth)
                feature_index = node["feature_index"]
                if isinstance(feature_index, bool) or not isinstance(feature_index, (int, np.integer)):
                    raise InvalidInputError(f"feature_index must be an integer, got {feature_index!r}")
                if feature_index < 0:
                    raise InvalidInputError(f"feature_index must be >= 0, got {feature_index}")
                threshold = float(node["threshold"])
                if not np.isfinite(threshold):
                    raise InvalidInputError("split threshold must be finite")
                node_id = arena.add_internal(feature_index, threshold, depth)
                left = _load(node["left"], depth + 1)
                right = _load(node["right"], depth + 1)
            except InvalidInputError:
                raise
            except KeyError as e:
                raise InvalidInputError(f"tree node is missing field {e}") from e
            except (TypeError, ValueError) as e:
                raise InvalidInputError(f"malformed tree node: {e}") from e
            arena.set_children(node_id, left, right)
            return node_id

        _load(record, 0)
        return arena.freeze()
