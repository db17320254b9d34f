from __future__ import annotations

import numpy as np


class RandomSource:
    """Seeded pseudo-random stream shared by bootstrap sampling and feature selection.

    Two instances built with the same seed and driven through the same call
    sequence produce identical outputs.
    """

    def __init__(self, seed: int) -> None:
        self.seed = int(seed)
        self._rng = np.random.default_rng(self.seed)

    def next_uniform(self) -> float:
        return float(self._rng.random())

    def next_index(self, bound: int) -> int:
        if bound <= 0:
            raise ValueError("bound must be positive")
        return int(self._rng.integers(0, bound))

    def next_indices(self, bound: int, size: int) -> np.ndarray:
        if bound <= 0:
            raise ValueError("bound must be positive")
        return self._rng.integers(0, bound, size=size).astype(np.int64)

    def next_seed(self) -> int:
        return int(self._rng.integers(1, 2**31 - 1))

    def choice_without_replacement(self, n: int, size: int) -> list[int]:
        """Pick `size` distinct indices from range(n), in draw order."""
        available = list(range(n))
        chosen: list[int] = []
        for _ in range(min(size, n)):
            chosen.append(available.pop(self.next_index(len(available))))
        return chosen
