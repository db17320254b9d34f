from __future__ import annotations

import numpy as np

from data_structures.dataset import Dataset
from random_source import RandomSource


class BootstrapSampler:
    """Resample n rows with replacement from an n-row dataset."""

    @staticmethod
    def sample_rows(n_samples: int, random_source: RandomSource) -> np.ndarray:
        return random_source.next_indices(n_samples, n_samples)

    @classmethod
    def sample(cls, dataset: Dataset, random_source: RandomSource) -> Dataset:
        return dataset.take(cls.sample_rows(dataset.n_samples, random_source))
