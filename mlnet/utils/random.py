from __future__ import annotations

from collections.abc import Iterable

import numpy as np


class RandomSource:
    """Seedable source of uniform random draws.

    Thin wrapper over :class:`numpy.random.Generator` exposing the handful of
    draws the community engine needs. Two sources built with the same seed
    produce the same sequence.

    Parameters
    ----------
    seed : int | numpy.random.Generator | None
        Seed, or an existing generator to wrap. ``None`` draws fresh entropy.

    """

    def __init__(self, seed: int | np.random.Generator | None = None):
        if isinstance(seed, np.random.Generator):
            self._rng = seed
        else:
            self._rng = np.random.default_rng(seed)

    @property
    def generator(self) -> np.random.Generator:
        return self._rng

    def get_random_int(self, max_value: int) -> int:
        """Uniform integer in ``[0, max_value)``."""
        if max_value <= 0:
            raise ValueError(f"max_value must be positive, got {max_value}")
        return int(self._rng.integers(0, max_value))

    def get_random_long(self, max_value: int) -> int:
        """Uniform integer in ``[0, max_value)`` (64-bit range)."""
        if max_value <= 0:
            raise ValueError(f"max_value must be positive, got {max_value}")
        return int(self._rng.integers(0, max_value, dtype=np.int64))

    def get_random_double(self) -> float:
        """Uniform float in ``[0, 1)``."""
        return float(self._rng.random())

    def get_k_random(self, max_value: int, k: int) -> set[int]:
        """``k`` distinct integers drawn uniformly from ``[0, max_value)``."""
        if k < 0 or k > max_value:
            raise ValueError(f"cannot draw {k} distinct values from range of size {max_value}")
        return {int(x) for x in self._rng.choice(max_value, size=k, replace=False)}

    def get_k_elements(self, items: Iterable, k: int) -> set:
        """``k`` distinct elements of ``items`` chosen uniformly."""
        pool = list(items)
        return {pool[i] for i in self.get_k_random(len(pool), k)}

    def get_element(self, items: Iterable):
        pool = list(items)
        if not pool:
            raise ValueError("cannot choose from an empty collection")
        return pool[self.get_random_int(len(pool))]

    def test(self, probability: float) -> bool:
        """Bernoulli draw: True with the given probability."""
        if not 0.0 <= probability <= 1.0:
            raise ValueError(f"probability must be in [0, 1], got {probability}")
        return self.get_random_double() < probability

    def permutation(self, n: int) -> np.ndarray:
        """Random ordering of ``range(n)``."""
        return self._rng.permutation(n)
