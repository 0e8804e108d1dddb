"""Generalized Louvain community detection on multilayer networks.

Use::

    from mlnet.community import GLouvain, get_ml_community

    communities = get_ml_community(net, gamma=1.0, omega=1.0)

    model = GLouvain(gamma=1.0, omega=0.5, seed=7, randomize=True).fit(net)
    model.to_frame()          # actor, layer, cid
"""

from __future__ import annotations

import logging
import math
import warnings
from enum import Enum
from typing import TYPE_CHECKING, NamedTuple

import numpy as np
import polars as pl

from ..core.network import actor_series
from ..exceptions import InternalInvariantError, InvalidParameterError
from ..utils.random import RandomSource
from .local_move import LocalMoveOptimizer, reindex_consecutive
from .metanetwork import metanetwork
from .supra import _check_parameters, build_supra_matrix

if TYPE_CHECKING:
    from ..core.network import MultilayerNetwork, Node

logger = logging.getLogger(__name__)


class State(Enum):
    BUILD = "BUILD"
    OPTIMIZE = "OPTIMIZE"
    AGGREGATE = "AGGREGATE"
    CONVERGED = "CONVERGED"


class AggregationLevel(NamedTuple):
    """One pass of the hierarchy.

    ``partition[i]`` is the community of node ``i`` of this level (which is
    meta-node ``partition[i]`` of the next level); ``mapping[c]`` lists the
    nodes of this level merged into community ``c``.
    """

    partition: np.ndarray
    mapping: list
    n_nodes: int
    n_communities: int
    modularity: float


class GLouvain:
    """Multilayer (multislice) Louvain community detection.

    Parameters
    ----------
    gamma : float
        Resolution (> 0); larger values favour smaller communities.
    omega : float
        Inter-layer coupling strength (>= 0).
    max_passes : int
        Bound on local-move passes per level.
    max_levels : int, optional
        Bound on aggregation levels. ``None`` means until convergence.
    randomize : bool
        Visit nodes in a random order on every pass.
    seed : int, optional
        Seed of the random source used when ``randomize`` is set.
    random_source : RandomSource, optional
        Explicit random source (takes precedence over ``seed``).

    Attributes
    ----------
    levels_ : list[AggregationLevel]
    labels_ : numpy.ndarray
        Final community of every node, in ``nodes_`` order.
    nodes_ : list[Node]
    modularity_ : float
    communities_ : list[frozenset]
        For each final label, the actors having at least one node in it.

    """

    def __init__(
        self,
        gamma: float = 1.0,
        omega: float = 1.0,
        *,
        max_passes: int = 100,
        max_levels: int | None = None,
        randomize: bool = False,
        seed: int | None = None,
        random_source: RandomSource | None = None,
    ):
        self.gamma, self.omega = _check_parameters(gamma, omega)
        if int(max_passes) < 1:
            raise InvalidParameterError(f"max_passes must be >= 1, got {max_passes!r}")
        if max_levels is not None and int(max_levels) < 1:
            raise InvalidParameterError(f"max_levels must be >= 1 or None, got {max_levels!r}")
        self.max_passes = int(max_passes)
        self.max_levels = None if max_levels is None else int(max_levels)
        self.randomize = bool(randomize)
        self.seed = seed
        self.random_source = random_source

        self.levels_: list[AggregationLevel] | None = None
        self.labels_: np.ndarray | None = None
        self.nodes_: list | None = None
        self.modularity_: float | None = None
        self.communities_: list[frozenset] | None = None

    def get_params(self) -> dict:
        return {
            "gamma": self.gamma,
            "omega": self.omega,
            "max_passes": self.max_passes,
            "max_levels": self.max_levels,
            "randomize": self.randomize,
            "seed": self.seed,
        }

    def _optimizer(self) -> LocalMoveOptimizer:
        rs = None
        if self.randomize:
            rs = self.random_source if self.random_source is not None else RandomSource(self.seed)
        return LocalMoveOptimizer(max_passes=self.max_passes, random_source=rs)

    def fit(self, network: MultilayerNetwork) -> GLouvain:
        """Detect communities in ``network``."""
        optimizer = self._optimizer()
        levels: list[AggregationLevel] = []
        state = State.BUILD
        B = B0 = None
        labels = None

        while state is not State.CONVERGED:
            if state is State.BUILD:
                B = B0 = build_supra_matrix(network, self.gamma, self.omega)
                state = State.OPTIMIZE

            elif state is State.OPTIMIZE:
                labels = optimizer.optimize(B)
                state = State.AGGREGATE

            elif state is State.AGGREGATE:
                n_nodes = len(B)
                B_next, mapping = metanetwork(B, labels)
                level = AggregationLevel(
                    partition=labels,
                    mapping=mapping,
                    n_nodes=n_nodes,
                    n_communities=len(B_next),
                    modularity=B.modularity(labels),
                )
                levels.append(level)
                logger.debug(
                    "level %d: %d -> %d nodes, Q=%.6f",
                    len(levels),
                    n_nodes,
                    level.n_communities,
                    level.modularity,
                )
                if level.n_communities >= n_nodes:
                    state = State.CONVERGED
                elif self.max_levels is not None and len(levels) >= self.max_levels:
                    warnings.warn(
                        f"stopped after max_levels={self.max_levels} aggregation levels",
                        RuntimeWarning,
                        stacklevel=2,
                    )
                    state = State.CONVERGED
                else:
                    B = B_next
                    state = State.OPTIMIZE

        final = self._unwind(levels, len(B0))
        nodes = network.nodes()
        self.levels_ = levels
        self.labels_ = final
        self.nodes_ = nodes
        self.modularity_ = B0.modularity(final)
        self.communities_ = _group_actors(nodes, final)
        logger.debug("found %d communities, Q=%.6f", len(self.communities_), self.modularity_)
        return self

    def fit_predict(self, network: MultilayerNetwork) -> np.ndarray:
        return self.fit(network).labels_

    @staticmethod
    def _unwind(levels: list[AggregationLevel], n0: int) -> np.ndarray:
        """Compose level partitions (finest to coarsest) into node labels."""
        labels = np.arange(n0, dtype=np.int64)
        for level in levels:
            if level.partition.shape[0] != level.n_nodes or labels.max() >= level.n_nodes:
                raise InternalInvariantError("aggregation levels do not compose")
            labels = level.partition[labels]
        return reindex_consecutive(labels)

    def _check_fitted(self):
        if self.labels_ is None:
            raise RuntimeError("GLouvain instance is not fitted yet; call fit(network) first")

    def node_communities(self) -> dict[Node, int]:
        """Map each node to its final community label."""
        self._check_fitted()
        return {node: int(c) for node, c in zip(self.nodes_, self.labels_)}

    def to_frame(self) -> pl.DataFrame:
        """Community table with columns ``actor, layer, cid``."""
        self._check_fitted()
        return pl.DataFrame(
            [
                actor_series("actor", [n.actor for n in self.nodes_]),
                pl.Series("layer", [n.layer for n in self.nodes_], dtype=pl.Utf8),
                pl.Series("cid", self.labels_.tolist(), dtype=pl.Int64),
            ]
        )


def _group_actors(nodes, labels) -> list[frozenset]:
    k = int(labels.max()) + 1 if len(labels) else 0
    groups = [set() for _ in range(k)]
    for node, c in zip(nodes, labels):
        groups[int(c)].add(node.actor)
    return [frozenset(g) for g in groups]


def get_ml_community(
    network: MultilayerNetwork,
    gamma: float = 1.0,
    omega: float = 1.0,
    *,
    seed: int | None = None,
    randomize: bool = False,
) -> list[frozenset]:
    """Communities of ``network`` as actor sets, one per final community label.

    An actor whose presences end up in different communities appears in each
    of them. Runs are deterministic for a fixed ``seed`` (and always when
    ``randomize`` is False).
    """
    model = GLouvain(gamma, omega, seed=seed, randomize=randomize)
    return model.fit(network).communities_


def multislice_modularity(
    network: MultilayerNetwork, labels, gamma: float = 1.0, omega: float = 1.0
) -> float:
    """Score a node labelling (in ``network.nodes()`` order) with multislice modularity."""
    B = build_supra_matrix(network, gamma, omega)
    labels = np.asarray(labels)
    if labels.shape[0] != len(B):
        raise ValueError(f"labels has length {labels.shape[0]} but network has {len(B)} nodes")
    if not math.isfinite(B.two_mu) or B.two_mu <= 0:
        return 0.0
    return B.modularity(reindex_consecutive(labels))
