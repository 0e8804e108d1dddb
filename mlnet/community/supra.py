"""Supra-modularity matrix of a multilayer network.

The generalized (multislice) modularity matrix is

    B = A_intra + omega * C - gamma * sum_l k^l (k^l)^T / (2 m_l)

where ``A_intra`` holds the intra-layer edges on the diagonal blocks, ``C``
links every pair of presences of the same actor in different layers, and the
last term is the configuration null model of each layer.

The null model is dense inside each layer, so ``B`` is never materialized.
``SupraModularityMatrix`` keeps the sparse observed part ``A`` and the
per-layer factors ``P`` (``P[i, l] = k_i / sqrt(2 m_l)`` for node i of layer
l) so that ``B = A - gamma * P @ P.T`` holds exactly. Aggregation maps both
parts through the same membership matrix, which keeps the identity valid on
every level of the hierarchy.
"""

from __future__ import annotations

import logging
import math
import warnings
from itertools import combinations
from typing import TYPE_CHECKING

import numpy as np
import scipy.sparse as sp

from ..exceptions import EmptyNetworkError, InvalidParameterError

if TYPE_CHECKING:
    from ..core.network import MultilayerNetwork

logger = logging.getLogger(__name__)


class SupraModularityMatrix:
    """Sparse-plus-low-rank representation of the supra-modularity matrix ``B``.

    Parameters
    ----------
    adjacency : scipy.sparse matrix
        Observed part ``A`` (N x N, symmetric): intra-layer weights plus coupling.
    null_factors : numpy.ndarray
        ``P`` (N x L). The null-model block is ``gamma * P @ P.T``.
    gamma : float
        Resolution parameter.
    two_mu : float
        Normalizer of the modularity score (total observed weight of the
        original network, i.e. the sum of all entries of ``A`` at level 0).
    omega : float, optional
        Coupling strength the matrix was built with (informational).
    layers : list[str], optional
        Labels of the columns of ``P``.

    """

    def __init__(self, adjacency, null_factors, gamma, two_mu, omega=None, layers=None):
        A = sp.csr_matrix(adjacency, dtype=float)
        P = np.asarray(null_factors, dtype=float)
        if P.ndim == 1:
            P = P.reshape(-1, 1)
        if A.shape[0] != A.shape[1]:
            raise ValueError(f"adjacency must be square, got shape {A.shape}")
        if P.shape[0] != A.shape[0]:
            raise ValueError(f"null_factors has {P.shape[0]} rows but adjacency has {A.shape[0]}")
        A.sum_duplicates()
        A.sort_indices()
        self.adjacency = A
        self.null_factors = P
        self.gamma = float(gamma)
        self.two_mu = float(two_mu)
        self.omega = omega
        self.layers = list(layers) if layers is not None else [str(i) for i in range(P.shape[1])]

    @property
    def shape(self) -> tuple[int, int]:
        return self.adjacency.shape

    def __len__(self) -> int:
        return self.adjacency.shape[0]

    @property
    def n_layers(self) -> int:
        return self.null_factors.shape[1]

    @property
    def nnz(self) -> int:
        return self.adjacency.nnz

    def toarray(self) -> np.ndarray:
        """Dense ``B`` (N x N). Meant for inspection of small matrices."""
        P = self.null_factors
        return self.adjacency.toarray() - self.gamma * (P @ P.T)

    def is_symmetric(self, tol: float = 1e-12) -> bool:
        diff = self.adjacency - self.adjacency.T
        return diff.nnz == 0 or float(abs(diff).max()) <= tol

    def total_weight(self) -> float:
        """Sum of all entries of ``B``."""
        colsum = self.null_factors.sum(axis=0)
        return float(self.adjacency.sum()) - self.gamma * float(colsum @ colsum)

    def community_weights(self, labels) -> np.ndarray:
        """Intra-community sum of ``B`` for each label ``0..K-1``."""
        labels = np.asarray(labels, dtype=np.int64)
        if labels.shape[0] != len(self):
            raise ValueError(f"labels has length {labels.shape[0]} but matrix has {len(self)} rows")
        k = int(labels.max()) + 1 if labels.size else 0
        coo = self.adjacency.tocoo()
        same = labels[coo.row] == labels[coo.col]
        observed = np.bincount(labels[coo.row[same]], weights=coo.data[same], minlength=k)
        tot = np.zeros((k, self.n_layers))
        np.add.at(tot, labels, self.null_factors)
        return observed - self.gamma * (tot**2).sum(axis=1)

    def modularity(self, labels) -> float:
        """Generalized modularity ``(1 / 2mu) * sum_ij B_ij delta(c_i, c_j)``."""
        if self.two_mu <= 0:
            return 0.0
        return float(self.community_weights(labels).sum()) / self.two_mu

    def __repr__(self) -> str:
        return (
            f"<SupraModularityMatrix n={len(self)} nnz={self.nnz} layers={self.n_layers} "
            f"gamma={self.gamma:g}>"
        )


def _check_parameters(gamma, omega):
    try:
        gamma = float(gamma)
        omega = float(omega)
    except (TypeError, ValueError) as e:
        raise InvalidParameterError(f"gamma and omega must be numbers: {e}") from e
    if not math.isfinite(gamma) or gamma <= 0:
        raise InvalidParameterError(f"gamma must be a finite number > 0, got {gamma!r}")
    if not math.isfinite(omega) or omega < 0:
        raise InvalidParameterError(f"omega must be a finite number >= 0, got {omega!r}")
    return gamma, omega


def build_supra_matrix(
    network: MultilayerNetwork, gamma: float = 1.0, omega: float = 1.0
) -> SupraModularityMatrix:
    """Build the supra-modularity matrix ``B0`` of ``network``.

    Parameters
    ----------
    network : MultilayerNetwork
        Read-only input. Rows follow ``network.ensure_node_index()``.
    gamma : float
        Resolution (> 0). ``gamma = 1`` is classical modularity.
    omega : float
        Coupling strength (>= 0) added between every pair of presences of the
        same actor. ``omega = 0`` makes the layers independent.

    Returns
    -------
    SupraModularityMatrix

    Raises
    ------
    InvalidParameterError
        If gamma <= 0 or omega < 0 (or either is not finite).
    EmptyNetworkError
        If the network has no nodes.

    """
    gamma, omega = _check_parameters(gamma, omega)
    n = network.ensure_node_index()
    if n == 0:
        raise EmptyNetworkError("network has no nodes; nothing to partition")

    layers = network.layers()
    layer_pos = {L: i for i, L in enumerate(layers)}
    row = network.node_to_row

    rows, cols, vals = [], [], []

    # Diagonal blocks: intra-layer edges
    for layer in layers:
        for u, v, _, w in network.edges(layer):
            ru, rv = row(u), row(v)
            rows += [ru, rv]
            cols += [rv, ru]
            vals += [w, w]

    A_intra = sp.csr_matrix((vals, (rows, cols)), shape=(n, n), dtype=float)
    deg = np.asarray(A_intra.sum(axis=1)).ravel()

    # Null-model factors from intra-layer degrees only
    P = np.zeros((n, len(layers)))
    layer_of_row = np.fromiter((layer_pos[network.row_to_node(r).layer] for r in range(n)), int, n)
    for L, li in layer_pos.items():
        mask = layer_of_row == li
        two_m = float(deg[mask].sum())
        if two_m <= 0:
            if mask.any():
                warnings.warn(
                    f"layer {L!r} has no edge weight; its nodes get no null-model term",
                    RuntimeWarning,
                    stacklevel=2,
                )
            continue
        P[mask, li] = deg[mask] / math.sqrt(two_m)

    # Off-diagonal blocks: categorical coupling between presences of an actor
    crow, ccol = [], []
    if omega > 0:
        for actor in network.actors():
            presences = [row(p) for p in network.presences(actor)]
            for ra, rb in combinations(presences, 2):
                crow += [ra, rb]
                ccol += [rb, ra]
    A = A_intra
    if crow:
        C = sp.csr_matrix((np.full(len(crow), omega), (crow, ccol)), shape=(n, n), dtype=float)
        A = (A_intra + C).tocsr()

    two_mu = float(A.sum())
    if two_mu <= 0:
        warnings.warn(
            "network has no edge weight and no coupling; every node will stay in its own community",
            RuntimeWarning,
            stacklevel=2,
        )
    logger.debug(
        "built supra matrix: n=%d layers=%d nnz=%d gamma=%g omega=%g",
        n,
        len(layers),
        A.nnz,
        gamma,
        omega,
    )
    return SupraModularityMatrix(A, P, gamma, two_mu, omega=omega, layers=layers)
