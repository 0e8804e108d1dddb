"""Collapse a partition of the supra matrix into a meta-network."""

from __future__ import annotations

import logging

import numpy as np
import scipy.sparse as sp

from ..exceptions import InternalInvariantError
from .supra import SupraModularityMatrix

logger = logging.getLogger(__name__)


def membership_matrix(labels, n_labels: int | None = None) -> sp.csr_matrix:
    """Build the CSR indicator matrix of shape ``(n_nodes, n_labels)``."""
    labels = np.asarray(labels, dtype=np.int64)
    n = labels.shape[0]
    if n_labels is None:
        n_labels = int(labels.max()) + 1 if n else 0
    data = np.ones(n, dtype=float)
    return sp.csr_matrix((data, (np.arange(n), labels)), shape=(n, n_labels))


def _check_partition(labels, n):
    if labels.ndim != 1 or labels.shape[0] != n:
        raise InternalInvariantError(
            f"partition covers {labels.shape[0]} nodes but the matrix has {n}"
        )
    if n == 0:
        return 0
    k = int(labels.max()) + 1
    if labels.min() < 0 or np.unique(labels).shape[0] != k:
        raise InternalInvariantError("partition labels are not dense 0..K-1")
    return k


def metanetwork(
    B: SupraModularityMatrix, partition
) -> tuple[SupraModularityMatrix, list[np.ndarray]]:
    """Aggregate ``B`` so that each community of ``partition`` becomes one node.

    ``B'[c1, c2]`` is the sum of ``B[i, j]`` over ``i`` in ``c1`` and ``j`` in
    ``c2``; self-loops collect the intra-community weight. Both the observed
    part and the null-model factors go through the same membership matrix
    ``M`` (``A' = M.T A M``, ``P' = M.T P``), so the total weight is preserved.

    Parameters
    ----------
    B : SupraModularityMatrix
    partition : array-like of int
        Dense labels ``0..K-1``, one per row of ``B``.

    Returns
    -------
    (SupraModularityMatrix, list[numpy.ndarray])
        The K x K meta-network and, for each meta-node, the sorted indices of
        the nodes of ``B`` it represents.

    """
    labels = np.asarray(partition, dtype=np.int64).ravel()
    k = _check_partition(labels, len(B))

    M = membership_matrix(labels, k)
    A_agg = (M.T @ B.adjacency @ M).tocsr()
    P_agg = np.asarray(M.T @ B.null_factors)

    order = np.argsort(labels, kind="stable")
    bounds = np.cumsum(np.bincount(labels, minlength=k))[:-1]
    mapping = np.split(order, bounds)

    logger.debug("aggregated %d nodes into %d meta-nodes (nnz=%d)", len(B), k, A_agg.nnz)
    agg = SupraModularityMatrix(A_agg, P_agg, B.gamma, B.two_mu, omega=B.omega, layers=B.layers)
    return agg, mapping
