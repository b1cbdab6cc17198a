#! /usr/bin/env python
# -*- coding: utf-8 -*-
#
# colsbm -- a python module for fitting stochastic block models on collections of networks
#
# Copyright (C) 2024 The colsbm developers
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License
# along with this program.  If not, see <http://www.gnu.org/licenses/>.

"""
The `initialization` module produces starting block memberships for the variational EM: spectral clustering of the
normalized similarity matrix, agglomerative clustering, and split/merge proposals derived from an existing partition.

All label vectors returned here take values in ``0..K-1``.
"""
import logging
from itertools import combinations

import numpy as np
from scipy.cluster.hierarchy import linkage, fcluster
from scipy.spatial.distance import pdist
from sklearn.cluster import KMeans

from .utils import merge_labels, count_block_sizes, relabel_consecutive

logger = logging.getLogger(__name__)


def _is_symmetric(X):
    return X.shape[0] == X.shape[1] and np.array_equal(X, X.T, equal_nan=True)


def kmeans_with_retries(U, K, kmeans_nstart=20, kmeans_iter_max=100, kmeans_max_retries=5):
    """Run k-means, retrying on numerical failure a bounded number of times.

    Parameters
    ----------
    U : :class:`numpy.ndarray`
        Points to cluster, one per row.

    K : ``int``
        Number of clusters.

    kmeans_nstart : ``int`` (optional, default: ``20``)
        Number of random starts of each k-means call.

    kmeans_iter_max : ``int`` (optional, default: ``100``)

    kmeans_max_retries : ``int`` (optional, default: ``5``)

    Returns
    -------
    labels : :class:`numpy.ndarray` or ``None``
        ``None`` when every attempt failed.

    """
    for attempt in range(max(1, int(kmeans_max_retries))):
        try:
            km = KMeans(n_clusters=int(K), n_init=int(kmeans_nstart), max_iter=int(kmeans_iter_max),
                        random_state=np.random.randint(2 ** 31 - 1))
            return km.fit_predict(U).astype(np.int_)
        except (ValueError, FloatingPointError, np.linalg.LinAlgError) as e:
            logger.debug(f"k-means attempt {attempt + 1} failed: {e}")
    logger.warning(f"k-means failed {kmeans_max_retries} times with K = {K}; falling back to a single cluster.")
    return None


def spectral_clustering(X, K, kmeans_nstart=20, kmeans_iter_max=100, kmeans_max_retries=5):
    """Spectral clustering of the nodes of a network.

    Parameters
    ----------
    X : :class:`numpy.ndarray`
        A (possibly weighted, possibly directed) adjacency matrix. ``NaN`` entries are treated as missing.

    K : ``int``
        Number of clusters.

    Returns
    -------
    clustering : :class:`numpy.ndarray`
        The cluster labels.

    Notes
    -----
    Isolated nodes are set aside before the eigendecomposition, and are then put in the connected cluster with the
    lowest total degree.

    """
    X = np.array(X, dtype=float)
    n = X.shape[0]
    if K == 1:
        return np.zeros(n, dtype=np.int_)
    if not _is_symmetric(X):
        missing = np.isnan(X) & np.isnan(X.T)
        X = ((np.nan_to_num(X) + np.nan_to_num(X.T)) > 0).astype(float)
        X[missing] = np.nan
    degrees = np.nansum(X, axis=1)
    connected = np.flatnonzero(degrees > 0)
    isolated = np.flatnonzero(degrees == 0)
    if len(connected) < 3:
        return np.zeros(n, dtype=np.int_)
    X = X[np.ix_(connected, connected)]

    d = 1. / np.sqrt(np.nansum(X, axis=1) + 1)
    X[np.isnan(X)] = np.nanmean(X)
    lap = d[:, np.newaxis] * X * d[np.newaxis, :]
    if K >= len(connected):
        logger.warning(f"Too many clusters for spectral clustering: K = {K} with {len(connected)} connected nodes.")
        K = len(connected) - 1

    cl = None
    if K >= 2:
        values, vectors = np.linalg.eigh(lap)
        index = np.argsort(-np.abs(values))[:K]
        U = vectors[:, index]
        norms = np.sqrt(np.sum(U ** 2, axis=1, keepdims=True))
        with np.errstate(divide="ignore", invalid="ignore"):
            U = U / norms
        U[~np.isfinite(U)] = 0.
        cl = kmeans_with_retries(U, K, kmeans_nstart, kmeans_iter_max, kmeans_max_retries)
    if cl is None:
        cl = np.zeros(len(connected), dtype=np.int_)

    clustering = np.zeros(n, dtype=np.int_)
    clustering[connected] = cl
    if len(isolated) > 0:
        present = np.unique(cl)
        block_degrees = np.array([np.sum(degrees[connected][cl == q]) for q in present])
        clustering[isolated] = present[np.argmin(block_degrees)]
    return clustering


def spectral_biclustering(A, Q, kmeans_nstart=20, kmeans_iter_max=100, kmeans_max_retries=5):
    """Cluster the rows (on :math:`A A^T`) and the columns (on :math:`A^T A`) of an incidence matrix independently.

    Returns
    -------
    row_clustering, col_clustering : :class:`numpy.ndarray`

    """
    K1, K2 = Q
    A = np.array(A, dtype=float)
    if K1 == 1 and K2 == 1:
        return np.zeros(A.shape[0], dtype=np.int_), np.zeros(A.shape[1], dtype=np.int_)
    A0 = np.nan_to_num(A)
    row_clustering = spectral_clustering(A0 @ A0.T, K1, kmeans_nstart, kmeans_iter_max, kmeans_max_retries)
    col_clustering = spectral_clustering(A0.T @ A0, K2, kmeans_nstart, kmeans_iter_max, kmeans_max_retries)
    return row_clustering, col_clustering


def hierarchical_clustering(X, K):
    """Agglomerative clustering with the Manhattan distance and Ward's linkage; one cluster if distances are NaN."""
    X = np.asarray(X, dtype=float)
    n = X.shape[0]
    if K == 1 or n < 2:
        return np.zeros(n, dtype=np.int_)
    diss = pdist(X, metric="cityblock")
    if np.any(np.isnan(diss)):
        return np.zeros(n, dtype=np.int_)
    tree = linkage(diss, method="ward")
    return relabel_consecutive(fcluster(tree, t=min(int(K), n), criterion="maxclust"))


def bipartite_hierarchical_clustering(A, Q):
    K1, K2 = Q
    A = np.asarray(A, dtype=float)
    return hierarchical_clustering(A, K1), hierarchical_clustering(A.T, K2)


def order_labels_by_degree(X, z, K, axis=0):
    """Relabel the blocks by decreasing mean degree, so that independent initializations roughly agree.

    Parameters
    ----------
    X : :class:`numpy.ndarray`

    z : :class:`numpy.ndarray`
        Labels of the nodes along ``axis``.

    K : ``int``

    axis : ``int`` (optional, default: ``0``)
        ``0`` for the row nodes, ``1`` for the column nodes.

    Returns
    -------
    z : :class:`numpy.ndarray`

    """
    degrees = np.nansum(X, axis=1 - axis)
    mean_deg = np.array([np.mean(degrees[z == q]) if np.any(z == q) else -np.inf for q in range(K)])
    rank = np.empty(K, dtype=np.int_)
    rank[np.argsort(-mean_deg, kind="stable")] = np.arange(K)
    return rank[z]


def split_clust(X, Z, Q, is_bipartite=False, kmeans_max_retries=5):
    """Propose a split of each block into two.

    Parameters
    ----------
    X : :class:`numpy.ndarray`
        Adjacency matrix, or incidence matrix whose rows are the nodes labelled by ``Z``.

    Z : :class:`numpy.ndarray`
        Current labels, with values in ``0..Q-1``.

    Q : ``int``
        Current number of blocks.

    is_bipartite : ``bool`` (optional, default: ``False``)

    Returns
    -------
    Z_split : ``dict``
        Map from the split block ``q`` to the proposed labels, with values in ``0..Q``. Blocks with 3 nodes or less,
        or with 3 distinct rows or less, are not split.

    """
    X = np.array(X, dtype=float)
    Z = np.asarray(Z, dtype=np.int_)
    Z_split = dict()
    n_q = count_block_sizes(Z.astype(np.int64), int(Q))
    for q in range(Q):
        if n_q[q] <= 3:
            continue
        in_q = Z == q
        if is_bipartite:
            mx = np.nanmean(X[in_q, :]) if np.any(~np.isnan(X[in_q, :])) else 0.
        else:
            mx = np.nanmean(X[np.ix_(in_q, in_q)]) if np.any(~np.isnan(X[np.ix_(in_q, in_q)])) else 0.
        Xq = np.where(np.isnan(X), mx, X)
        if is_bipartite or _is_symmetric(Xq):
            Xsub = Xq[in_q, :]
        else:
            Xsub = np.hstack([Xq[in_q, :], Xq[:, in_q].T])
        if len(np.unique(Xsub, axis=0)) <= 3:
            continue
        C = kmeans_with_retries(Xsub, 2, kmeans_nstart=1, kmeans_max_retries=kmeans_max_retries)
        if C is None or len(np.unique(C)) != 2:
            continue
        if is_bipartite:
            p = [np.array([np.mean(Xq[in_q, :][C == c, :])]) for c in (0, 1)]
        else:
            p = [np.array([np.mean(Xq[in_q, :][C == c, :]), np.mean(Xq[:, in_q][:, C == c])]) for c in (0, 1)]
        # the denser half along the most discriminating direction takes the new label
        c = np.argmax(np.abs(p[0] - p[1]))
        new_half = 0 if p[0][c] >= p[1][c] else 1
        Z_new = Z.copy()
        idx = np.flatnonzero(in_q)
        Z_new[idx[C == new_half]] = Q
        Z_split[q] = Z_new
    return Z_split


def merge_clust(Z, Q):
    """All the :math:`Q(Q-1)/2` merges of two blocks.

    Returns
    -------
    Z_merge : ``dict``
        Map from the merged pair ``(a, b)`` to the labels, with values in ``0..Q-2``.

    """
    Z = np.asarray(Z, dtype=np.int64)
    return {(a, b): merge_labels(Z, np.array([a, b], dtype=np.int64)).astype(np.int_)
            for a, b in combinations(range(Q), 2)}
