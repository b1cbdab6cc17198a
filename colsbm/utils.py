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

""" Utilities for numerics, block labels and network simulation. """
import numpy as np
from numba import njit

EPS = 1e-9


# ##################
# NUMERIC PRIMITIVES
# ##################


def safe_log(x, eps=None):
    """Logarithm with an optional floor at ``eps``, so that exact zeros never reach :func:`numpy.log`.

    Parameters
    ----------
    x : :class:`numpy.ndarray`

    eps : ``float`` (optional, default: ``None``)
        If ``None``, this is a plain logarithm.

    Returns
    -------
    res : :class:`numpy.ndarray`

    """
    x = np.asarray(x, dtype=float)
    if eps is None:
        return np.log(x)
    return np.log(np.maximum(x, eps))


def logistic(x):
    return 1. / (1. + np.exp(-x))


def logit(x, eps=None):
    x = np.asarray(x, dtype=float)
    if eps is None:
        return np.log(x / (1 - x))
    return np.log(np.clip(x, eps, 1 - eps) / np.clip(1 - x, eps, 1 - eps))


def xlogx(x):
    x = np.asarray(x, dtype=float)
    return np.where(x < 2 * np.finfo(float).eps, 0., x * np.log(np.maximum(x, np.finfo(float).tiny)))


def xlogy(x, y, eps=None):
    x = np.asarray(x, dtype=float)
    return np.where(x < 2 * np.finfo(float).eps, 0., x * safe_log(y, eps=eps))


def softmax(x):
    """Row-wise softmax; the row maximum is subtracted before exponentiating."""
    x = np.asarray(x, dtype=float)
    x = np.exp(x - np.max(x, axis=1, keepdims=True))
    return x / np.sum(x, axis=1, keepdims=True)


def threshold(x, eps=EPS):
    """Clamp the entries of a row-stochastic matrix into :math:`(\\epsilon, 1 - \\epsilon)` and renormalize the rows.

    Parameters
    ----------
    x : :class:`numpy.ndarray`
        Matrix whose rows should lie on the simplex.

    eps : ``float`` (optional, default: ``1e-9``)

    Returns
    -------
    x : :class:`numpy.ndarray`

    """
    x = np.clip(np.asarray(x, dtype=float), eps, 1 - eps)
    return x / np.sum(x, axis=1, keepdims=True)


def quadform(x, y):
    """:math:`x y x^T`"""
    return x @ y @ x.T


def tquadform(x, y):
    """:math:`x^T y x`"""
    return x.T @ y @ x


def dist_param(param, param_old):
    return float(np.sqrt(np.sum((np.asarray(param) - np.asarray(param_old)) ** 2)))


def one_hot(z, q):
    """One-hot encoding of a label vector with values in ``0..q-1``."""
    z = np.asarray(z, dtype=np.int_)
    o = np.zeros((len(z), int(q)))
    o[np.arange(len(z)), z] = 1.
    return o


def rev_one_hot(x):
    return np.argmax(x, axis=1).astype(np.int_)


# ##################
# LABELS MANIPULATION
# ##################


@njit(cache=True)
def merge_labels(z, mlist):
    """Merge two blocks of a label vector.

    Parameters
    ----------
    z : :class:`numpy.ndarray`
        Label vector with values in ``0..Q-1``.

    mlist : :class:`numpy.ndarray`
        The two block labels to be merged.

    Returns
    -------
    _z : :class:`numpy.ndarray`
        The merged labels, with values in ``0..Q-2``.

    """
    _z = np.zeros(z.size, dtype=np.int64)
    lo = min(mlist[0], mlist[1])
    hi = max(mlist[0], mlist[1])
    for _node_id in range(z.size):
        _g = z[_node_id]
        if _g == hi:
            _z[_node_id] = lo
        elif _g < hi:
            _z[_node_id] = _g
        else:
            _z[_node_id] = _g - 1
    return _z


@njit(cache=True)
def count_block_sizes(z, q):
    """Get :math:`n_q`, i.e., the number of nodes in each of the ``q`` blocks."""
    n_q = np.zeros(q, dtype=np.int64)
    for block_id in z:
        n_q[block_id] += 1
    return n_q


def relabel_consecutive(z):
    """Map arbitrary labels (e.g. 1-indexed, or with gaps) onto ``0..K-1`` keeping their order."""
    _, z = np.unique(np.asarray(z), return_inverse=True)
    return z.astype(np.int_)


# ####################
# GENERATION FUNCTIONS
# ####################


def _check_generation_params(alpha, distribution, *mixtures):
    alpha = np.asarray(alpha, dtype=float)
    if np.any(alpha < 0):
        raise ValueError("All alpha coefficients must be positive.")
    if distribution == "bernoulli" and np.any(alpha > 1):
        raise ValueError("With bernoulli, the alpha must be between 0 and 1.")
    if distribution not in ["bernoulli", "poisson"]:
        raise ValueError("distribution must be one of either 'bernoulli' or 'poisson'.")
    for mix in mixtures:
        mix = np.asarray(mix, dtype=float)
        if np.any(mix < 0) or np.any(mix > 1):
            raise ValueError("All mixture proportions must be between 0 and 1.")
        if not np.isclose(np.sum(mix), 1.):
            raise ValueError("Mixture proportions must sum to one.")
    return alpha


def _emit(mean, distribution):
    if distribution == "bernoulli":
        return np.random.binomial(1, mean).astype(float)
    return np.random.poisson(mean).astype(float)


def generate_unipartite_network(n, pi, alpha, distribution="bernoulli", directed=False, return_memberships=False):
    """Generate an adjacency matrix from a stochastic block model.

    Parameters
    ----------
    n : ``int``
        Number of nodes.

    pi : ``iterable``
        Block proportions.

    alpha : :class:`numpy.ndarray`
        Connectivity matrix between blocks.

    distribution : ``str`` (optional, default: ``"bernoulli"``)

    directed : ``bool`` (optional, default: ``False``)

    return_memberships : ``bool`` (optional, default: ``False``)

    Returns
    -------
    adj : :class:`numpy.ndarray` or ``dict``
        The adjacency matrix, or a ``dict`` with keys ``adjacency_matrix`` and ``block_memberships``.

    """
    alpha = _check_generation_params(alpha, distribution, pi)
    z = np.random.choice(len(pi), size=int(n), p=np.asarray(pi, dtype=float))
    adj = _emit(alpha[np.ix_(z, z)], distribution)
    if not directed:
        adj = np.triu(adj, 1)
        adj = adj + adj.T
    np.fill_diagonal(adj, 0)
    if return_memberships:
        return {"adjacency_matrix": adj, "block_memberships": z}
    return adj


def generate_unipartite_collection(n, pi, alpha, M, distribution="bernoulli", directed=False,
                                   return_memberships=False):
    """Generate ``M`` networks from the same stochastic block model.

    ``n`` is either a single number of nodes, replicated for each network, or a list of size ``M``.
    """
    n = [n] * M if np.ndim(n) == 0 else list(n)
    if len(n) != M:
        raise ValueError(f"The length of n is not correct! It should be {M} values and it is {len(n)}.")
    return [generate_unipartite_network(n[m], pi, alpha, distribution=distribution, directed=directed,
                                        return_memberships=return_memberships) for m in range(M)]


def generate_bipartite_network(nr, nc, pi, rho, alpha, distribution="bernoulli", return_memberships=False):
    """Generate an incidence matrix from a latent block model.

    Parameters
    ----------
    nr : ``int``
        Number of row nodes.

    nc : ``int``
        Number of column nodes.

    pi : ``iterable``
        Row block proportions.

    rho : ``iterable``
        Column block proportions.

    alpha : :class:`numpy.ndarray`
        Connectivity matrix of shape ``(len(pi), len(rho))``.

    Returns
    -------
    inc : :class:`numpy.ndarray` or ``dict``
        The incidence matrix, or a ``dict`` with keys ``incidence_matrix``, ``row_blockmemberships`` and
        ``col_blockmemberships``.

    """
    alpha = _check_generation_params(alpha, distribution, pi, rho)
    z_row = np.random.choice(len(pi), size=int(nr), p=np.asarray(pi, dtype=float))
    z_col = np.random.choice(len(rho), size=int(nc), p=np.asarray(rho, dtype=float))
    inc = _emit(alpha[np.ix_(z_row, z_col)], distribution)
    if return_memberships:
        return {"incidence_matrix": inc, "row_blockmemberships": z_row, "col_blockmemberships": z_col}
    return inc


def generate_bipartite_collection(nr, nc, pi, rho, alpha, M, model="iid", distribution="bernoulli",
                                  return_memberships=False):
    """Generate ``M`` bipartite networks.

    With ``model`` other than ``"iid"``, the provided ``pi`` (``"pi"``), ``rho`` (``"rho"``) or both
    (``"pirho"``) are shuffled independently for each network.
    """
    nr = [nr] * M if np.ndim(nr) == 0 else list(nr)
    nc = [nc] * M if np.ndim(nc) == 0 else list(nc)
    if len(nr) != M:
        raise ValueError(f"The length of nr is not correct! It should be {M} values and it is {len(nr)}.")
    if len(nc) != M:
        raise ValueError(f"The length of nc is not correct! It should be {M} values and it is {len(nc)}.")
    if model not in ["iid", "pi", "rho", "pirho"]:
        raise ValueError("Error unknown model. Must be one of: iid, pi, rho, pirho.")

    out = []
    for m in range(M):
        _pi = np.random.permutation(pi) if model in ["pi", "pirho"] else pi
        _rho = np.random.permutation(rho) if model in ["rho", "pirho"] else rho
        out += [generate_bipartite_network(nr[m], nc[m], _pi, _rho, alpha, distribution=distribution,
                                           return_memberships=return_memberships)]
    return out

