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
Variational EM for the stochastic block model fitted jointly on a collection of networks, at a fixed number of
blocks. :class:`SimpleSBMPopFit` handles adjacency matrices (colSBM) and :class:`BipartiteSBMPopFit` handles
incidence matrices (colBiSBM).

The model variants only differ by three flags: ``free_density`` (one density factor :math:`\\delta_m` per network,
:math:`\\alpha^m = \\delta_m \\alpha`), ``free_mixture_row`` and ``free_mixture_col`` (one mixture per network
instead of a shared one).

References
----------
.. [chabert-liddell-colsbm-2023] Saint-Clair Chabert-Liddell, Pierre Barbillon and Sophie Donnet, "Learning common
   structures in a collection of networks. An application to food webs", Annals of Applied Statistics (2024),
   :arxiv:`2206.00560`.

"""
import logging

import numpy as np
from scipy.special import gammaln

from .options import default_fit_opts, merge_opts
from .utils import EPS, safe_log, softmax, threshold, xlogx, one_hot, rev_one_hot, dist_param

logger = logging.getLogger(__name__)


def _prepare_network(A, square):
    A = np.array(A, dtype=float)
    mask = (~np.isnan(A)).astype(float)
    if square:
        np.fill_diagonal(mask, 0.)
    X = np.nan_to_num(A) * mask
    return X, mask


class _SBMPopFit(object):
    """Base class of the fitted models; holds the M-step, the criteria and the VEM loop.

    Subclasses provide the E-step and the row/column views of the variational parameters.

    """
    bipartite = False

    def __init__(self, netlist, Q, distribution, free_density, free_mixture_row, free_mixture_col, fit_opts,
                 net_id, init_method, square):
        self.Q = tuple(int(q) for q in Q)
        self.coord = self.Q
        self.distribution = distribution
        self.free_density = bool(free_density)
        self.free_mixture_row = bool(free_mixture_row)
        self.free_mixture_col = bool(free_mixture_col)
        self.fit_opts = merge_opts(default_fit_opts(), fit_opts)
        self.M = len(netlist)
        self.net_id = list(range(self.M)) if net_id is None else list(net_id)
        self.init_method = init_method

        self.X = []
        self.mask = []
        for A in netlist:
            X, mask = _prepare_network(A, square)
            self.X.append(X)
            self.mask.append(mask)
        self._logfact = [float(np.sum(gammaln(X + 1) * mask)) if distribution == "poisson" else 0.
                         for X, mask in zip(self.X, self.mask)]

        self.alpha = None
        self.delta = np.ones(self.M)
        self.pi = None
        self.rho = None
        self.tau = None

        # sufficient statistics per network: sum tau_row^T X tau_col and sum tau_row^T mask tau_col
        self._num = [None] * self.M
        self._den = [None] * self.M

        self.vbound_trace = []
        self.nb_steps = 0
        self.converged = False
        self._first_estep = True
        self.loglik = self.entropy = self.vbound = self.penalty = self.ICL = self.BICL = None

    # ##########################
    # Row/column views of tau
    # ##########################
    def _tau_row(self, m):
        raise NotImplementedError

    def _tau_col(self, m):
        raise NotImplementedError

    def _pair_factor(self):
        """``0.5`` when every dyad is counted twice in the sufficient statistics."""
        return 1.

    def _fixed_point_e_step(self, m):
        raise NotImplementedError

    # ######
    # M-step
    # ######
    def _update_stats(self, m):
        tr, tc = self._tau_row(m), self._tau_col(m)
        self._num[m] = tr.T @ self.X[m] @ tc
        self._den[m] = tr.T @ self.mask[m] @ tc

    def _clip_alpha(self, alpha):
        if self.distribution == "bernoulli":
            return np.clip(alpha, EPS, 1 - EPS)
        return np.maximum(alpha, EPS)

    def alpha_m(self, m):
        """Connectivity parameters of network ``m``, :math:`\\delta_m \\alpha`."""
        return self._clip_alpha(self.delta[m] * self.alpha)

    @property
    def alpha_per_network(self):
        return [self.alpha_m(m) for m in range(self.M)]

    def empirical_alpha(self, m):
        """Connectivity of network ``m`` alone under the current :math:`\\tau`, zero for unobserved block pairs."""
        num, den = self._num[m], self._den[m]
        return np.divide(num, den, out=np.zeros(num.shape), where=den > 0)

    def _mixture(self, taus, free):
        if free:
            mix = np.array([tau.mean(axis=0) for tau in taus])
        else:
            pooled = np.sum([tau.sum(axis=0) for tau in taus], axis=0) / np.sum([tau.shape[0] for tau in taus])
            mix = np.tile(pooled, (len(taus), 1))
        return mix / mix.sum(axis=1, keepdims=True)

    def m_step(self):
        num = np.sum(self._num, axis=0)
        den_total = np.sum(self._den, axis=0)
        fallback = np.sum(num) / max(np.sum(den_total), EPS)
        if not self.free_density:
            alpha = np.divide(num, den_total, out=np.full(num.shape, fallback), where=den_total > 0)
            self.alpha = self._clip_alpha(alpha)
            self.delta = np.ones(self.M)
        else:
            delta = self.delta.copy()
            alpha = self.alpha if self.alpha is not None else np.full(num.shape, fallback)
            for _ in range(5):
                den = np.sum([d * den_m for d, den_m in zip(delta, self._den)], axis=0)
                alpha = np.divide(num, den, out=np.full(num.shape, fallback), where=den > 0)
                alpha = np.maximum(alpha, EPS)
                delta = np.array([np.sum(num_m) / max(np.sum(alpha * den_m), EPS)
                                  for num_m, den_m in zip(self._num, self._den)])
                delta = np.maximum(delta, EPS)
                alpha = alpha * delta[0]
                delta = delta / delta[0]
            self.alpha = self._clip_alpha(alpha)
            self.delta = delta
        self.pi = self._mixture([self._tau_row(m) for m in range(self.M)], self.free_mixture_row)
        if self.bipartite:
            self.rho = self._mixture([self._tau_col(m) for m in range(self.M)], self.free_mixture_col)

    def _param_vector(self):
        parts = [self.alpha.ravel(), self.pi.ravel() if self.free_mixture_row else self.pi[0]]
        if self.bipartite:
            parts += [self.rho.ravel() if self.free_mixture_col else self.rho[0]]
        if self.free_density:
            parts += [self.delta]
        return np.concatenate(parts)

    # ##########
    # VEM loop
    # ##########
    def _init_from_labels(self, Z):
        raise NotImplementedError

    def optimize(self, max_steps=None):
        """Run the variational EM until the parameters move less than ``tolerance``, or for ``max_steps`` steps.

        Parameters
        ----------
        max_steps : ``int`` (optional, default: ``None``)
            Defaults to the ``max_vem_steps`` fit option. With ``0``, only the criteria are (re)computed.

        Returns
        -------
        self

        """
        tolerance = self.fit_opts["tolerance"]
        max_steps = self.fit_opts["max_vem_steps"] if max_steps is None else int(max_steps)
        for _ in range(max_steps):
            old_params = self._param_vector()
            order = np.random.permutation(self.M) if self.fit_opts["minibatch"] else range(self.M)
            for m in order:
                for _ in range(self.fit_opts["fixed_point_iter"]):
                    self._fixed_point_e_step(m)
                self._update_stats(m)
                self.m_step()
            self._first_estep = False
            self.nb_steps += 1
            self.vbound_trace.append(self.compute_vbound())
            if dist_param(self._param_vector(), old_params) < tolerance:
                self.converged = True
                break
        if max_steps > 0 and not self.converged:
            msg = f"VEM at Q = {self._coord_str()} stopped after {self.nb_steps} steps without reaching the " \
                  f"tolerance {tolerance}; the last estimate is kept."
            if self.fit_opts["verbosity"] >= 1:
                logger.warning(msg)
            else:
                logger.debug(msg)
        self.compute_criteria()
        return self

    # ########
    # Criteria
    # ########
    def compute_loglik(self):
        """Expected complete-data log-likelihood under the variational distribution."""
        ll = 0.
        for m in range(self.M):
            a = self.alpha_m(m)
            num, den = self._num[m], self._den[m]
            if self.distribution == "bernoulli":
                data = np.sum(num * safe_log(a, EPS) + (den - num) * safe_log(1 - a, EPS))
            else:
                data = np.sum(num * safe_log(a, EPS) - den * a) - self._logfact[m]
            ll += self._pair_factor() * data
            ll += np.sum(self._tau_row(m).sum(axis=0) * safe_log(self.pi[m], EPS))
            if self.bipartite:
                ll += np.sum(self._tau_col(m).sum(axis=0) * safe_log(self.rho[m], EPS))
        return float(ll)

    def compute_entropy(self):
        ent = 0.
        for m in range(self.M):
            ent -= np.sum(xlogx(self._tau_row(m)))
            if self.bipartite:
                ent -= np.sum(xlogx(self._tau_col(m)))
        return float(ent)

    def compute_vbound(self):
        return self.compute_loglik() + self.compute_entropy()

    def count_free_params(self):
        """Number of free parameters of the connectivity, of the row mixture and of the column mixture."""
        raise NotImplementedError

    def compute_penalty(self, penalty_factor=None):
        """:math:`\\mathrm{pen} = c \\, (K_\\alpha \\log N_{dyads} + K_\\pi \\log N_{row} + K_\\rho \\log N_{col})`."""
        penalty_factor = self.fit_opts["penalty_factor"] if penalty_factor is None else penalty_factor
        k_conn, k_row, k_col = self.count_free_params()
        n_dyads = self._pair_factor() * np.sum([np.sum(mask) for mask in self.mask])
        n_row = np.sum([mask.shape[0] for mask in self.mask])
        pen = k_conn * np.log(max(n_dyads, 1.)) + k_row * np.log(n_row)
        if self.bipartite:
            pen += k_col * np.log(np.sum([mask.shape[1] for mask in self.mask]))
        return float(penalty_factor * pen)

    def compute_BICL(self, penalty_factor=None, store=True):
        bicl = self.compute_vbound() - self.compute_penalty(penalty_factor)
        if store:
            self.BICL = bicl
        return bicl

    def compute_criteria(self):
        self.loglik = self.compute_loglik()
        self.entropy = self.compute_entropy()
        self.vbound = self.loglik + self.entropy
        self.penalty = self.compute_penalty()
        self.ICL = self.loglik + self.entropy
        self.BICL = self.ICL - self.penalty
        return self.BICL

    def _coord_str(self):
        return str(self.Q[0]) if len(self.Q) == 1 else str(self.Q)

    def predict(self, m=0):
        """Dyad-level expected values (probabilities or rates) of network ``m``."""
        return self._tau_row(m) @ self.alpha_m(m) @ self._tau_col(m).T

    def __repr__(self):
        return f"{type(self).__name__}(Q={self._coord_str()}, M={self.M}, BICL={self.BICL})"


class SimpleSBMPopFit(_SBMPopFit):
    """Joint stochastic block model on a collection of adjacency matrices, at a fixed number ``Q`` of blocks.

    Parameters
    ----------
    netlist : ``list`` of :class:`numpy.ndarray` (required)
        Square adjacency matrices; ``NaN`` entries are missing dyads.

    Q : ``int`` (required)
        Number of blocks.

    Z_init : ``list`` of :class:`numpy.ndarray` (optional, default: ``None``)
        Initial labels per network, with values in ``0..Q-1``. Required when ``Q > 1``.

    directed : ``bool`` (optional, default: ``None``)
        If ``None``, the networks are directed as soon as one of them is not symmetric.

    distribution : ``str`` (optional, default: ``"bernoulli"``)
        ``"bernoulli"`` or ``"poisson"``.

    free_density : ``bool`` (optional, default: ``False``)

    free_mixture : ``bool`` (optional, default: ``False``)

    fit_opts : ``dict`` (optional, default: ``None``)
        See :func:`colsbm.options.default_fit_opts`.

    net_id : ``list`` (optional, default: ``None``)

    init_method : ``str`` (optional, default: ``None``)
        A tag recording where ``Z_init`` comes from.

    """

    def __init__(self, netlist, Q, Z_init=None, directed=None, distribution="bernoulli", free_density=False,
                 free_mixture=False, fit_opts=None, net_id=None, init_method=None):
        Q = (Q,) if np.ndim(Q) == 0 else tuple(Q)
        super().__init__(netlist, Q, distribution, free_density, free_mixture, free_mixture, fit_opts, net_id,
                         init_method, square=True)
        if directed is None:
            directed = any(not np.array_equal(A, A.T, equal_nan=True) for A in map(np.asarray, netlist))
        self.directed = bool(directed)
        degrees = [X.sum(axis=0) + X.sum(axis=1) for X in self.X]
        self._isolated = [np.flatnonzero(d == 0) for d in degrees]
        self._init_from_labels(Z_init)

    def _init_from_labels(self, Z):
        q = self.Q[0]
        if q == 1 or Z is None:
            assert q == 1, "[ERROR] Z_init is required when Q > 1."
            Z = [np.zeros(X.shape[0], dtype=np.int_) for X in self.X]
        assert len(Z) == self.M, f"[ERROR] Z_init has {len(Z)} label vectors for {self.M} networks."
        self.tau = [threshold(one_hot(z, q)) for z in Z]
        for m in range(self.M):
            self._update_stats(m)
        self.m_step()

    def _tau_row(self, m):
        return self.tau[m]

    def _tau_col(self, m):
        return self.tau[m]

    def _pair_factor(self):
        return 1. if self.directed else .5

    def _fixed_point_e_step(self, m):
        if self.Q[0] == 1:
            return
        X, mask, tau = self.X[m], self.mask[m], self.tau[m]
        a = self.alpha_m(m)
        la = safe_log(a, EPS)
        if self.distribution == "bernoulli":
            l1a = safe_log(1 - a, EPS)
            non_edges = mask - X
            S = X @ tau @ la.T + non_edges @ tau @ l1a.T
            if self.directed:
                S += X.T @ tau @ la + non_edges.T @ tau @ l1a
        else:
            S = X @ tau @ la.T - mask @ tau @ a.T
            if self.directed:
                S += X.T @ tau @ la - mask.T @ tau @ a
        S += safe_log(self.pi[m], EPS)[np.newaxis, :]
        new_tau = threshold(softmax(S))
        if self._first_estep and len(self._isolated[m]) > 0:
            new_tau[self._isolated[m]] = tau[self._isolated[m]]
        self.tau[m] = new_tau

    def count_free_params(self):
        q = self.Q[0]
        k_conn = q * q if self.directed else q * (q + 1) // 2
        if self.free_density:
            k_conn += self.M - 1
        k_row = (q - 1) * (self.M if self.free_mixture_row else 1)
        return k_conn, k_row, 0

    @property
    def Z(self):
        """Hard block labels (argmax of :math:`\\tau`) per network."""
        return [rev_one_hot(tau) for tau in self.tau]

    @property
    def memberships(self):
        return self.Z


class BipartiteSBMPopFit(_SBMPopFit):
    """Joint latent block model on a collection of incidence matrices, at fixed ``(Q1, Q2)``.

    Parameters
    ----------
    netlist : ``list`` of :class:`numpy.ndarray` (required)
        Incidence matrices; rows and columns are the two types of nodes.

    Q : ``tuple`` (required)
        Number of row blocks and of column blocks.

    Z_init : ``list`` (optional, default: ``None``)
        One ``(row_labels, col_labels)`` pair per network.

    free_mixture_row : ``bool`` (optional, default: ``False``)
        One :math:`\\pi` per network.

    free_mixture_col : ``bool`` (optional, default: ``False``)
        One :math:`\\rho` per network.

    """
    bipartite = True

    def __init__(self, netlist, Q, Z_init=None, distribution="bernoulli", free_mixture_row=False,
                 free_mixture_col=False, free_density=False, fit_opts=None, net_id=None, init_method=None):
        assert len(Q) == 2, "[ERROR] Q must be a pair (Q1, Q2) for bipartite networks."
        super().__init__(netlist, Q, distribution, free_density, free_mixture_row, free_mixture_col, fit_opts,
                         net_id, init_method, square=False)
        self._isolated = [(np.flatnonzero(X.sum(axis=1) == 0), np.flatnonzero(X.sum(axis=0) == 0)) for X in self.X]
        self._init_from_labels(Z_init)

    def _init_from_labels(self, Z):
        q1, q2 = self.Q
        if Z is None:
            assert q1 == 1 and q2 == 1, "[ERROR] Z_init is required when (Q1, Q2) != (1, 1)."
            Z = [(np.zeros(X.shape[0], dtype=np.int_), np.zeros(X.shape[1], dtype=np.int_)) for X in self.X]
        assert len(Z) == self.M, f"[ERROR] Z_init has {len(Z)} label pairs for {self.M} networks."
        self.tau = [[threshold(one_hot(zr, q1)), threshold(one_hot(zc, q2))] for zr, zc in Z]
        for m in range(self.M):
            self._update_stats(m)
        self.m_step()

    def _tau_row(self, m):
        return self.tau[m][0]

    def _tau_col(self, m):
        return self.tau[m][1]

    def _block_scores(self, X, non_edges, mask, tau_other, la, l1a, a):
        if self.distribution == "bernoulli":
            return X @ tau_other @ la + non_edges @ tau_other @ l1a
        return X @ tau_other @ la - mask @ tau_other @ a

    def _fixed_point_e_step(self, m):
        q1, q2 = self.Q
        X, mask = self.X[m], self.mask[m]
        a = self.alpha_m(m)
        la = safe_log(a, EPS)
        l1a = safe_log(1 - a, EPS) if self.distribution == "bernoulli" else None
        non_edges = mask - X
        if q1 > 1:
            S = self._block_scores(X, non_edges, mask, self.tau[m][1], la.T, None if l1a is None else l1a.T, a.T)
            S += safe_log(self.pi[m], EPS)[np.newaxis, :]
            new_tau = threshold(softmax(S))
            if self._first_estep:
                new_tau[self._isolated[m][0]] = self.tau[m][0][self._isolated[m][0]]
            self.tau[m][0] = new_tau
        if q2 > 1:
            S = self._block_scores(X.T, non_edges.T, mask.T, self.tau[m][0], la, l1a, a)
            S += safe_log(self.rho[m], EPS)[np.newaxis, :]
            new_tau = threshold(softmax(S))
            if self._first_estep:
                new_tau[self._isolated[m][1]] = self.tau[m][1][self._isolated[m][1]]
            self.tau[m][1] = new_tau

    def count_free_params(self):
        q1, q2 = self.Q
        k_conn = q1 * q2 + (self.M - 1 if self.free_density else 0)
        k_row = (q1 - 1) * (self.M if self.free_mixture_row else 1)
        k_col = (q2 - 1) * (self.M if self.free_mixture_col else 1)
        return k_conn, k_row, k_col

    @property
    def memberships(self):
        """Hard row and column labels per network, as ``{"row": ..., "col": ...}`` dictionaries."""
        return [{"row": rev_one_hot(tr), "col": rev_one_hot(tc)} for tr, tc in self.tau]


def _optimize_fit(fit):
    """Task run by the backends; the fit is optimized in the worker and sent back."""
    return fit.optimize()
