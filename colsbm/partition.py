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
Partition a collection of networks into sub-collections sharing the same block structure.

Starting from one group (or from a given grouping), split rounds cut a group of more than 3 networks in two by a
2-means on the per-network connectivity estimates, and merge rounds join the pair of groups with the largest gain.
Every move is decided on the BICL of fully estimated collections.
"""
import logging
from itertools import combinations

import numpy as np

import engines
from .estimate import estimate_colsbm, estimate_colbisbm
from .initialization import kmeans_with_retries
from .options import default_fit_opts, merge_opts, get_model_flags, check_networks_list, check_is_integer_over_thresh

logger = logging.getLogger(__name__)


class Partition(object):
    """An ordered list of groups of networks, each one with its fitted collection.

    Attributes
    ----------
    groups : ``list`` of ``tuple``
        Indices of the networks of each group, in the original network list.

    collections : ``list``
        The :class:`colsbm.collection.ColSBM` or :class:`colsbm.collection.ColBiSBM` of each group.

    """

    def __init__(self, groups, collections, net_id=None):
        assert len(groups) == len(collections), "[ERROR] Each group needs exactly one collection."
        self.groups = [tuple(g) for g in groups]
        self.collections = list(collections)
        self.net_id = net_id

    @property
    def BICL(self):
        return float(np.sum([c.best_fit.BICL for c in self.collections]))

    def __len__(self):
        return len(self.groups)

    def __iter__(self):
        return iter(zip(self.groups, self.collections))

    def __getitem__(self, i):
        return self.groups[i], self.collections[i]

    def labels(self):
        """Group of each network, as a label vector."""
        z = np.zeros(sum(len(g) for g in self.groups), dtype=np.int_)
        for k, g in enumerate(self.groups):
            z[list(g)] = k
        return z

    def summary(self):
        _summary = dict()
        _summary["nb_groups"] = len(self.groups)
        _summary["BICL"] = self.BICL
        _summary["groups"] = []
        for g, c in self:
            _summary["groups"] += [{
                "networks": list(c.net_id),
                "best_coord": c._fmt(c.best_coord),
                "BICL": c.best_fit.BICL,
            }]
        return _summary

    def __repr__(self):
        return f"Partition({[list(g) for g in self.groups]}, BICL={self.BICL:.2f})"


class _GroupEstimator(object):
    """Estimates the collection of a group of networks on the sequential backend."""

    def __init__(self, estimator, netlist, net_id, kwargs):
        self.estimator = estimator
        self.netlist = netlist
        self.net_id = net_id
        self.kwargs = kwargs

    def __call__(self, group):
        return self.estimator([self.netlist[i] for i in group], net_id=[self.net_id[i] for i in group],
                              backend=engines.Sequential(), **self.kwargs)


def _check_partition_init(partition_init, M):
    groups = [tuple(sorted(int(i) for i in g)) for g in partition_init]
    flat = sorted(i for g in groups for i in g)
    if flat != list(range(M)) or any(len(g) == 0 for g in groups):
        raise ValueError("[ERROR] partition_init must split the indices 0..M-1 into non-empty disjoint groups.")
    return groups


def _network_features(collection):
    fit = collection.best_fit
    return np.array([fit.empirical_alpha(m).ravel() for m in range(fit.M)])


def _clusterize(netlist, estimator, estimator_kwargs, net_id, global_opts, fit_opts, partition_init,
                full_collection_init, max_iter, backend):
    M = len(netlist)
    net_id = list(range(M)) if net_id is None else list(net_id)
    if len(net_id) != M:
        raise ValueError(f"[ERROR] net_id has {len(net_id)} entries for {M} networks.")
    check_is_integer_over_thresh(max_iter, 1, name="max_iter")
    _global_opts = global_opts or dict()
    if backend is None:
        backend = _global_opts.get("backend", "sequential")
    backend = engines.get_backend(backend, n_cores=_global_opts.get("nb_cores", 1))
    fit_group = _GroupEstimator(estimator, netlist, net_id,
                                dict(estimator_kwargs, global_opts=global_opts, fit_opts=fit_opts))
    _fit_opts = merge_opts(default_fit_opts(), fit_opts)
    k_opts = {k: _fit_opts[k] for k in ("kmeans_nstart", "kmeans_iter_max", "kmeans_max_retries")}

    groups = [tuple(range(M))] if partition_init is None else _check_partition_init(partition_init, M)
    cache = dict()
    if full_collection_init is not None:
        cache[frozenset(range(M))] = full_collection_init

    def fit_groups(candidates):
        todo = []
        for g in candidates:
            if frozenset(g) not in cache and frozenset(g) not in map(frozenset, todo):
                todo.append(tuple(sorted(g)))
        for g, collection in zip(todo, backend.map(fit_group, todo)):
            cache[frozenset(g)] = collection

    def bicl(g):
        return cache[frozenset(g)].best_fit.BICL

    fit_groups(groups)
    for _iter in range(int(max_iter)):
        changed = False

        # split
        proposals = dict()
        for g in groups:
            if len(g) <= 3:
                continue
            labels = kmeans_with_retries(_network_features(cache[frozenset(g)]), 2, **k_opts)
            if labels is None or len(np.unique(labels)) < 2:
                continue
            g_ = np.array(g)
            proposals[g] = (tuple(int(i) for i in g_[labels == 0]), tuple(int(i) for i in g_[labels == 1]))
        fit_groups([half for halves in proposals.values() for half in halves])
        for g, (g1, g2) in proposals.items():
            if bicl(g1) + bicl(g2) > bicl(g):
                logger.info(f"{list(g)} ~~-> {list(g1)} + {list(g2)}; "
                            f"BICL {bicl(g):.2f} -> {bicl(g1) + bicl(g2):.2f}.")
                groups = [h for h in groups if h != g] + [g1, g2]
                changed = True

        # merge
        if len(groups) > 1:
            pairs = list(combinations(groups, 2))
            fit_groups([a + b for a, b in pairs])
            gains = [bicl(a + b) - bicl(a) - bicl(b) for a, b in pairs]
            best = int(np.argmax(gains))
            if gains[best] >= 0:
                a, b = pairs[best]
                logger.info(f"{list(a)} + {list(b)} ~~-> {sorted(a + b)}; BICL gain {gains[best]:.2f}.")
                groups = [h for h in groups if h not in (a, b)] + [tuple(sorted(a + b))]
                changed = True

        logger.info(f"Round {_iter + 1}: {len(groups)} group(s).")
        if not changed:
            break

    groups = sorted(groups)
    return Partition(groups, [cache[frozenset(g)] for g in groups], net_id=net_id)


def clusterize_unipartite_networks(netlist, colsbm_model, net_id=None, directed=None, distribution="bernoulli",
                                   nb_run=1, global_opts=None, fit_opts=None, partition_init=None,
                                   full_collection_init=None, max_iter=10, backend=None):
    """Partition a collection of networks into groups that are better fitted by separate colSBMs.

    Parameters
    ----------
    netlist : ``list`` of :class:`numpy.ndarray` (required)
        Adjacency matrices.

    colsbm_model : ``str`` (required)
        One of ``"iid"``, ``"pi"``, ``"delta"`` or ``"deltapi"``.

    nb_run : ``int`` (optional, default: ``1``)
        Number of runs of every group estimation.

    partition_init : ``list`` (optional, default: ``None``)
        Initial groups of network indices; all the networks in one group if ``None``.

    full_collection_init : :class:`colsbm.collection.ColSBM` (optional, default: ``None``)
        Already fitted collection of all the networks.

    max_iter : ``int`` (optional, default: ``10``)
        Maximal number of split and merge rounds.

    backend : ``str`` or backend object (optional, default: ``None``)
        Used to fit the candidate groups of a round; the estimations inside a group are sequential.

    Returns
    -------
    partition : :class:`Partition`

    """
    get_model_flags(colsbm_model)
    netlist = check_networks_list(netlist, distribution=distribution)
    if directed is None:
        directed = any(not np.array_equal(A, A.T, equal_nan=True) for A in netlist)
    kwargs = {"colsbm_model": colsbm_model, "directed": directed, "distribution": distribution, "nb_run": nb_run}
    return _clusterize(netlist, estimate_colsbm, kwargs, net_id, global_opts, fit_opts, partition_init,
                       full_collection_init, max_iter, backend)


def clusterize_bipartite_networks(netlist, colsbm_model, net_id=None, distribution="bernoulli", nb_run=1,
                                  global_opts=None, fit_opts=None, partition_init=None, full_collection_init=None,
                                  max_iter=10, backend=None):
    """Partition a collection of bipartite networks into groups that are better fitted by separate colBiSBMs.

    See :func:`clusterize_unipartite_networks` for the parameters.
    """
    get_model_flags(colsbm_model, bipartite=True)
    netlist = check_networks_list(netlist, distribution=distribution, bipartite=True)
    kwargs = {"colsbm_model": colsbm_model, "distribution": distribution, "nb_run": nb_run,
              "compare_separated": False}
    return _clusterize(netlist, estimate_colbisbm, kwargs, net_id, global_opts, fit_opts, partition_init,
                       full_collection_init, max_iter, backend)
