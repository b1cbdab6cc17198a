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
Collections of fitted models over a grid of block numbers. :class:`ColSBM` explores ``Q`` for adjacency matrices;
:class:`ColBiSBM` explores ``(Q1, Q2)`` for incidence matrices. Each grid cell keeps the best of several
initializations, and the grid is explored by a greedy walk followed by a moving window around the best cell.
"""
import copy
import logging
from collections import OrderedDict
from itertools import product

import numpy as np

import engines
from .initialization import spectral_clustering, spectral_biclustering, hierarchical_clustering, \
    bipartite_hierarchical_clustering, order_labels_by_degree, split_clust, merge_clust
from .options import default_fit_opts, default_global_opts_unipartite, default_global_opts_bipartite, merge_opts, \
    get_model_flags, check_networks_list, check_q_bounds
from .vem import SimpleSBMPopFit, BipartiteSBMPopFit, _optimize_fit


def _optimize_collection(collection):
    return collection.optimize()


class _ModelCollection(object):
    """Grid of fitted models, indexed by coordinate tuples.

    Subclasses define the grid bounds, how a fit is built from labels, and how labels are proposed.

    """
    bipartite = False

    def __init__(self, netlist, colsbm_model, distribution, net_id, fit_opts, Z_init, backend):
        self.colsbm_model = colsbm_model
        self.flags = get_model_flags(colsbm_model, bipartite=self.bipartite)
        self.distribution = distribution
        self.netlist = check_networks_list(netlist, distribution=distribution, bipartite=self.bipartite)
        self.M = len(self.netlist)
        self.net_id = list(range(self.M)) if net_id is None else list(net_id)
        if len(self.net_id) != self.M:
            raise ValueError(f"[ERROR] net_id has {len(self.net_id)} entries for {self.M} networks.")
        self.fit_opts = merge_opts(default_fit_opts(), fit_opts)
        if fit_opts is None or "verbosity" not in fit_opts:
            self.fit_opts["verbosity"] = self.global_opts["verbosity"]
        self.Z_init = dict()
        for coord, Z in (Z_init or dict()).items():
            self.Z_init[self._as_coord(coord)] = Z
        if backend is None:
            backend = self.global_opts["backend"]
        self.backend = engines.get_backend(backend, n_cores=self.global_opts["nb_cores"])

        self.model_list = OrderedDict()
        self.discarded_model_list = OrderedDict()
        self.vbound = OrderedDict()
        self.ICL = OrderedDict()
        self.BICL = OrderedDict()
        self.cell_state = OrderedDict()
        self.trace_q = []

        self.best_coord = None
        self.best_fit = None
        self.joint_modelisation_preferred = None
        self.joint_verdict_message = None
        self.sep_fits = None
        self.adjusted_fit = None

        # logging
        verbosity = self.global_opts["verbosity"]
        if verbosity >= 2:
            _logging_level = "DEBUG"
        elif verbosity == 1:
            _logging_level = "INFO"
        else:
            _logging_level = "WARNING"
        self._logger = logging.Logger
        self._set_logging_level(_logging_level)
        self._summary = dict()
        self._summary["algm_args"] = {}
        self._summary["algm_args"]["model"] = colsbm_model
        self._summary["algm_args"]["distribution"] = distribution
        self._summary["algm_args"]["backend"] = getattr(self.backend, "ALGM_NAME", type(self.backend).__name__)
        self._summary["M"] = self.M
        self._summary["net_id"] = self.net_id

    # #####################
    # Grid geometry
    # #####################
    def _bounds(self):
        raise NotImplementedError

    def _as_coord(self, coord):
        return tuple(int(q) for q in np.atleast_1d(coord))

    def _in_bounds(self, coord):
        return all(lo <= q <= hi for q, (lo, hi) in zip(coord, self._bounds()))

    def _min_coord(self):
        return tuple(lo for lo, _ in self._bounds())

    @staticmethod
    def _shift(coord, axis, step):
        return tuple(q + step if k == axis else q for k, q in enumerate(coord))

    def _fmt(self, coord):
        return coord[0] if len(coord) == 1 else coord

    def _get_neighbor_points(self, coord, depth=1):
        nb_points = [tuple(q + x for q, x in zip(coord, offset))
                     for offset in product(range(-depth, depth + 1), repeat=len(coord))]
        return [c for c in nb_points if self._in_bounds(c)]

    # #####################
    # Label proposals
    # #####################
    def _new_fit(self, Z, coord, init_method):
        raise NotImplementedError

    def _spectral_init(self, coord):
        raise NotImplementedError

    def _hierarchical_init(self, coord):
        raise NotImplementedError

    def _split_labels(self, fit, axis):
        raise NotImplementedError

    def _merge_labels(self, fit, axis):
        raise NotImplementedError

    def _neighbor_inits(self, coord):
        inits = []
        for axis in range(len(coord)):
            below = self.model_list.get(self._shift(coord, axis, -1))
            if below is not None:
                inits += [(f"split_{axis}_{q}", Z) for q, Z in self._split_labels(below, axis).items()]
            above = self.model_list.get(self._shift(coord, axis, 1))
            if above is not None:
                inits += [(f"merge_{axis}_{a}_{b}", Z) for (a, b), Z in self._merge_labels(above, axis).items()]
        return inits

    def _build_inits(self, coord, neighbors_only=False):
        if all(q == 1 for q in coord):
            return [] if coord in self.model_list else [("trivial", None)]
        inits = [] if neighbors_only else [("spectral", self._spectral_init(coord)),
                                           ("hierarchical", self._hierarchical_init(coord))]
        inits += self._neighbor_inits(coord)
        nb_init = int(self.global_opts["nb_init"])
        if len(inits) > nb_init:
            keep = np.sort(np.random.choice(len(inits), size=nb_init, replace=False))
            inits = [inits[i] for i in keep]
        if coord in self.Z_init and not neighbors_only:
            inits = [("user", self.Z_init[coord])] + inits[:max(nb_init - 1, 0)]
        return inits

    # ##########################
    # Grid cells
    # ##########################
    def compute_and_update(self, coord, neighbors_only=False):
        """Fit the cell at ``coord`` from several initializations and keep the one with the highest BICL.

        Parameters
        ----------
        coord : ``tuple``
            Coordinate of the cell.

        neighbors_only : ``bool`` (optional, default: ``False``)
            If ``True``, only the split and merge proposals of the neighboring cells are used.

        Returns
        -------
        fit : :class:`colsbm.vem.SimpleSBMPopFit` or :class:`colsbm.vem.BipartiteSBMPopFit`
            The model held by the cell afterwards.

        """
        coord = self._as_coord(coord)
        assert self._in_bounds(coord), f"[ERROR] {self._fmt(coord)} is outside of the bounds {self._bounds()}."
        inits = self._build_inits(coord, neighbors_only=neighbors_only)
        if len(inits) == 0:
            return self.model_list.get(coord)

        previous_state = self.cell_state.get(coord)
        self.cell_state[coord] = "fitting"
        fits = [self._new_fit(Z, coord, method) for method, Z in inits]
        fits = self.backend.map(_optimize_fit, fits)
        fits = sorted(fits, key=lambda f: f.BICL, reverse=True)
        best, others = fits[0], fits[1:]

        discarded = self.discarded_model_list.setdefault(coord, [])
        old = self.model_list.get(coord)
        if old is None:
            self.model_list[coord] = best
            self.cell_state[coord] = "fitted"
            discarded += others
        elif best.BICL > old.BICL:
            self._logger.info(f"{self._fmt(coord)}: BICL {old.BICL:.2f} superseded by {best.BICL:.2f} "
                              f"({best.init_method}).")
            self.model_list[coord] = best
            self.cell_state[coord] = "superseded"
            discarded += [old] + others
        else:
            self.cell_state[coord] = previous_state
            discarded += fits
        self.trace_q.append((coord, self.model_list[coord].BICL))
        self._record_criteria(coord)
        self.store_criteria_and_best_fit()
        self._logger.debug(f"{self._fmt(coord)} fitted from {len(fits)} initializations; "
                           f"BICL = {self.BICL[coord]:.2f}.")
        return self.model_list[coord]

    def _record_criteria(self, coord):
        fit = self.model_list[coord]
        self.vbound[coord] = fit.vbound
        self.ICL[coord] = fit.ICL
        self.BICL[coord] = fit.BICL

    def store_criteria_and_best_fit(self):
        """Recompute the criteria tables and point ``best_fit`` to the cell with the highest BICL."""
        for coord in self.model_list:
            self._record_criteria(coord)
        if len(self.BICL) == 0:
            return None
        self.best_coord = max(self.BICL, key=self.BICL.get)
        self.best_fit = self.model_list[self.best_coord]
        self._summary["best_coord"] = self._fmt(self.best_coord)
        self._summary["BICL"] = self.BICL[self.best_coord]
        return self.best_fit

    def truncate_discarded_model_list(self, max_keep=None):
        max_keep = self.global_opts["nb_models"] if max_keep is None else int(max_keep)
        for coord, fits in self.discarded_model_list.items():
            self.discarded_model_list[coord] = sorted(fits, key=lambda f: f.BICL, reverse=True)[:max_keep]

    # ####################
    # Exploration
    # ####################
    def greedy_exploration(self, start=None):
        """Walk on the grid towards the neighbor with the highest BICL.

        Every neighbor at distance one along each axis is fitted, then the walk moves to the best neighbor it has
        not visited yet. It stops when the best coordinate has not changed for
        ``greedy_exploration_max_steps_without_improvement`` steps, or after ``greedy_exploration_max_steps``.

        """
        coord = self._min_coord() if start is None else self._as_coord(start)
        if coord not in self.model_list:
            self.compute_and_update(coord)
        visited = {coord}
        steps_without_improvement = 0
        for _ in range(int(self.fit_opts["greedy_exploration_max_steps"])):
            best_bicl = self.BICL[self.best_coord]
            neighbors = [self._shift(coord, axis, step) for axis in range(len(coord)) for step in (1, -1)]
            neighbors = [c for c in neighbors if self._in_bounds(c)]
            for c in neighbors:
                if c not in self.model_list:
                    self.compute_and_update(c)
            candidates = [c for c in neighbors if c not in visited]
            if len(candidates) == 0:
                break
            coord_ = max(candidates, key=self.BICL.get)
            self._logger.info(f"{self._fmt(coord)} ~~-> {self._fmt(coord_)}; BICL = {self.BICL[coord_]:.2f}.")
            coord = coord_
            visited.add(coord)
            if self.BICL[self.best_coord] > best_bicl:
                steps_without_improvement = 0
            else:
                steps_without_improvement += 1
            if steps_without_improvement >= self.fit_opts["greedy_exploration_max_steps_without_improvement"]:
                break
        return self.best_coord

    def moving_window(self, center=None, depth=None, max_pass=None):
        """Fit, or re-fit from neighboring seeds, every cell within Chebyshev distance ``depth`` of ``center``.

        The window follows the best coordinate. It stops once the best BICL has not improved for
        ``greedy_exploration_max_steps_without_improvement`` passes, or after ``max_pass`` passes.

        Parameters
        ----------
        center : ``tuple`` (optional, default: ``None``)
            Defaults to the current best coordinate.

        depth : ``int`` (optional, default: ``None``)
            Defaults to the ``depth`` global option.

        max_pass : ``int`` (optional, default: ``None``)
            Defaults to the ``max_pass`` global option.

        """
        depth = self.global_opts["depth"] if depth is None else int(depth)
        max_pass = self.global_opts["max_pass"] if max_pass is None else int(max_pass)
        center = self.best_coord if center is None else self._as_coord(center)
        if center is None:
            center = self._min_coord()
        patience = int(self.fit_opts["greedy_exploration_max_steps_without_improvement"])

        best_bicl = self.BICL[self.best_coord] if self.best_coord is not None else -np.inf
        passes_without_improvement = 0
        for _pass in range(max_pass):
            window = self._get_neighbor_points(center, depth)
            # cells closer to the grid origin first
            for coord in sorted(window, key=sum):
                self.compute_and_update(coord, neighbors_only=coord in self.model_list)
            self._logger.info(f"Moving window pass {_pass + 1} around {self._fmt(center)}: best is "
                              f"{self._fmt(self.best_coord)} with BICL = {self.BICL[self.best_coord]:.2f}.")
            if self.BICL[self.best_coord] > best_bicl:
                best_bicl = self.BICL[self.best_coord]
                passes_without_improvement = 0
            else:
                passes_without_improvement += 1
            if self.best_coord != center:
                self._logger.info(f"{self._fmt(center)} ~~-> {self._fmt(self.best_coord)}; recentering the window.")
                center = self.best_coord
            elif passes_without_improvement >= patience:
                break
        return self.best_coord

    def optimize(self):
        """Fit the smallest model, then run the greedy exploration and the moving window."""
        start = self._min_coord()
        self.compute_and_update(start)
        self.greedy_exploration(start)
        self.moving_window(self.best_coord)
        self.truncate_discarded_model_list()
        self.store_criteria_and_best_fit()
        return self

    # ####################
    # Reporting
    # ####################
    def print_metrics(self):
        lines = [f"{'Q':>10} {'vbound':>14} {'ICL':>14} {'BICL':>14}  state"]
        for coord in sorted(self.model_list):
            flag = " *" if coord == self.best_coord else ""
            lines += [f"{str(self._fmt(coord)):>10} {self.vbound[coord]:>14.2f} {self.ICL[coord]:>14.2f} "
                      f"{self.BICL[coord]:>14.2f}  {self.cell_state.get(coord)}{flag}"]
        table = "\n".join(lines)
        self._logger.info(f"Criteria of the {self.colsbm_model}-{type(self).__name__}:\n{table}")
        return table

    def summary(self):
        """Summary of the exploration.

        Returns
        -------
        ColSBM._summary : ``dict``

        """
        self.store_criteria_and_best_fit()
        self._summary["nb_fitted_cells"] = len(self.model_list)
        self._summary["criteria"] = {self._fmt(c): {"vbound": self.vbound[c], "ICL": self.ICL[c], "BICL": self.BICL[c]}
                                     for c in self.model_list}
        if self.joint_modelisation_preferred is not None:
            self._summary["joint_modelisation_preferred"] = self.joint_modelisation_preferred
        return self._summary

    @property
    def memberships(self):
        return None if self.best_fit is None else self.best_fit.memberships

    # ####################
    # Runs and baselines
    # ####################
    def _sub_collection(self, idx):
        """A fresh collection over the networks ``idx`` with the same options, on the sequential backend."""
        raise NotImplementedError

    def fit_separated(self):
        """Fit each network on its own, with the same options."""
        subs = [self._sub_collection([m]) for m in range(self.M)]
        return self.backend.map(_optimize_collection, subs)

    def choose_joint_or_separated(self, sep_fits=None):
        """Compare the joint model with the sum of the BICLs of the networks fitted separately.

        Parameters
        ----------
        sep_fits : ``list`` (optional, default: ``None``)
            Collections of one network each; fitted with :func:`fit_separated` if not given.

        Returns
        -------
        joint_modelisation_preferred : ``bool``

        """
        if self.best_fit is None:
            self.optimize()
        if sep_fits is None:
            sep_fits = [self] if self.M == 1 else self.fit_separated()
        self.sep_fits = sep_fits
        sep_bicl = float(np.sum([f.best_fit.BICL for f in sep_fits]))
        joint_bicl = self.best_fit.BICL
        self.joint_modelisation_preferred = bool(joint_bicl >= sep_bicl)
        if self.joint_modelisation_preferred:
            self.joint_verdict_message = "Joint modelisation preferred"
        else:
            self.joint_verdict_message = "Separated modelisation preferred"
        self._summary["sep_BICL"] = sep_bicl
        self._logger.info(f"{self.joint_verdict_message}. BICL: {joint_bicl:.2f} vs {sep_bicl:.2f}.")
        return self.joint_modelisation_preferred

    def merge_runs(self, others):
        """Keep the best model of each cell across independent runs of the same collection."""
        for other in others:
            for coord, fit in other.model_list.items():
                discarded = self.discarded_model_list.setdefault(coord, [])
                discarded += other.discarded_model_list.get(coord, [])
                mine = self.model_list.get(coord)
                if mine is None or fit.BICL > mine.BICL:
                    if mine is not None:
                        discarded.append(mine)
                    self.model_list[coord] = fit
                    self.cell_state[coord] = other.cell_state.get(coord, "fitted")
                else:
                    discarded.append(fit)
            self.trace_q += other.trace_q
        self.model_list = OrderedDict(sorted(self.model_list.items()))
        self.truncate_discarded_model_list()
        self.store_criteria_and_best_fit()
        return self

    def clone(self):
        return copy.deepcopy(self)

    def _set_logging_level(self, level):
        _level = 0
        if level.upper() == "DEBUG":
            _level = logging.DEBUG
        elif level.upper() == "INFO":
            _level = logging.INFO
        elif level.upper() == "WARNING":
            _level = logging.WARNING
        logging.basicConfig(
            level=_level,
            format="%(asctime)s:%(levelname)s:%(message)s"
        )
        self._logger = logging.getLogger(__name__)
        self._logger.setLevel(_level)

    def __repr__(self):
        best = None if self.best_coord is None else self._fmt(self.best_coord)
        return f"{type(self).__name__}(model={self.colsbm_model!r}, M={self.M}, best={best})"


class ColSBM(_ModelCollection):
    """Joint stochastic block models of a collection of networks, for ``Q`` in ``[Q_min, Q_max]``.

    Parameters
    ----------
    netlist : ``list`` of :class:`numpy.ndarray` (required)
        Adjacency matrices.

    colsbm_model : ``str`` (optional, default: ``"iid"``)
        One of ``"iid"``, ``"pi"``, ``"delta"`` or ``"deltapi"``.

    distribution : ``str`` (optional, default: ``"bernoulli"``)

    directed : ``bool`` (optional, default: ``None``)
        If ``None``, the collection is directed as soon as one network is not symmetric.

    net_id : ``list`` (optional, default: ``None``)

    global_opts : ``dict`` (optional, default: ``None``)
        See :func:`colsbm.options.default_global_opts_unipartite`.

    fit_opts : ``dict`` (optional, default: ``None``)
        See :func:`colsbm.options.default_fit_opts`.

    Z_init : ``dict`` (optional, default: ``None``)
        Map from ``Q`` to a list of label vectors, one per network, tried as an extra initialization.

    backend : ``str`` or backend object (optional, default: ``None``)
        Used to fit the initializations of a cell; defaults to the ``backend`` global option.

    """

    def __init__(self, netlist, colsbm_model="iid", distribution="bernoulli", directed=None, net_id=None,
                 global_opts=None, fit_opts=None, Z_init=None, backend=None):
        netlist = check_networks_list(netlist, distribution=distribution)
        self.global_opts = merge_opts(default_global_opts_unipartite(netlist), global_opts)
        check_q_bounds(self.global_opts["Q_min"], self.global_opts["Q_max"], name="Q")
        if directed is None:
            directed = any(not np.array_equal(A, A.T, equal_nan=True) for A in netlist)
        self.directed = bool(directed)
        super().__init__(netlist, colsbm_model, distribution, net_id, fit_opts, Z_init, backend)
        self._summary["directed"] = self.directed

    def _bounds(self):
        return [(self.global_opts["Q_min"], self.global_opts["Q_max"])]

    def _new_fit(self, Z, coord, init_method):
        return SimpleSBMPopFit(self.netlist, coord[0], Z_init=Z, directed=self.directed,
                               distribution=self.distribution, free_density=self.flags["free_density"],
                               free_mixture=self.flags["free_mixture_row"], fit_opts=self.fit_opts,
                               net_id=self.net_id, init_method=init_method)

    def _spectral_init(self, coord):
        Q = coord[0]
        kw = {k: self.fit_opts[k] for k in ("kmeans_nstart", "kmeans_iter_max", "kmeans_max_retries")}
        return [order_labels_by_degree(X, spectral_clustering(X, Q, **kw), Q) for X in self.netlist]

    def _hierarchical_init(self, coord):
        Q = coord[0]
        Z = []
        for X in self.netlist:
            features = X if not self.directed else np.hstack([X, X.T])
            Z += [order_labels_by_degree(X, hierarchical_clustering(features, Q), Q)]
        return Z

    def _split_labels(self, fit, axis):
        Q = fit.Q[0]
        Z = fit.Z
        splits = [split_clust(X, z, Q, kmeans_max_retries=self.fit_opts["kmeans_max_retries"])
                  for X, z in zip(self.netlist, Z)]
        return {q: [s.get(q, z) for s, z in zip(splits, Z)] for q in range(Q) if any(q in s for s in splits)}

    def _merge_labels(self, fit, axis):
        Q = fit.Q[0]
        merges = [merge_clust(z, Q) for z in fit.Z]
        return {pair: [mg[pair] for mg in merges] for pair in merges[0]}

    def _sub_collection(self, idx):
        global_opts = dict(self.global_opts, backend="sequential", nb_cores=1)
        return ColSBM([self.netlist[m] for m in idx], colsbm_model=self.colsbm_model,
                      distribution=self.distribution, directed=self.directed, net_id=[self.net_id[m] for m in idx],
                      global_opts=global_opts, fit_opts=self.fit_opts, backend=engines.Sequential())


class ColBiSBM(_ModelCollection):
    """Joint latent block models of a collection of bipartite networks, over the ``(Q1, Q2)`` grid.

    Parameters
    ----------
    netlist : ``list`` of :class:`numpy.ndarray` (required)
        Incidence matrices.

    colsbm_model : ``str`` (optional, default: ``"iid"``)
        One of ``"iid"``, ``"pi"``, ``"rho"`` or ``"pirho"``.

    global_opts : ``dict`` (optional, default: ``None``)
        See :func:`colsbm.options.default_global_opts_bipartite`.

    Z_init : ``dict`` (optional, default: ``None``)
        Map from ``(Q1, Q2)`` to a list of ``(row_labels, col_labels)`` pairs, one per network.

    """
    bipartite = True

    def __init__(self, netlist, colsbm_model="iid", distribution="bernoulli", net_id=None, global_opts=None,
                 fit_opts=None, Z_init=None, backend=None):
        netlist = check_networks_list(netlist, distribution=distribution, bipartite=True)
        self.global_opts = merge_opts(default_global_opts_bipartite(netlist), global_opts)
        check_q_bounds(self.global_opts["Q1_min"], self.global_opts["Q1_max"], name="Q1")
        check_q_bounds(self.global_opts["Q2_min"], self.global_opts["Q2_max"], name="Q2")
        super().__init__(netlist, colsbm_model, distribution, net_id, fit_opts, Z_init, backend)

    def _bounds(self):
        return [(self.global_opts["Q1_min"], self.global_opts["Q1_max"]),
                (self.global_opts["Q2_min"], self.global_opts["Q2_max"])]

    def _new_fit(self, Z, coord, init_method):
        return BipartiteSBMPopFit(self.netlist, coord, Z_init=Z, distribution=self.distribution,
                                  free_mixture_row=self.flags["free_mixture_row"],
                                  free_mixture_col=self.flags["free_mixture_col"],
                                  free_density=self.flags["free_density"], fit_opts=self.fit_opts,
                                  net_id=self.net_id, init_method=init_method)

    def _spectral_init(self, coord):
        kw = {k: self.fit_opts[k] for k in ("kmeans_nstart", "kmeans_iter_max", "kmeans_max_retries")}
        Z = []
        for X in self.netlist:
            zr, zc = spectral_biclustering(X, coord, **kw)
            Z += [(order_labels_by_degree(X, zr, coord[0], axis=0), order_labels_by_degree(X, zc, coord[1], axis=1))]
        return Z

    def _hierarchical_init(self, coord):
        Z = []
        for X in self.netlist:
            zr, zc = bipartite_hierarchical_clustering(X, coord)
            Z += [(order_labels_by_degree(X, zr, coord[0], axis=0), order_labels_by_degree(X, zc, coord[1], axis=1))]
        return Z

    def _split_labels(self, fit, axis):
        Q = fit.Q[axis]
        Z = [(mb["row"], mb["col"]) for mb in fit.memberships]
        splits = [split_clust(X if axis == 0 else X.T, z[axis], Q, is_bipartite=True,
                              kmeans_max_retries=self.fit_opts["kmeans_max_retries"])
                  for X, z in zip(self.netlist, Z)]
        proposals = dict()
        for q in range(Q):
            if not any(q in s for s in splits):
                continue
            proposals[q] = [(s.get(q, z[0]), z[1]) if axis == 0 else (z[0], s.get(q, z[1]))
                            for s, z in zip(splits, Z)]
        return proposals

    def _merge_labels(self, fit, axis):
        Q = fit.Q[axis]
        Z = [(mb["row"], mb["col"]) for mb in fit.memberships]
        merges = [merge_clust(z[axis], Q) for z in Z]
        return {pair: [(mg[pair], z[1]) if axis == 0 else (z[0], mg[pair]) for mg, z in zip(merges, Z)]
                for pair in merges[0]}

    def _sub_collection(self, idx):
        global_opts = dict(self.global_opts, backend="sequential", nb_cores=1)
        return ColBiSBM([self.netlist[m] for m in idx], colsbm_model=self.colsbm_model,
                        distribution=self.distribution, net_id=[self.net_id[m] for m in idx],
                        global_opts=global_opts, fit_opts=self.fit_opts, backend=engines.Sequential())
