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

""" Entry points: estimate a collection of networks, adjust a fitted collection, and extract its results. """
import logging

import numpy as np

import engines
from .collection import ColSBM, ColBiSBM, _optimize_collection
from .options import get_model_flags, check_is_integer_over_thresh, check_distribution
from .vem import SimpleSBMPopFit, BipartiteSBMPopFit

logger = logging.getLogger(__name__)


def _get_backends(global_opts, backend, nb_run):
    """Backend of the ``nb_run`` runs and backend of the initializations inside each run.

    Only the outermost level of fan-out runs in parallel.
    """
    global_opts = global_opts or dict()
    nb_cores = global_opts.get("nb_cores", 1)
    check_is_integer_over_thresh(nb_cores, 1, name="nb_cores")
    if backend is None:
        backend = global_opts.get("backend", "sequential")
    outer = engines.get_backend(backend, n_cores=nb_cores)
    if nb_run > 1:
        return outer, engines.Sequential()
    return engines.Sequential(), outer


def _run_and_merge(collections, outer, verbosity):
    runs = outer.map(_optimize_collection, collections)
    best = max(runs, key=lambda c: c.best_fit.BICL)
    best.merge_runs([c for c in runs if c is not best])
    if verbosity >= 1 and len(runs) > 1:
        best._logger.info(f"After merging the {len(runs)} runs, the criteria are the following:")
        best.print_metrics()
    return best


def estimate_colsbm(netlist, colsbm_model, net_id=None, directed=None, distribution="bernoulli", nb_run=3,
                    global_opts=None, fit_opts=None, Z_init=None, backend=None, fit_init=None,
                    compare_separated=False):
    """Estimate a colSBM on a collection of networks.

    Parameters
    ----------
    netlist : ``list`` of :class:`numpy.ndarray` (required)
        Adjacency matrices.

    colsbm_model : ``str`` (required)
        One of ``"iid"``, ``"pi"``, ``"delta"`` or ``"deltapi"``.

    net_id : ``list`` (optional, default: ``None``)
        Names of the networks.

    directed : ``bool`` (optional, default: ``None``)

    distribution : ``str`` (optional, default: ``"bernoulli"``)

    nb_run : ``int`` (optional, default: ``3``)
        Number of independent explorations. Their models are pooled, keeping the best one of each ``Q``.

    global_opts : ``dict`` (optional, default: ``None``)

    fit_opts : ``dict`` (optional, default: ``None``)

    Z_init : ``dict`` (optional, default: ``None``)
        Map from ``Q`` to a list of label vectors, one per network.

    backend : ``str`` or backend object (optional, default: ``None``)
        Overrides the ``backend`` global option.

    fit_init : :class:`colsbm.collection.ColSBM` (optional, default: ``None``)
        A fitted collection to resume from; it is copied and refined with one more moving window.

    compare_separated : ``bool`` (optional, default: ``False``)
        Also fit every network on its own, and decide between the joint and the separated modelisation.

    Returns
    -------
    collection : :class:`colsbm.collection.ColSBM`

    """
    get_model_flags(colsbm_model)
    check_distribution(distribution)
    check_is_integer_over_thresh(nb_run, 1, name="nb_run")
    if fit_init is not None:
        collection = fit_init.clone()
        collection.moving_window()
        collection.store_criteria_and_best_fit()
        return collection

    outer, inner = _get_backends(global_opts, backend, nb_run)
    collections = [ColSBM(netlist, colsbm_model=colsbm_model, distribution=distribution, directed=directed,
                          net_id=net_id, global_opts=global_opts, fit_opts=fit_opts, Z_init=Z_init, backend=inner)
                   for _ in range(int(nb_run))]
    collection = _run_and_merge(collections, outer, collections[0].global_opts["verbosity"])
    collection.backend = outer
    if compare_separated:
        collection.choose_joint_or_separated()
    return collection


def estimate_colbisbm(netlist, colsbm_model, net_id=None, distribution="bernoulli", nb_run=3, global_opts=None,
                      fit_opts=None, Z_init=None, sep_BiSBM=None, compare_separated=True, backend=None):
    """Estimate a colBiSBM on a collection of bipartite networks.

    Parameters
    ----------
    netlist : ``list`` of :class:`numpy.ndarray` (required)
        Incidence matrices.

    colsbm_model : ``str`` (required)
        One of ``"iid"``, ``"pi"``, ``"rho"`` or ``"pirho"``.

    sep_BiSBM : ``list`` (optional, default: ``None``)
        Already fitted one-network collections, used as the separated baseline.

    compare_separated : ``bool`` (optional, default: ``True``)

    Returns
    -------
    collection : :class:`colsbm.collection.ColBiSBM`

    """
    get_model_flags(colsbm_model, bipartite=True)
    check_distribution(distribution)
    check_is_integer_over_thresh(nb_run, 1, name="nb_run")

    outer, inner = _get_backends(global_opts, backend, nb_run)
    collections = [ColBiSBM(netlist, colsbm_model=colsbm_model, distribution=distribution, net_id=net_id,
                            global_opts=global_opts, fit_opts=fit_opts, Z_init=Z_init, backend=inner)
                   for _ in range(int(nb_run))]
    collection = _run_and_merge(collections, outer, collections[0].global_opts["verbosity"])
    collection.backend = outer
    if compare_separated or sep_BiSBM is not None:
        collection.choose_joint_or_separated(sep_fits=sep_BiSBM)
    return collection


def adjust_colbisbm(collection, Q, depth=1, nb_pass=1):
    """Refine a fitted colBiSBM around ``Q = (Q1, Q2)``.

    Parameters
    ----------
    collection : :class:`colsbm.collection.ColBiSBM` (required)

    Q : ``tuple`` (required)

    depth : ``int`` (optional, default: ``1``)
        Radius of the moving window.

    nb_pass : ``int`` (optional, default: ``1``)

    Returns
    -------
    adjusted : :class:`colsbm.collection.ColBiSBM`
        A copy of ``collection``, whose ``adjusted_fit`` is the model at ``Q``.

    """
    if not isinstance(collection, ColBiSBM):
        raise TypeError(f"[ERROR] collection must be a ColBiSBM object; here it is {type(collection).__name__}.")
    if len(Q) != 2:
        raise ValueError("[ERROR] Q must be a pair (Q1, Q2).")
    check_is_integer_over_thresh(nb_pass, 1, name="nb_pass")
    Q = tuple(int(q) for q in Q)
    adjusted = collection.clone()
    for k, q in zip((1, 2), Q):
        adjusted.global_opts[f"Q{k}_min"] = min(adjusted.global_opts[f"Q{k}_min"], q)
        adjusted.global_opts[f"Q{k}_max"] = max(adjusted.global_opts[f"Q{k}_max"], q)
    for _pass in range(int(nb_pass)):
        adjusted._logger.info(f"Adjustment pass {_pass + 1}/{nb_pass} around {Q}.")
        adjusted.moving_window(Q, depth=depth, max_pass=1)
    if Q not in adjusted.model_list:
        adjusted.compute_and_update(Q)
    adjusted.adjusted_fit = adjusted.model_list[Q]
    return adjusted


def extract_nodes_groups(fit):
    """Block of every node of every network.

    Parameters
    ----------
    fit : a fitted model or a collection
        For a collection, its best fit is used.

    Returns
    -------
    rows : ``list`` of ``dict``
        One row per node, with the keys ``network``, ``node_name``, ``cluster`` and ``node_type``.

    """
    if isinstance(fit, (ColSBM, ColBiSBM)):
        logger.info(f"A {type(fit).__name__} was provided; the groups are extracted from its best fit.")
        fit = fit.best_fit
    if not isinstance(fit, (SimpleSBMPopFit, BipartiteSBMPopFit)):
        raise TypeError(
            "[ERROR] fit must be a SimpleSBMPopFit, BipartiteSBMPopFit, ColSBM or ColBiSBM object; "
            f"here it is {type(fit).__name__}."
        )
    rows = []
    for net_id, mb in zip(fit.net_id, fit.memberships):
        if isinstance(fit, BipartiteSBMPopFit):
            labelled = [("row", mb["row"]), ("col", mb["col"])]
        else:
            labelled = [("node", mb)]
        for node_type, labels in labelled:
            rows += [{"network": net_id, "node_name": i, "cluster": int(c), "node_type": node_type}
                     for i, c in enumerate(labels)]
    return rows


def compute_bicl_partition(obj, penalty_factor=0.5):
    """BICL of a fit, of a collection (its best fit), or the sum over a list of either.

    The stored criteria of the fits are left untouched.
    """
    if isinstance(obj, (ColSBM, ColBiSBM)):
        return obj.best_fit.compute_BICL(penalty_factor=penalty_factor, store=False)
    if isinstance(obj, (SimpleSBMPopFit, BipartiteSBMPopFit)):
        return obj.compute_BICL(penalty_factor=penalty_factor, store=False)
    if isinstance(obj, (list, tuple)) and len(obj) > 0:
        if all(isinstance(o, (ColSBM, ColBiSBM)) for o in obj) or \
                all(isinstance(o, (SimpleSBMPopFit, BipartiteSBMPopFit)) for o in obj):
            return float(np.sum([compute_bicl_partition(o, penalty_factor=penalty_factor) for o in obj]))
    raise TypeError(
        "[ERROR] obj must be a ColSBM, ColBiSBM, SimpleSBMPopFit or BipartiteSBMPopFit object, "
        "or a list of such collections or of such fits."
    )
