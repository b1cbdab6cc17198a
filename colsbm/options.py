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

""" Default options and sanity checks at the boundary of the estimation functions. """
import copy

import numpy as np

UNIPARTITE_MODELS = {
    "iid": {"free_density": False, "free_mixture_row": False, "free_mixture_col": False},
    "pi": {"free_density": False, "free_mixture_row": True, "free_mixture_col": True},
    "delta": {"free_density": True, "free_mixture_row": False, "free_mixture_col": False},
    "deltapi": {"free_density": True, "free_mixture_row": True, "free_mixture_col": True},
}

BIPARTITE_MODELS = {
    "iid": {"free_density": False, "free_mixture_row": False, "free_mixture_col": False},
    "pi": {"free_density": False, "free_mixture_row": True, "free_mixture_col": False},
    "rho": {"free_density": False, "free_mixture_row": False, "free_mixture_col": True},
    "pirho": {"free_density": False, "free_mixture_row": True, "free_mixture_col": True},
}

DISTRIBUTIONS = ["bernoulli", "poisson"]


def default_global_opts_unipartite(netlist):
    n = [np.shape(A)[0] for A in netlist]
    return {
        "Q_min": 1,
        "Q_max": int(np.floor(np.log(sum(n))) + 2),
        "nb_init": 10,
        "nb_models": 5,
        "depth": 3,
        "max_pass": 10,
        "verbosity": 0,
        "nb_cores": 1,
        "backend": "sequential",
    }


def default_global_opts_bipartite(netlist):
    return {
        "Q1_min": 1,
        "Q2_min": 1,
        "Q1_max": int(np.floor(np.log(sum(np.shape(A)[0] for A in netlist))) + 2),
        "Q2_max": int(np.floor(np.log(sum(np.shape(A)[1] for A in netlist))) + 2),
        "nb_init": 10,
        "nb_models": 5,
        "depth": 1,
        "max_pass": 10,
        "verbosity": 1,
        "nb_cores": 1,
        "backend": "sequential",
    }


def default_fit_opts():
    return {
        "tolerance": 1e-6,
        "max_vem_steps": 3000,
        "fixed_point_iter": 3,
        "minibatch": True,
        "greedy_exploration_max_steps": 50,
        "greedy_exploration_max_steps_without_improvement": 5,
        "kmeans_nstart": 20,
        "kmeans_iter_max": 100,
        "kmeans_max_retries": 5,
        "penalty_factor": 0.5,
        "verbosity": 0,
    }


def merge_opts(defaults, opts):
    """Overwrite ``defaults`` with the user-provided ``opts``.

    Parameters
    ----------
    defaults : ``dict``

    opts : ``dict`` or ``None``

    Returns
    -------
    merged : ``dict``
        A new dictionary; neither argument is modified.

    """
    merged = copy.deepcopy(defaults)
    if opts is None:
        return merged
    unknown = set(opts) - set(defaults)
    if len(unknown) > 0:
        raise KeyError(f"[ERROR] Unknown option(s) {sorted(unknown)}. Allowed: {sorted(defaults)}.")
    merged.update(opts)
    return merged


# ##########
# Checkpoints
# ##########


def get_model_flags(colsbm_model, bipartite=False):
    """Map a model name to the ``free_density``/``free_mixture_row``/``free_mixture_col`` flags."""
    models = BIPARTITE_MODELS if bipartite else UNIPARTITE_MODELS
    try:
        return dict(models[colsbm_model])
    except (KeyError, TypeError):
        raise ValueError(
            f"[ERROR] colsbm_model {colsbm_model!r} unknown. Must be one of {', '.join(models)}."
        )


def check_distribution(distribution):
    if distribution not in DISTRIBUTIONS:
        raise ValueError("[ERROR] Distribution must be either 'bernoulli' or 'poisson'.")


def check_is_integer_over_thresh(value, thresh=1, name="value"):
    if isinstance(value, (bool, np.bool_)) or int(value) != value or value < thresh:
        raise ValueError(f"[ERROR] {name} must be an integer greater or equal to {thresh}; here it is {value}.")


def check_networks_list(netlist, distribution="bernoulli", bipartite=False, min_length=1):
    """Cast the networks to float arrays and check their dimensions and values.

    Parameters
    ----------
    netlist : ``list`` of :class:`numpy.ndarray` (or a single matrix)

    distribution : ``str``

    bipartite : ``bool``
        If ``False``, the matrices must be square.

    min_length : ``int``

    Returns
    -------
    netlist : ``list`` of :class:`numpy.ndarray`

    """
    check_distribution(distribution)
    if isinstance(netlist, np.ndarray) and netlist.ndim == 2:
        netlist = [netlist]
    netlist = [np.array(A, dtype=float) for A in netlist]
    if len(netlist) < min_length:
        raise ValueError(f"[ERROR] The network list must contain at least {min_length} network(s).")
    for m, A in enumerate(netlist):
        if A.ndim != 2 or A.size == 0:
            raise ValueError(f"[ERROR] Network {m} is not a non-empty matrix.")
        if not bipartite and A.shape[0] != A.shape[1]:
            raise ValueError(f"[ERROR] Network {m} is not a square adjacency matrix; its shape is {A.shape}.")
        values = A[~np.isnan(A)]
        if distribution == "bernoulli" and not np.all(np.isin(values, [0., 1.])):
            raise ValueError(f"[ERROR] Network {m} must be a binary matrix if 'bernoulli' distribution is selected.")
        if distribution == "poisson" and (np.any(values < 0) or np.any(values != np.round(values))):
            raise ValueError(
                f"[ERROR] Network {m} must be a non-negative integer matrix if 'poisson' distribution is selected."
            )
    return netlist


def check_q_bounds(q_min, q_max, name="Q"):
    check_is_integer_over_thresh(q_min, 1, name=f"{name}_min")
    check_is_integer_over_thresh(q_max, 1, name=f"{name}_max")
    if q_min > q_max:
        raise ValueError(f"[ERROR] {name}_min ({q_min}) must not be larger than {name}_max ({q_max}).")
