import logging

import numpy as np
import pytest

from colsbm.collection import ColSBM, ColBiSBM
from colsbm.utils import generate_unipartite_collection, generate_bipartite_collection

np.random.seed(7)

global_opts = {"Q_min": 1, "Q_max": 3, "nb_init": 3, "nb_models": 2, "depth": 1, "max_pass": 2}
fit_opts = {"max_vem_steps": 50, "tolerance": 1e-4, "greedy_exploration_max_steps": 5,
            "greedy_exploration_max_steps_without_improvement": 1, "kmeans_nstart": 2}

alpha = np.array([[.9, .05], [.05, .9]])
sims = generate_unipartite_collection(30, [.5, .5], alpha, 2, return_memberships=True)
netlist = [s["adjacency_matrix"] for s in sims]
Z_true = [s["block_memberships"] for s in sims]

col = ColSBM(netlist, colsbm_model="iid", global_opts=global_opts, fit_opts=fit_opts)
col.optimize()


def test_best_model_is_the_highest_bicl():
    assert col.best_coord == max(col.BICL, key=col.BICL.get)
    assert col.best_fit is col.model_list[col.best_coord]
    assert col.best_fit.BICL == pytest.approx(max(col.BICL.values()))


def test_recovers_the_number_of_blocks():
    assert col.best_coord == (2,)


def test_grid_bookkeeping():
    assert all(len(coord) == 1 and 1 <= coord[0] <= 3 for coord in col.model_list)
    assert set(col.vbound) == set(col.ICL) == set(col.BICL) == set(col.model_list)
    assert set(col.cell_state.values()) <= {"fitted", "superseded"}
    assert all(len(fits) <= 2 for fits in col.discarded_model_list.values())
    assert len(col.trace_q) >= len(col.model_list)


def test_refit_never_lowers_a_cell():
    other = col.clone()
    bicl = other.BICL[(2,)]
    other.compute_and_update((2,))
    assert other.BICL[(2,)] >= bicl
    assert col.BICL[(2,)] == bicl


def test_user_initialization_is_tried():
    other = ColSBM(netlist, colsbm_model="iid", global_opts=global_opts, fit_opts=fit_opts, Z_init={2: Z_true})
    other.compute_and_update((1,))
    other.compute_and_update((2,))
    fits = [other.model_list[(2,)]] + other.discarded_model_list[(2,)]
    assert "user" in [f.init_method for f in fits]


def test_reporting():
    table = col.print_metrics()
    assert "BICL" in table
    summary = col.summary()
    assert summary["best_coord"] == 2
    assert summary["M"] == 2
    assert set(summary["criteria"]) == {c[0] for c in col.model_list}
    assert len(col.memberships) == 2


def test_merge_runs_keeps_the_best_of_each_cell():
    a, b = col.clone(), col.clone()
    b.compute_and_update((3,))
    merged = a.merge_runs([b])
    for coord in merged.model_list:
        assert merged.BICL[coord] == pytest.approx(max(col.BICL.get(coord, -np.inf), b.BICL[coord]))


def test_joint_or_separated():
    sep = col.fit_separated()
    assert len(sep) == 2 and all(s.M == 1 for s in sep)
    preferred = col.clone().choose_joint_or_separated(sep_fits=sep)
    assert isinstance(preferred, bool)
    single = ColSBM(netlist[:1], global_opts=global_opts, fit_opts=fit_opts)
    single.optimize()
    assert single.choose_joint_or_separated()
    assert single.joint_verdict_message == "Joint modelisation preferred"


def test_bad_options():
    with pytest.raises(ValueError):
        ColSBM(netlist, global_opts={"Q_min": 3, "Q_max": 2})
    with pytest.raises(KeyError):
        ColSBM(netlist, global_opts={"Qmax": 2})
    with pytest.raises(KeyError):
        ColSBM(netlist, fit_opts={"max_steps": 2})
    with pytest.raises(KeyError):
        ColSBM(netlist, fit_opts={"algo_ve": "fp"})
    with pytest.raises(ValueError):
        ColSBM(netlist, colsbm_model="rho")
    with pytest.raises(ValueError):
        ColSBM([np.ones((3, 4))])
    with pytest.raises(ValueError):
        ColSBM(netlist, net_id=["a"])


def test_bipartite_grid():
    bi_alpha = np.array([[.8, .1], [.2, .7]])
    bi_netlist = generate_bipartite_collection(40, 30, [.5, .5], [.5, .5], bi_alpha, 2)
    bi_col = ColBiSBM(bi_netlist, colsbm_model="iid",
                      global_opts={"Q1_max": 3, "Q2_max": 3, "nb_init": 3, "max_pass": 2, "verbosity": 0},
                      fit_opts=fit_opts)
    bi_col.optimize()
    assert all(len(coord) == 2 for coord in bi_col.model_list)
    assert (1, 1) in bi_col.model_list
    assert bi_col.best_fit.Q == bi_col.best_coord
    assert bi_col.best_coord == (2, 2)


def test_greedy_exploration_walks_past_a_flat_step():
    five_alpha = np.full((5, 5), .05) + np.eye(5) * .85
    five_netlist = generate_unipartite_collection(75, np.ones(5) / 5, five_alpha, 2)
    five_col = ColSBM(five_netlist, colsbm_model="iid",
                      global_opts={"Q_min": 1, "Q_max": 7, "nb_init": 3, "nb_models": 2, "depth": 1, "max_pass": 1},
                      fit_opts={"max_vem_steps": 50, "tolerance": 1e-4, "greedy_exploration_max_steps": 10,
                                "greedy_exploration_max_steps_without_improvement": 2, "kmeans_nstart": 2})
    five_col.compute_and_update((1,))
    assert five_col.greedy_exploration((1,)) == (5,)
    assert (5,) in five_col.model_list and (6,) in five_col.model_list


def test_moving_window_stops_after_max_pass():
    other = ColSBM(netlist, colsbm_model="iid", global_opts=global_opts, fit_opts=fit_opts)
    other.compute_and_update((1,))
    other.moving_window(center=(1,), depth=1, max_pass=1)
    assert set(other.model_list) == {(1,), (2,)}


def test_moving_window_recenters_on_the_best_cell():
    other = ColSBM(netlist, colsbm_model="iid", global_opts=global_opts, fit_opts=fit_opts)
    other.compute_and_update((1,))
    assert other.moving_window(center=(1,), depth=1, max_pass=5) == (2,)
    # only reachable once the window is centred on (2,)
    assert (3,) in other.model_list


def test_fits_inherit_the_collection_verbosity(caplog):
    loud = ColSBM(netlist, colsbm_model="iid", global_opts=dict(global_opts, verbosity=1),
                  fit_opts={"max_vem_steps": 1, "tolerance": 1e-12, "kmeans_nstart": 2})
    assert loud.fit_opts["verbosity"] == 1
    with caplog.at_level(logging.WARNING, logger="colsbm.vem"):
        loud.compute_and_update((2,))
    assert loud.model_list[(2,)].fit_opts["verbosity"] == 1
    assert any(r.name == "colsbm.vem" and r.levelno == logging.WARNING for r in caplog.records)

    quiet = ColSBM(netlist, colsbm_model="iid", global_opts=dict(global_opts, verbosity=2),
                   fit_opts={"verbosity": 0})
    assert quiet.fit_opts["verbosity"] == 0
    bi_netlist = generate_bipartite_collection(20, 15, [.5, .5], [.5, .5], np.array([[.8, .1], [.2, .7]]), 2)
    assert ColBiSBM(bi_netlist, colsbm_model="iid").fit_opts["verbosity"] == 1
