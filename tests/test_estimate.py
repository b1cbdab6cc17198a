import numpy as np
import pytest

import colsbm
from colsbm import estimate_colsbm, estimate_colbisbm, adjust_colbisbm, extract_nodes_groups, \
    compute_bicl_partition, ColSBM, ColBiSBM
from colsbm.options import check_networks_list
from colsbm.utils import generate_unipartite_collection, generate_bipartite_collection

np.random.seed(11)

fit_opts = {"max_vem_steps": 50, "tolerance": 1e-4, "greedy_exploration_max_steps": 5,
            "greedy_exploration_max_steps_without_improvement": 1, "kmeans_nstart": 2}

gnp = [generate_unipartite_collection(15, [1.], np.array([[p]]), 1)[0] for p in (.7, .7, .2, .2)]

bi_alpha = np.array([[.8, .2], [.3, .6]])
bi_netlist = generate_bipartite_collection(40, 30, [.5, .5], [.4, .6], bi_alpha, 2)
bi_global_opts = {"Q1_min": 2, "Q1_max": 2, "Q2_min": 2, "Q2_max": 2, "nb_init": 3, "verbosity": 0}
bi_col = estimate_colbisbm(bi_netlist, "iid", nb_run=1, global_opts=bi_global_opts, fit_opts=fit_opts,
                           compare_separated=False)


def test_delta_model_separates_densities():
    col = estimate_colsbm(gnp, "delta", nb_run=2, global_opts={"Q_min": 1, "Q_max": 2, "nb_init": 3, "max_pass": 1},
                          fit_opts=fit_opts)
    assert isinstance(col, ColSBM)
    fit = col.best_fit
    dense = [fit.predict(m).mean() for m in (0, 1)]
    sparse = [fit.predict(m).mean() for m in (2, 3)]
    assert min(dense) > max(sparse) + .3
    assert fit.delta[0] == 1.


def test_bipartite_iid_recovers_alpha():
    assert isinstance(bi_col, ColBiSBM)
    assert bi_col.best_coord == (2, 2)
    # blocks are only identified up to a permutation of the rows and of the columns
    alpha_hat = bi_col.best_fit.alpha
    assert sorted(alpha_hat.ravel()) == pytest.approx(sorted(bi_alpha.ravel()), abs=.15)


def test_argument_checks():
    with pytest.raises(ValueError):
        estimate_colsbm(gnp, "rho")
    with pytest.raises(ValueError):
        estimate_colsbm(gnp, "iid", nb_run=0)
    with pytest.raises(ValueError):
        estimate_colsbm(gnp, "iid", distribution="gaussian")
    with pytest.raises(ValueError):
        estimate_colsbm(gnp, "iid", global_opts={"nb_cores": 0})
    with pytest.raises(ValueError):
        estimate_colsbm([A * 2 for A in gnp], "iid")
    with pytest.raises(ValueError):
        estimate_colbisbm(bi_netlist, "delta")


def test_joint_or_separated_verdict():
    col = estimate_colbisbm(bi_netlist, "iid", nb_run=1, global_opts=bi_global_opts, fit_opts=fit_opts)
    assert isinstance(col.joint_modelisation_preferred, bool)
    assert col.joint_verdict_message in ("Joint modelisation preferred", "Separated modelisation preferred")
    assert len(col.sep_fits) == 2


def test_adjust_colbisbm():
    adjusted = adjust_colbisbm(bi_col, (2, 1), depth=1, nb_pass=1)
    assert adjusted is not bi_col
    assert adjusted.adjusted_fit.Q == (2, 1)
    assert (2, 1) not in bi_col.model_list
    with pytest.raises(TypeError):
        adjust_colbisbm(object(), (2, 2))
    with pytest.raises(ValueError):
        adjust_colbisbm(bi_col, (2, 2, 2))


def test_extract_nodes_groups_matches_tau():
    rows = extract_nodes_groups(bi_col)
    fit = bi_col.best_fit
    assert len(rows) == 2 * (40 + 30)
    row_clusters = [r["cluster"] for r in rows if r["network"] == 1 and r["node_type"] == "row"]
    assert row_clusters == list(np.argmax(fit.tau[1][0], axis=1))
    assert {r["node_type"] for r in rows} == {"row", "col"}
    with pytest.raises(TypeError):
        extract_nodes_groups(42)


def test_compute_bicl_partition():
    fit = bi_col.best_fit
    bicl = fit.BICL
    assert compute_bicl_partition(bi_col) == pytest.approx(bicl)
    assert compute_bicl_partition([fit, fit]) == pytest.approx(2 * bicl)
    assert compute_bicl_partition(fit, penalty_factor=1.) < bicl
    assert fit.BICL == bicl
    with pytest.raises(TypeError):
        compute_bicl_partition("not a fit")
    with pytest.raises(TypeError):
        compute_bicl_partition([fit, bi_col])


def test_fit_init_resumes_a_collection():
    col = estimate_colsbm(gnp[:2], "iid", nb_run=1, global_opts={"Q_max": 2, "nb_init": 2, "max_pass": 1},
                          fit_opts=fit_opts)
    resumed = estimate_colsbm(gnp[:2], "iid", fit_init=col)
    assert resumed is not col
    assert resumed.best_fit.BICL >= col.best_fit.BICL


def test_loky_backend():
    col = estimate_colsbm(gnp[:2], "iid", nb_run=2, global_opts={"Q_max": 2, "nb_init": 2, "max_pass": 1,
                                                                  "nb_cores": 2, "backend": "loky"},
                          fit_opts=fit_opts)
    assert col.backend.ALGM_NAME == "loky"
    assert col.best_fit is not None
    assert colsbm.engines.Loky is type(col.backend)


def test_poisson_networks_must_hold_counts():
    counts = [np.random.poisson(2., size=(15, 15)).astype(float) for _ in range(2)]
    assert len(check_networks_list(counts, "poisson")) == 2
    with pytest.raises(ValueError):
        check_networks_list([np.array([[0., -1.], [1., 0.]])], "poisson")
    with pytest.raises(ValueError):
        check_networks_list([np.array([[0., 2.5], [1., 0.]])], "poisson")
    with pytest.raises(ValueError):
        estimate_colsbm([counts[0], -counts[1]], "iid", distribution="poisson")
    with pytest.raises(ValueError):
        estimate_colbisbm([np.full((4, 3), .5)], "iid", distribution="poisson")
