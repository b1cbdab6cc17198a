import numpy as np
import pytest

from colsbm.utils import generate_unipartite_collection, generate_bipartite_collection
from colsbm.vem import SimpleSBMPopFit, BipartiteSBMPopFit

np.random.seed(2024)

fit_opts = {"max_vem_steps": 100, "tolerance": 1e-6}

alpha = np.array([[.8, .1], [.1, .6]])
sims = generate_unipartite_collection(40, [.5, .5], alpha, 2, return_memberships=True)
netlist = [s["adjacency_matrix"] for s in sims]
Z_true = [s["block_memberships"] for s in sims]

fit = SimpleSBMPopFit(netlist, 2, Z_init=Z_true, fit_opts=fit_opts)
fit.optimize()

bi_alpha = np.array([[.8, .2], [.3, .6]])
bi_sims = generate_bipartite_collection(60, 40, [.5, .5], [.4, .6], bi_alpha, 2, return_memberships=True)
bi_netlist = [s["incidence_matrix"] for s in bi_sims]
bi_Z_true = [(s["row_blockmemberships"], s["col_blockmemberships"]) for s in bi_sims]

bi_fit = BipartiteSBMPopFit(bi_netlist, (2, 2), Z_init=bi_Z_true, fit_opts=fit_opts)
bi_fit.optimize()


def test_simplices():
    for tau in fit.tau:
        assert tau.sum(axis=1) == pytest.approx(np.ones(40), abs=1e-6)
    assert fit.pi.sum(axis=1) == pytest.approx([1., 1.])
    for tau_row, tau_col in bi_fit.tau:
        assert tau_row.sum(axis=1) == pytest.approx(np.ones(60), abs=1e-6)
        assert tau_col.sum(axis=1) == pytest.approx(np.ones(40), abs=1e-6)
    assert bi_fit.rho.sum(axis=1) == pytest.approx([1., 1.])
    assert np.all(bi_fit.rho >= 0)


def test_recovers_connectivity():
    assert fit.alpha == pytest.approx(alpha, abs=.1)
    assert bi_fit.alpha == pytest.approx(bi_alpha, abs=.15)
    assert not fit.directed


def test_criteria_are_consistent():
    assert fit.vbound == pytest.approx(fit.loglik + fit.entropy)
    assert fit.BICL == pytest.approx(fit.vbound - fit.penalty)
    assert fit.ICL == pytest.approx(fit.loglik + fit.entropy)
    assert fit.BICL == pytest.approx(fit.ICL - fit.penalty)
    assert fit.entropy >= 0
    assert fit.vbound_trace[-1] == pytest.approx(fit.vbound)


def test_zero_step_refit_leaves_parameters_unchanged():
    alpha_, pi_, tau_ = fit.alpha.copy(), fit.pi.copy(), [t.copy() for t in fit.tau]
    fit.optimize(max_steps=0)
    assert np.array_equal(fit.alpha, alpha_)
    assert np.array_equal(fit.pi, pi_)
    assert all(np.array_equal(t, t_) for t, t_ in zip(fit.tau, tau_))


def test_penalty_grows_with_free_parameters():
    fit_iid = SimpleSBMPopFit(netlist, 2, Z_init=Z_true, fit_opts=fit_opts)
    fit_pi = SimpleSBMPopFit(netlist, 2, Z_init=Z_true, free_mixture=True, fit_opts=fit_opts)
    fit_deltapi = SimpleSBMPopFit(netlist, 2, Z_init=Z_true, free_mixture=True, free_density=True,
                                  fit_opts=fit_opts)
    assert fit_iid.compute_penalty() < fit_pi.compute_penalty() < fit_deltapi.compute_penalty()
    assert fit.count_free_params() == (3, 1, 0)
    assert fit.compute_BICL(penalty_factor=1., store=False) < fit.compute_BICL(penalty_factor=.5, store=False)


def test_compute_bicl_without_storing():
    bicl = fit.BICL
    fit.compute_BICL(penalty_factor=2., store=False)
    assert fit.BICL == bicl


def test_single_block_short_circuit():
    fit_1 = SimpleSBMPopFit(netlist, 1, fit_opts=fit_opts)
    fit_1.optimize()
    assert all(np.all(tau == 1.) for tau in fit_1.tau)
    density = np.sum([A.sum() for A in netlist]) / (2 * 40 * 39)
    assert fit_1.alpha[0, 0] == pytest.approx(density)
    assert np.isfinite(fit_1.BICL)

    bi_fit_1 = BipartiteSBMPopFit(bi_netlist, (1, 1), fit_opts=fit_opts)
    bi_fit_1.optimize()
    assert bi_fit_1.alpha.shape == (1, 1)
    assert bi_fit_1.memberships[0]["row"].max() == 0


def test_free_density_separates_densities():
    nets = [generate_unipartite_collection(30, [1.], np.array([[p]]), 1)[0] for p in (.7, .7, .2, .2)]
    fit_delta = SimpleSBMPopFit(nets, 1, free_density=True, fit_opts=fit_opts)
    fit_delta.optimize()
    assert fit_delta.delta[0] == 1.
    assert fit_delta.alpha_m(0)[0, 0] == pytest.approx(.7, abs=.06)
    assert fit_delta.alpha_m(3)[0, 0] == pytest.approx(.2, abs=.06)
    assert fit_delta.delta[2] < .5


def test_missing_values_and_predict():
    A = netlist[0].copy()
    A[0, 1] = A[1, 0] = np.nan
    fit_na = SimpleSBMPopFit([A], 2, Z_init=[Z_true[0]], fit_opts=fit_opts)
    fit_na.optimize()
    assert np.all(np.isfinite(fit_na.alpha))
    assert fit_na.predict(0).shape == (40, 40)
    assert bi_fit.predict(1).shape == (60, 40)


def test_directed_and_poisson():
    A = (np.random.rand(30, 30) < .3).astype(float)
    np.fill_diagonal(A, 0)
    z = np.random.randint(2, size=30)
    fit_dir = SimpleSBMPopFit([A], 2, Z_init=[z], fit_opts=fit_opts)
    assert fit_dir.directed
    assert fit_dir.count_free_params()[0] == 4

    W = np.random.poisson(2., size=(25, 20)).astype(float)
    fit_pois = BipartiteSBMPopFit([W], (2, 1), Z_init=[(np.random.randint(2, size=25), np.zeros(20, dtype=int))],
                                  distribution="poisson", fit_opts=fit_opts)
    fit_pois.optimize()
    assert np.isfinite(fit_pois.BICL)
    assert np.all(fit_pois.alpha > 0)


def test_step_cap_marks_unconverged():
    z = [np.random.randint(2, size=40) for _ in netlist]
    capped = SimpleSBMPopFit(netlist, 2, Z_init=z, fit_opts={"max_vem_steps": 1, "tolerance": 1e-12})
    capped.optimize()
    assert not capped.converged
    assert capped.nb_steps == 1
    assert fit.converged


def test_memberships_match_tau():
    for z, tau in zip(fit.memberships, fit.tau):
        assert np.array_equal(z, np.argmax(tau, axis=1))
    assert len(bi_fit.memberships) == 2
