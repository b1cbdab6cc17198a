import numpy as np
import pytest

from colsbm import clusterize_unipartite_networks, clusterize_bipartite_networks, Partition
from colsbm.utils import generate_unipartite_collection, generate_bipartite_collection

np.random.seed(3)

global_opts = {"Q_max": 3, "nb_init": 2, "max_pass": 1}
fit_opts = {"max_vem_steps": 30, "tolerance": 1e-4, "greedy_exploration_max_steps": 3,
            "greedy_exploration_max_steps_without_improvement": 1, "kmeans_nstart": 2}

assortative = generate_unipartite_collection(30, [.5, .5], np.array([[.8, .05], [.05, .8]]), 3)
erdos_renyi = generate_unipartite_collection(30, [1.], np.array([[.1]]), 3)
netlist = assortative + erdos_renyi


def test_partition_finds_two_groups():
    partition = clusterize_unipartite_networks(netlist, "iid", global_opts=global_opts, fit_opts=fit_opts,
                                               max_iter=3)
    assert isinstance(partition, Partition)
    assert sorted(partition.groups) == [(0, 1, 2), (3, 4, 5)]
    assert list(partition.labels()) == [0, 0, 0, 1, 1, 1]
    assert partition.BICL == pytest.approx(sum(c.best_fit.BICL for _, c in partition))
    assert partition.summary()["nb_groups"] == 2


def test_partition_merges_similar_groups():
    partition = clusterize_unipartite_networks(assortative, "iid", global_opts=global_opts, fit_opts=fit_opts,
                                               partition_init=[[0, 1], [2]], max_iter=2)
    assert partition.groups == [(0, 1, 2)]


def test_partition_init_is_checked():
    with pytest.raises(ValueError):
        clusterize_unipartite_networks(netlist, "iid", partition_init=[[0, 1, 2], [2, 3, 4, 5]])
    with pytest.raises(ValueError):
        clusterize_unipartite_networks(netlist, "iid", max_iter=0)
    with pytest.raises(ValueError):
        clusterize_bipartite_networks(netlist, "delta")


def test_bipartite_partition_keeps_a_homogeneous_collection():
    bi_netlist = generate_bipartite_collection(20, 15, [.5, .5], [.5, .5], np.array([[.8, .1], [.1, .7]]), 2)
    partition = clusterize_bipartite_networks(bi_netlist, "iid", net_id=["a", "b"],
                                              global_opts={"Q1_max": 2, "Q2_max": 2, "nb_init": 2,
                                                           "max_pass": 1, "verbosity": 0},
                                              fit_opts=fit_opts)
    assert len(partition) == 1
    assert partition.summary()["groups"][0]["networks"] == ["a", "b"]
