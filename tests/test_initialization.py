import logging

import numpy as np

import colsbm.initialization
from colsbm.initialization import spectral_clustering, spectral_biclustering, hierarchical_clustering, \
    bipartite_hierarchical_clustering, split_clust, merge_clust, order_labels_by_degree, kmeans_with_retries

np.random.seed(1)

clique = np.ones((10, 10)) - np.eye(10)
two_cliques = np.zeros((20, 20))
two_cliques[:10, :10] = clique
two_cliques[10:, 10:] = clique


def _separates(z):
    return len(set(z[:10])) == 1 and len(set(z[10:20])) == 1 and z[0] != z[10]


def test_spectral_clustering_finds_the_two_cliques():
    z = spectral_clustering(two_cliques, 2, kmeans_nstart=5)
    assert _separates(z)


def test_spectral_clustering_with_isolated_node():
    X = np.zeros((21, 21))
    X[:20, :20] = two_cliques
    z = spectral_clustering(X, 2, kmeans_nstart=5)
    assert len(z) == 21
    assert _separates(z)
    assert z[20] in (0, 1)


def test_spectral_clustering_trivial_cases():
    assert np.all(spectral_clustering(two_cliques, 1) == 0)
    assert np.all(spectral_clustering(np.zeros((5, 5)), 3) == 0)


def test_spectral_clustering_clamps_k():
    path = np.zeros((4, 4))
    for i in range(3):
        path[i, i + 1] = path[i + 1, i] = 1
    z = spectral_clustering(path, 10, kmeans_nstart=2)
    assert len(z) == 4
    assert z.max() < 4


def test_spectral_biclustering():
    A = np.zeros((20, 12))
    A[:10, :6] = 1
    A[10:, 6:] = 1
    zr, zc = spectral_biclustering(A, (2, 2), kmeans_nstart=5)
    assert _separates(zr)
    assert len(set(zc[:6])) == 1 and zc[0] != zc[6]
    zr, zc = spectral_biclustering(A, (1, 1))
    assert np.all(zr == 0) and np.all(zc == 0)


def test_hierarchical_clustering():
    z = hierarchical_clustering(two_cliques, 2)
    assert _separates(z)
    assert np.all(hierarchical_clustering(np.full((5, 5), np.nan), 2) == 0)
    zr, zc = bipartite_hierarchical_clustering(two_cliques[:, :15], (2, 1))
    assert _separates(zr)
    assert np.all(zc == 0)


def test_kmeans_with_retries():
    U = np.vstack([np.zeros((5, 2)), np.ones((5, 2))])
    labels = kmeans_with_retries(U, 2, kmeans_nstart=2)
    assert len(set(labels[:5])) == 1 and labels[0] != labels[5]


def test_split_clust_splits_a_block_holding_two_cliques():
    splits = split_clust(two_cliques, np.zeros(20, dtype=int), 1)
    assert list(splits) == [0]
    z = splits[0]
    assert set(z) == {0, 1}
    assert _separates(z)


def test_split_clust_skips_small_blocks():
    z = np.array([0] * 17 + [1] * 3)
    assert 1 not in split_clust(two_cliques, z, 2)


def test_merge_clust():
    z = np.array([0, 1, 2, 2, 1])
    merges = merge_clust(z, 3)
    assert sorted(merges) == [(0, 1), (0, 2), (1, 2)]
    assert list(merges[(0, 2)]) == [0, 1, 0, 0, 1]
    assert all(m.max() <= 1 for m in merges.values())


def test_order_labels_by_degree():
    X = np.zeros((20, 20))
    X[10:, 10:] = clique
    z = np.array([0] * 10 + [1] * 10)
    assert list(order_labels_by_degree(X, z, 2)) == [1] * 10 + [0] * 10


def test_kmeans_failure_falls_back_to_a_single_cluster(monkeypatch, caplog):
    class FailingKMeans(object):
        def __init__(self, **kwargs):
            pass

        def fit_predict(self, U):
            raise ValueError("degenerate points")

    monkeypatch.setattr(colsbm.initialization, "KMeans", FailingKMeans)
    U = np.vstack([np.zeros((5, 2)), np.ones((5, 2))])
    with caplog.at_level(logging.WARNING, logger="colsbm.initialization"):
        assert kmeans_with_retries(U, 2, kmeans_max_retries=2) is None
    assert any("falling back" in r.getMessage() for r in caplog.records)
    assert np.all(spectral_clustering(two_cliques, 2, kmeans_max_retries=2) == 0)
    assert split_clust(two_cliques, np.zeros(20, dtype=int), 1) == {}
