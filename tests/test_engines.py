import pytest

import engines


def test_sequential_map_preserves_order():
    backend = engines.Sequential()
    assert backend.map(abs, [-3, 2, -1]) == [3, 2, 1]
    assert not backend.PARALLELIZATION


def test_get_backend():
    assert isinstance(engines.get_backend("sequential"), engines.Sequential)
    assert isinstance(engines.get_backend("no_mc", n_cores=4), engines.Sequential)
    assert isinstance(engines.get_backend("loky", n_cores=1), engines.Sequential)
    assert isinstance(engines.get_backend("parallel", n_cores=2), engines.Loky)
    backend = engines.Sequential()
    assert engines.get_backend(backend) is backend
    with pytest.raises(ValueError):
        engines.get_backend("dask")
    with pytest.raises(ValueError):
        engines.get_backend("loky", n_cores=0)


def test_loky_map():
    backend = engines.Loky(n_cores=2)
    assert backend.map(abs, [-1, -2, 3]) == [1, 2, 3]
    assert backend.map(abs, []) == []
    with pytest.raises(ValueError):
        engines.Loky(n_cores=0)
