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

"""``engines`` - Backends mapping a function over a list of independent tasks
------------------------------------------------------------------------------

Every backend exposes ``map(func, feeds) -> list``, which is synchronous and order-preserving, together with the
``PARALLELIZATION`` and ``NUM_CORES`` attributes.

"""
from engines.sequential import Sequential
from engines.parallel import Loky

BACKENDS = {
    "sequential": Sequential,
    "no_mc": Sequential,
    "loky": Loky,
    "parallel": Loky,
}


def get_backend(backend="sequential", n_cores=1):
    """Build a backend from its name, or pass through an already built one.

    Parameters
    ----------
    backend : ``str`` or backend object (optional, default: ``"sequential"``)
        One of ``"sequential"`` (alias ``"no_mc"``) or ``"loky"`` (alias ``"parallel"``).

    n_cores : ``int`` (optional, default: ``1``)

    Returns
    -------
    backend : :class:`engines.Sequential` or :class:`engines.Loky`

    """
    if hasattr(backend, "map"):
        return backend
    if int(n_cores) < 1:
        raise ValueError("[ERROR] nb_cores must be at least 1.")
    try:
        cls = BACKENDS[str(backend).lower()]
    except KeyError:
        raise ValueError(f"[ERROR] Unknown backend {backend!r}. Must be one of {sorted(BACKENDS)}.")
    if cls is Loky and int(n_cores) == 1:
        return Sequential()
    return cls(n_cores=n_cores)


__all__ = ["Sequential", "Loky", "get_backend", "BACKENDS"]
