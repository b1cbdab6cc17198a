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

from loky import get_reusable_executor


def loky_executor(max_workers, timeout, func, feeds):
    assert type(feeds) is list, "[ERROR] feeds should be a Python list; here it is {}".format(str(type(feeds)))
    loky_executor = get_reusable_executor(max_workers=int(max_workers), timeout=int(timeout))
    results = loky_executor.map(func, feeds)
    return results


class Loky(object):
    """Backend distributing the tasks over a reusable pool of worker processes.

    Parameters
    ----------
    n_cores : ``int`` (required, default: ``2``)
        The number of worker processes.

    timeout : ``int`` (optional, default: ``600``)
        The pool shuts down automatically after idling for ``timeout`` seconds.

    Notes
    -----
    The callables are serialized with ``cloudpickle``, so closures over the networks are allowed. Each task must
    be pure: it only reads its arguments and returns a new object.

    """
    ALGM_NAME = "loky"

    def __init__(self, n_cores=2, timeout=600):
        if int(n_cores) < 1:
            raise ValueError("[ERROR] n_cores must be at least 1.")
        self.PARALLELIZATION = True
        self.NUM_CORES = int(n_cores)
        self.timeout = int(timeout)

    def map(self, func, feeds):
        feeds = list(feeds)
        if len(feeds) == 0:
            return []
        return list(loky_executor(self.NUM_CORES, self.timeout, func, feeds))

    def __repr__(self):
        return f"Loky(n_cores={self.NUM_CORES})"
