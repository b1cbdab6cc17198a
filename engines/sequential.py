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

class Sequential(object):
    """Backend running the tasks one after the other in the calling process.

    Parameters
    ----------
    n_cores : ``int`` (optional, default: ``1``)
        Ignored; kept so that every backend is built the same way.

    """
    ALGM_NAME = "sequential"

    def __init__(self, n_cores=1):
        self.PARALLELIZATION = False
        self.NUM_CORES = 1

    def map(self, func, feeds):
        """Apply ``func`` to each item of ``feeds``; returns the results as a ``list``, in order."""
        return [func(feed) for feed in feeds]

    def __repr__(self):
        return "Sequential()"
