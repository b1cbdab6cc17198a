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

"""``colsbm`` - Stochastic block models for collections of networks
-------------------------------------------------------------------

This module fits a stochastic block model jointly on a collection of networks, selects the number of blocks by
maximizing the BICL criterion, and can partition the collection into groups of networks with a common structure.
Unipartite networks (adjacency matrices) are handled by :class:`ColSBM`, bipartite networks (incidence matrices) by
:class:`ColBiSBM`.

"""
from colsbm.vem import SimpleSBMPopFit, BipartiteSBMPopFit
from colsbm.collection import ColSBM, ColBiSBM
from colsbm.estimate import estimate_colsbm, estimate_colbisbm, adjust_colbisbm, extract_nodes_groups, \
    compute_bicl_partition
from colsbm.partition import Partition, clusterize_unipartite_networks, clusterize_bipartite_networks
from colsbm.utils import generate_unipartite_network, generate_unipartite_collection, generate_bipartite_network, \
    generate_bipartite_collection
from colsbm.ioutils import *
import engines

__package__ = 'colsbm'
__title__ = 'colsbm: a python package for fitting stochastic block models on collections of networks'
__description__ = ''
__copyright__ = 'Copyright 2024 The colsbm developers'
__author__ = """\n""".join([
    'The colsbm developers',
])
__URL__ = ""
__version__ = '0.1.0'
__release__ = '0.1.0'

__all__ = ["SimpleSBMPopFit", "BipartiteSBMPopFit", "ColSBM", "ColBiSBM", "estimate_colsbm", "estimate_colbisbm",
           "adjust_colbisbm", "extract_nodes_groups", "compute_bicl_partition", "Partition",
           "clusterize_unipartite_networks", "clusterize_bipartite_networks", "generate_unipartite_network",
           "generate_unipartite_collection", "generate_bipartite_network", "generate_bipartite_collection",
           "engines", "__author__", "__URL__", "__version__", "__copyright__"]
