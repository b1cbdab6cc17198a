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

""" Read networks from text files, and write block memberships back. """
import numpy as np


def get_edgelist(f_edgelist, delimiter=None):
    """This function returns an edgelist from a file.

    Parameters
    ----------
    f_edgelist : ``str``
        The path to the edgelist file. Each line holds two 0-indexed node ids, optionally followed by a weight.

    delimiter : ``str`` (optional, default: ``None``)
        If ``None``, the delimiters ``' '``, ``'\\t'`` and ``','`` are tried in turn.

    Returns
    -------
    edgelist : :class:`numpy.ndarray`
        Array of shape ``(E, 3)``; the third column is the weight (``1`` when absent).

    """
    edgelist = []
    with open(f_edgelist, "r") as f:
        for line in f:
            line = line.replace('\r', '').replace('\n', '').strip()  # remove all line breaks!
            if line == "" or line.startswith("#"):
                continue
            for _delimiter in ([delimiter] if delimiter is not None else [' ', '\t', ',']):
                edge = [e for e in line.split(_delimiter) if e != ""]
                try:
                    edge = [int(edge[0]), int(edge[1]), float(edge[2]) if len(edge) > 2 else 1.]
                    break
                except (ValueError, IndexError):
                    continue
            else:
                raise ValueError(f"Cannot parse the line {line!r} with the delimiters ' ', '\\t', and ','.")
            edgelist.append(edge)

    return np.array(edgelist, dtype=float).reshape(-1, 3)


def edgelist_to_matrix(edgelist, shape=None, directed=False, bipartite=False):
    """Build an adjacency (or incidence, if ``bipartite``) matrix from an edgelist.

    Parameters
    ----------
    edgelist : :class:`numpy.ndarray`
        Rows of ``(source, target)`` or ``(source, target, weight)``.

    shape : ``tuple`` (optional, default: ``None``)
        Inferred from the largest node ids if ``None``.

    directed : ``bool`` (optional, default: ``False``)
        Ignored when ``bipartite`` is ``True``.

    bipartite : ``bool`` (optional, default: ``False``)
        Sources index the rows and targets index the columns.

    Returns
    -------
    A : :class:`numpy.ndarray`

    """
    edgelist = np.asarray(edgelist, dtype=float)
    if edgelist.size == 0:
        edgelist = edgelist.reshape(0, 3)
    src, tgt = edgelist[:, 0].astype(np.int_), edgelist[:, 1].astype(np.int_)
    w = edgelist[:, 2] if edgelist.shape[1] > 2 else np.ones(len(src))
    if shape is None:
        if bipartite:
            shape = (int(src.max(initial=-1)) + 1, int(tgt.max(initial=-1)) + 1)
        else:
            n = int(max(src.max(initial=-1), tgt.max(initial=-1))) + 1
            shape = (n, n)
    A = np.zeros(shape)
    A[src, tgt] = w
    if not bipartite and not directed:
        A[tgt, src] = w
    return A


def get_matrix(f_matrix, delimiter=None):
    """Read a dense matrix from a text file; the entries ``NA`` and ``nan`` are missing values."""
    return np.genfromtxt(f_matrix, delimiter=delimiter, missing_values=["NA", "nan"], filling_values=np.nan)


def read_network(path, fmt="edgelist", delimiter=None, shape=None, directed=False, bipartite=False):
    """Read a network from ``path``, either as an ``"edgelist"`` or as a dense ``"matrix"``."""
    if fmt == "edgelist":
        return edgelist_to_matrix(get_edgelist(path, delimiter=delimiter), shape=shape, directed=directed,
                                  bipartite=bipartite)
    elif fmt == "matrix":
        return get_matrix(path, delimiter=delimiter)
    raise ValueError(f"[ERROR] Unknown format {fmt!r}. Must be one of 'edgelist' or 'matrix'.")


def save_mb_to_file(path, mb):
    """Save the group membership list to a file path.

    Parameters
    ----------
    path : ``str``, required
        File path for the list to save to.

    mb : ``list[int]``, required
        Group membership list.

    """
    assert type(mb) is list, "[ERROR] the type of the second input parameter should be a list"
    with open(path, "w") as f:
        for _mb in mb:
            f.write(str(int(_mb)) + "\n")


def save_nodes_groups(path, rows, delimiter=","):
    """Save the rows returned by :func:`colsbm.extract_nodes_groups` as a delimited text file with a header."""
    fields = ["network", "node_name", "cluster", "node_type"]
    with open(path, "w") as f:
        f.write(delimiter.join(fields) + "\n")
        for row in rows:
            f.write(delimiter.join(str(row[k]) for k in fields) + "\n")
