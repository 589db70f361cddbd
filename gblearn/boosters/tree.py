##############################################################################
# Copyright (c) 2024, NVIDIA Corporation. All rights reserved.
#
# This work is made available under the Nvidia Source Code License-NC.
# To view a copy of this license, visit
# https://nvlabs.github.io/gbrl/license.html
#
##############################################################################
"""
Regression Tree Module

This module provides RegTree, a multi-root regression tree stored as flat
node arrays, the training parameters of tree boosters and the exact greedy
builder fitting a tree to gradient pairs.
"""
from typing import List, Optional, Sequence, Tuple

import numpy as np

from gblearn.common.utils import numerical_dtype

# minimum loss change for a split to be kept
RT_EPS = 1e-6

NODE_DTYPE = np.dtype([('left', '<i4'), ('right', '<i4'), ('feature', '<i4'),
                       ('threshold', '<f4'), ('default_left', 'u1'),
                       ('value', '<f4'), ('gain', '<f4'), ('cover', '<f4')])


class TrainParam:
    """Training parameters of tree boosters."""
    def __init__(self):
        self.eta = 0.3
        self.max_depth = 6
        self.reg_lambda = 1.0
        self.reg_alpha = 0.0
        self.gamma = 0.0
        self.min_child_weight = 1.0

    def set_param(self, name: str, value: str) -> None:
        if name.startswith('bst:'):
            name = name[len('bst:'):]
        if name in ('eta', 'learning_rate'):
            self.eta = float(value)
        elif name == 'max_depth':
            self.max_depth = int(value)
        elif name in ('lambda', 'reg_lambda'):
            self.reg_lambda = float(value)
        elif name in ('alpha', 'reg_alpha'):
            self.reg_alpha = float(value)
        elif name in ('gamma', 'min_split_loss'):
            self.gamma = float(value)
        elif name == 'min_child_weight':
            self.min_child_weight = float(value)

    def threshold_l1(self, sum_grad: np.ndarray) -> np.ndarray:
        return np.sign(sum_grad) * np.maximum(np.abs(sum_grad) - self.reg_alpha, 0.0)

    def calc_gain(self, sum_grad, sum_hess):
        return self.threshold_l1(sum_grad) ** 2 / (sum_hess + self.reg_lambda)

    def calc_weight(self, sum_grad: float, sum_hess: float) -> float:
        if sum_hess < self.min_child_weight:
            return 0.0
        return float(-self.threshold_l1(sum_grad) / (sum_hess + self.reg_lambda))


class RegTree:
    """
    Regression tree with num_roots independent roots.

    Nodes 0 .. num_roots - 1 are the roots; a leaf has left == -1. Missing
    feature values follow the default direction of their node.
    """
    def __init__(self, num_roots: int = 1):
        self.num_roots = num_roots
        self.nodes = np.zeros(num_roots, dtype=NODE_DTYPE)
        self.nodes['left'] = -1
        self.nodes['right'] = -1

    def add_children(self, nid: int) -> Tuple[int, int]:
        first = len(self.nodes)
        children = np.zeros(2, dtype=NODE_DTYPE)
        children['left'] = -1
        children['right'] = -1
        self.nodes = np.concatenate([self.nodes, children])
        self.nodes['left'][nid] = first
        self.nodes['right'][nid] = first + 1
        return first, first + 1

    def get_leaf_index(self, data: np.ndarray, roots: np.ndarray) -> np.ndarray:
        """Returns the leaf reached by every row."""
        assert np.all(roots < self.num_roots), "root index exceeds the number of roots"
        node = roots.astype(np.int64)
        active = self.nodes['left'][node] != -1
        rows = np.arange(len(data))
        while active.any():
            idx = rows[active]
            cur = node[idx]
            fvalue = data[idx, self.nodes['feature'][cur]]
            missing = np.isnan(fvalue)
            go_left = np.where(missing, self.nodes['default_left'][cur] == 1,
                               fvalue < self.nodes['threshold'][cur])
            node[idx] = np.where(go_left, self.nodes['left'][cur], self.nodes['right'][cur])
            active = self.nodes['left'][node] != -1
        return node

    def predict(self, data: np.ndarray, roots: np.ndarray) -> np.ndarray:
        return self.nodes['value'][self.get_leaf_index(data, roots)]

    def dump(self, fmap: Optional[Sequence[str]] = None,
             with_stats: bool = False) -> str:
        lines: List[str] = []
        for root in range(self.num_roots):
            self._dump_node(root, 0, fmap, with_stats, lines)
        return '\n'.join(lines) + '\n'

    def _dump_node(self, nid: int, depth: int, fmap: Optional[Sequence[str]],
                   with_stats: bool, lines: List[str]) -> None:
        node = self.nodes[nid]
        indent = '\t' * depth
        if node['left'] == -1:
            line = f"{indent}{nid}:leaf={float(node['value']):g}"
            if with_stats:
                line += f",cover={float(node['cover']):g}"
            lines.append(line)
            return
        fid = int(node['feature'])
        fname = fmap[fid] if fmap is not None and fid < len(fmap) else f'f{fid}'
        missing = node['left'] if node['default_left'] else node['right']
        line = (f"{indent}{nid}:[{fname}<{float(node['threshold']):g}] "
                f"yes={node['left']},no={node['right']},missing={missing}")
        if with_stats:
            line += f",gain={float(node['gain']):g},cover={float(node['cover']):g}"
        lines.append(line)
        self._dump_node(int(node['left']), depth + 1, fmap, with_stats, lines)
        self._dump_node(int(node['right']), depth + 1, fmap, with_stats, lines)

    def to_array(self) -> np.ndarray:
        return self.nodes

    @classmethod
    def from_array(cls, nodes: np.ndarray, num_roots: int) -> "RegTree":
        tree = cls.__new__(cls)
        tree.num_roots = num_roots
        tree.nodes = np.ascontiguousarray(nodes, dtype=NODE_DTYPE)
        return tree


class TreeBuilder:
    """Exact greedy builder growing a RegTree depth first."""
    def __init__(self, param: TrainParam):
        self.param = param

    def build(self, data: np.ndarray, grad: np.ndarray, hess: np.ndarray,
              roots: np.ndarray, num_roots: int) -> RegTree:
        """
        Fits a tree to gradient pairs.

        Args:
            data (np.ndarray): feature matrix, NaN marks missing values.
            grad (np.ndarray): first order gradients.
            hess (np.ndarray): second order gradients.
            roots (np.ndarray): root of every row.
            num_roots (int): number of roots of the tree.

        Returns:
            RegTree: the fitted tree, leaf values scaled by eta.
        """
        tree = RegTree(num_roots)
        grad = grad.astype(np.float64)
        hess = hess.astype(np.float64)
        for root in range(num_roots):
            rows = np.flatnonzero(roots == root)
            self._grow(tree, root, rows, 0, data, grad, hess)
        return tree

    def _grow(self, tree: RegTree, nid: int, rows: np.ndarray, depth: int,
              data: np.ndarray, grad: np.ndarray, hess: np.ndarray) -> None:
        sum_grad = grad[rows].sum()
        sum_hess = hess[rows].sum()
        tree.nodes['cover'][nid] = sum_hess
        split = None
        if depth < self.param.max_depth and len(rows) > 1:
            split = self._find_split(data[rows], grad[rows], hess[rows],
                                     sum_grad, sum_hess)
        if split is None:
            weight = self.param.calc_weight(sum_grad, sum_hess)
            tree.nodes['value'][nid] = numerical_dtype.type(self.param.eta * weight)
            return
        loss_chg, fid, threshold, default_left = split
        tree.nodes['feature'][nid] = fid
        tree.nodes['threshold'][nid] = threshold
        tree.nodes['default_left'][nid] = int(default_left)
        tree.nodes['gain'][nid] = loss_chg
        fvalue = data[rows, fid]
        go_left = np.where(np.isnan(fvalue), default_left, fvalue < threshold)
        left, right = tree.add_children(nid)
        self._grow(tree, left, rows[go_left], depth + 1, data, grad, hess)
        self._grow(tree, right, rows[~go_left], depth + 1, data, grad, hess)

    def _find_split(self, data: np.ndarray, grad: np.ndarray, hess: np.ndarray,
                    sum_grad: float, sum_hess: float):
        param = self.param
        root_gain = param.calc_gain(sum_grad, sum_hess)
        best = None
        best_chg = max(param.gamma, RT_EPS)
        for fid in range(data.shape[1]):
            fvalue = data[:, fid]
            present = ~np.isnan(fvalue)
            if present.sum() < 2:
                continue
            order = np.argsort(fvalue[present], kind='stable')
            values = fvalue[present][order]
            cum_grad = np.cumsum(grad[present][order])[:-1]
            cum_hess = np.cumsum(hess[present][order])[:-1]
            distinct = values[:-1] < values[1:]
            if not distinct.any():
                continue
            miss_grad = sum_grad - grad[present].sum()
            miss_hess = sum_hess - hess[present].sum()
            thresholds = (values[:-1] + values[1:]) * 0.5
            for default_left in (False, True):
                left_grad = cum_grad + (miss_grad if default_left else 0.0)
                left_hess = cum_hess + (miss_hess if default_left else 0.0)
                right_grad = sum_grad - left_grad
                right_hess = sum_hess - left_hess
                valid = (distinct & (left_hess >= param.min_child_weight) &
                         (right_hess >= param.min_child_weight))
                if not valid.any():
                    continue
                chg = (param.calc_gain(left_grad, left_hess) +
                       param.calc_gain(right_grad, right_hess) - root_gain)
                chg = np.where(valid, chg, -np.inf)
                pos = int(np.argmax(chg))
                if chg[pos] > best_chg:
                    best_chg = float(chg[pos])
                    threshold = thresholds[pos]
                    if not threshold > values[pos]:
                        # midpoint rounded down onto the left value
                        threshold = values[pos + 1]
                    best = (best_chg, fid, float(threshold), default_left)
        return best
