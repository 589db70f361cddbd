##############################################################################
# Copyright (c) 2024, NVIDIA Corporation. All rights reserved.
#
# This work is made available under the Nvidia Source Code License-NC.
# To view a copy of this license, visit
# https://nvlabs.github.io/gbrl/license.html
#
##############################################################################
from typing import BinaryIO, List, Optional, Sequence

import numpy as np

from gblearn.boosters.base import GradBooster
from gblearn.boosters.tree import RegTree, TrainParam, TreeBuilder
from gblearn.common.config import APPROVED_TREE_PARAMS, NO_BUFFER
from gblearn.common.errors import FormatError
from gblearn.common.utils import numerical_dtype, read_array, write_array
from gblearn.data import DMatrix

# num_roots, num_feature, num_output_group, num_pbuffer, num_trees
MODEL_PARAM_SIZE = 5


class GBTree(GradBooster):
    """
    Gradient boosted regression trees.

    Every output group owns its own sequence of trees. The booster keeps a
    prediction buffer of num_pbuffer rows per group: for each buffered row it
    stores the partial sum of the trees already evaluated and how many trees
    of the group that sum includes, so repeated predictions on a cached
    dataset only evaluate the trees added since the last call.
    """
    name = 'gbtree'

    def __init__(self):
        self.param = TrainParam()
        self.num_roots = 1
        self.num_feature = 0
        self.num_output_group = 1
        self.num_pbuffer = 0
        self.trees: List[RegTree] = []
        self.tree_info: List[int] = []
        self.pred_buffer = np.zeros((1, 0), dtype=numerical_dtype)
        self.pred_counter = np.zeros((1, 0), dtype=np.int64)

    def set_param(self, name: str, value: str) -> None:
        if name in APPROVED_TREE_PARAMS:
            self.param.set_param(name, value)
        if name == 'num_pbuffer':
            num_pbuffer = int(value)
            if num_pbuffer != self.num_pbuffer:
                self.num_pbuffer = num_pbuffer
                self._reset_buffer()
        # model structure is fixed once trees exist
        if len(self.trees) != 0:
            return
        if name == 'num_roots':
            self.num_roots = int(value)
        elif name == 'bst:num_feature':
            self.num_feature = int(value)
        elif name == 'num_class':
            num_output_group = max(int(value), 1)
            if num_output_group != self.num_output_group:
                self.num_output_group = num_output_group
                self._reset_buffer()

    def _reset_buffer(self) -> None:
        shape = (self.num_output_group, self.num_pbuffer)
        self.pred_buffer = np.zeros(shape, dtype=numerical_dtype)
        self.pred_counter = np.zeros(shape, dtype=np.int64)

    def init_model(self) -> None:
        self.trees = []
        self.tree_info = []
        self._reset_buffer()

    def num_boosters(self) -> int:
        return len(self.trees)

    def num_group(self) -> int:
        return self.num_output_group

    def _group_trees(self, bst_group: int) -> List[RegTree]:
        return [tree for tree, group in zip(self.trees, self.tree_info)
                if group == bst_group]

    def _roots(self, root_index: np.ndarray, num_row: int) -> np.ndarray:
        if len(root_index) == 0:
            return np.zeros(num_row, dtype=np.uint32)
        return root_index

    def do_boost(self, grad: np.ndarray, hess: np.ndarray, dmat: DMatrix,
                 root_index: np.ndarray, bst_group: int = 0,
                 buffer_offset: int = NO_BUFFER) -> None:
        assert 0 <= bst_group < self.num_output_group, "invalid booster group"
        assert len(grad) == dmat.num_row and len(hess) == dmat.num_row, \
            "gradient size must match the number of rows"
        self.num_feature = max(self.num_feature, dmat.num_col)
        roots = self._roots(root_index, dmat.num_row)
        builder = TreeBuilder(self.param)
        tree = builder.build(dmat.data, grad, hess, roots, self.num_roots)
        if buffer_offset != NO_BUFFER:
            # fold the new tree into rows whose partial sum is up to date
            index = np.arange(buffer_offset, buffer_offset + dmat.num_row)
            num_trees = len(self._group_trees(bst_group))
            fresh = self.pred_counter[bst_group, index] == num_trees
            if fresh.any():
                rows = np.flatnonzero(fresh)
                self.pred_buffer[bst_group, index[rows]] += tree.predict(dmat.data[rows], roots[rows])
                self.pred_counter[bst_group, index[rows]] += 1
        self.trees.append(tree)
        self.tree_info.append(bst_group)

    def predict(self, dmat: DMatrix, buffer_offset: int,
                root_index: np.ndarray, bst_group: int) -> np.ndarray:
        return self._predict(dmat, buffer_offset, root_index, bst_group, update=True)

    def _predict(self, dmat: DMatrix, buffer_offset: int, root_index: np.ndarray,
                 bst_group: int, update: bool) -> np.ndarray:
        roots = self._roots(root_index, dmat.num_row)
        trees = self._group_trees(bst_group)
        if buffer_offset == NO_BUFFER:
            psum = np.zeros(dmat.num_row, dtype=numerical_dtype)
            for tree in trees:
                psum += tree.predict(dmat.data, roots)
            return psum
        assert buffer_offset + dmat.num_row <= self.num_pbuffer, \
            "buffer offset exceeds the prediction buffer"
        index = np.arange(buffer_offset, buffer_offset + dmat.num_row)
        psum = self.pred_buffer[bst_group, index].copy()
        counter = self.pred_counter[bst_group, index]
        start = int(counter.min()) if len(counter) != 0 else len(trees)
        for k in range(start, len(trees)):
            rows = np.flatnonzero(counter <= k)
            psum[rows] += trees[k].predict(dmat.data[rows], roots[rows])
        if update:
            self.pred_buffer[bst_group, index] = psum
            self.pred_counter[bst_group, index] = len(trees)
        return psum

    def clear_buffer(self, buffer_offset: int, num_row: int) -> None:
        index = slice(buffer_offset, buffer_offset + num_row)
        self.pred_buffer[:, index] = 0.0
        self.pred_counter[:, index] = 0

    def interact_predict(self, dmat: DMatrix, buffer_offset: int,
                         bst_group: int) -> np.ndarray:
        return self._predict(dmat, buffer_offset, np.zeros(0, dtype=np.uint32),
                             bst_group, update=False)

    def interact_re_predict(self, dmat: DMatrix, buffer_offset: int) -> None:
        self.clear_buffer(buffer_offset, dmat.num_row)
        for bst_group in range(self.num_output_group):
            self._predict(dmat, buffer_offset, np.zeros(0, dtype=np.uint32),
                          bst_group, update=True)

    def delete_booster(self) -> None:
        """Removes the last tree, dropping buffered sums that included it."""
        if len(self.trees) == 0:
            return
        self.trees.pop()
        bst_group = self.tree_info.pop()
        num_trees = len(self._group_trees(bst_group))
        stale = self.pred_counter[bst_group] > num_trees
        self.pred_buffer[bst_group, stale] = 0.0
        self.pred_counter[bst_group, stale] = 0

    def save_model(self, fo: BinaryIO) -> None:
        write_array(fo, np.array([self.num_roots, self.num_feature,
                                  self.num_output_group, self.num_pbuffer,
                                  len(self.trees)], dtype='<i8'))
        write_array(fo, np.asarray(self.tree_info, dtype='<i4'))
        for tree in self.trees:
            write_array(fo, tree.to_array())
        if self.num_pbuffer != 0:
            write_array(fo, self.pred_buffer)
            write_array(fo, self.pred_counter)

    def load_model(self, fi: BinaryIO) -> None:
        model_param = read_array(fi, 'gbtree model parameters')
        if model_param.shape != (MODEL_PARAM_SIZE,):
            raise FormatError("wrong model format: bad gbtree model parameters")
        (self.num_roots, self.num_feature, self.num_output_group,
         self.num_pbuffer, num_trees) = (int(v) for v in model_param)
        tree_info = read_array(fi, 'gbtree tree info')
        if len(tree_info) != num_trees:
            raise FormatError("wrong model format: tree info does not match the number of trees")
        self.tree_info = [int(group) for group in tree_info]
        self.trees = [RegTree.from_array(read_array(fi, f'tree {i}'), self.num_roots)
                      for i in range(num_trees)]
        self._reset_buffer()
        if self.num_pbuffer != 0:
            pred_buffer = read_array(fi, 'prediction buffer')
            pred_counter = read_array(fi, 'prediction counter')
            if pred_buffer.shape != self.pred_buffer.shape or \
                    pred_counter.shape != self.pred_counter.shape:
                raise FormatError("wrong model format: bad prediction buffer")
            self.pred_buffer = pred_buffer.astype(numerical_dtype)
            self.pred_counter = pred_counter.astype(np.int64)

    def dump_model(self, fmap: Optional[Sequence[str]] = None,
                   with_stats: bool = False) -> List[str]:
        return [tree.dump(fmap, with_stats) for tree in self.trees]
