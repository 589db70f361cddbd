##############################################################################
# Copyright (c) 2024, NVIDIA Corporation. All rights reserved.
#
# This work is made available under the Nvidia Source Code License-NC.
# To view a copy of this license, visit
# https://nvlabs.github.io/gbrl/license.html
#
##############################################################################
"""
Dataset Module

This module provides DMatrix, the in-memory dataset consumed by learners,
and MetaInfo, the per-row labels, weights, groups and root indices.
"""
from typing import Optional, Sequence

import numpy as np

from gblearn.common.utils import NumericalData, numerical_dtype, to_matrix, to_numpy


class MetaInfo:
    """
    Per-row meta information of a dataset.

    Attributes:
        labels (np.ndarray): label of each row.
        weights (np.ndarray): instance weights, empty when unweighted.
        group_ptr (np.ndarray): ranking group boundaries, empty when unused.
        root_index (np.ndarray): tree root each row starts from, empty when
        every row starts from root 0.
    """
    def __init__(self):
        self.labels = np.zeros(0, dtype=numerical_dtype)
        self.weights = np.zeros(0, dtype=numerical_dtype)
        self.group_ptr = np.zeros(0, dtype=np.uint32)
        self.root_index = np.zeros(0, dtype=np.uint32)

    def get_weight(self, num_row: int) -> np.ndarray:
        if len(self.weights) == 0:
            return np.ones(num_row, dtype=numerical_dtype)
        return self.weights


class DMatrix:
    """
    Dense dataset holding a float32 feature matrix and its meta information.

    Datasets are identified by reference: two DMatrix objects holding equal
    values are still distinct datasets for the prediction cache.
    """
    def __init__(self, data: NumericalData,
                 label: Optional[NumericalData] = None,
                 weight: Optional[NumericalData] = None,
                 group: Optional[Sequence[int]] = None,
                 root_index: Optional[Sequence[int]] = None,
                 missing: float = np.nan):
        """
        Initializes the DMatrix.

        Args:
            data (NumericalData): feature matrix (numpy array or torch
            tensor), a 1D input is treated as a single feature column.
            label (Optional[NumericalData], optional): labels. Defaults to None.
            weight (Optional[NumericalData], optional): instance weights.
            Defaults to None.
            group (Optional[Sequence[int]], optional): ranking group sizes.
            Defaults to None.
            root_index (Optional[Sequence[int]], optional): per-row tree root.
            Defaults to None.
            missing (float, optional): value treated as missing, replaced by
            NaN. Defaults to np.nan.
        """
        self.data = self._mark_missing(to_matrix(data), missing)
        self.missing = missing
        self.info = MetaInfo()
        if label is not None:
            self.set_label(label)
        if weight is not None:
            self.set_weight(weight)
        if group is not None:
            self.set_group(group)
        if root_index is not None:
            self.set_root_index(root_index)

    @staticmethod
    def _mark_missing(data: np.ndarray, missing: float) -> np.ndarray:
        if not np.isnan(missing):
            data = np.where(data == missing, np.nan, data).astype(numerical_dtype)
        return data

    @property
    def num_row(self) -> int:
        return self.data.shape[0]

    @property
    def num_col(self) -> int:
        return self.data.shape[1]

    def __len__(self) -> int:
        return self.num_row

    def set_label(self, label: NumericalData) -> None:
        label = to_numpy(label).ravel()
        assert len(label) == self.num_row, "label size must match the number of rows"
        self.info.labels = label

    def set_weight(self, weight: NumericalData) -> None:
        weight = to_numpy(weight).ravel()
        assert len(weight) == self.num_row, "weight size must match the number of rows"
        assert np.all(weight >= 0), "weights contains negative values"
        self.info.weights = weight

    def set_group(self, group: Sequence[int]) -> None:
        sizes = np.asarray(group, dtype=np.uint32)
        assert sizes.sum() == self.num_row, "group sizes must sum to the number of rows"
        self.info.group_ptr = np.concatenate([[0], np.cumsum(sizes)]).astype(np.uint32)

    def set_root_index(self, root_index: Sequence[int]) -> None:
        root_index = np.asarray(root_index, dtype=np.uint32).ravel()
        assert len(root_index) == self.num_row, "root index size must match the number of rows"
        self.info.root_index = root_index

    def get_label(self) -> np.ndarray:
        return self.info.labels

    def get_weight(self) -> np.ndarray:
        return self.info.weights

    def add_rows(self, data: NumericalData,
                 label: Optional[NumericalData] = None) -> None:
        """Appends rows in place.

        The dataset keeps its identity while its row count changes, so any
        prediction cache entry recorded for it stops matching.

        Args:
            data (NumericalData): rows to append, same number of columns.
            label (Optional[NumericalData], optional): labels of the new rows,
            required when the dataset is labeled. Defaults to None.
        """
        rows = self._mark_missing(to_matrix(data), self.missing)
        assert rows.shape[1] == self.num_col, "appended rows must have the same number of columns"
        if len(self.info.labels) != 0:
            assert label is not None, "labeled dataset requires labels for appended rows"
            self.info.labels = np.concatenate([self.info.labels, to_numpy(label).ravel()])
        if len(self.info.weights) != 0:
            self.info.weights = np.concatenate([self.info.weights,
                                                np.ones(len(rows), dtype=numerical_dtype)])
        if len(self.info.root_index) != 0:
            self.info.root_index = np.concatenate([self.info.root_index,
                                                   np.zeros(len(rows), dtype=np.uint32)])
        self.data = np.ascontiguousarray(np.vstack([self.data, rows]))

    def slice(self, rows: Sequence[int]) -> "DMatrix":
        """Returns a new dataset made of the selected rows."""
        rows = np.asarray(rows, dtype=np.int64)
        out = DMatrix(self.data[rows], missing=self.missing)
        if len(self.info.labels) != 0:
            out.info.labels = self.info.labels[rows]
        if len(self.info.weights) != 0:
            out.info.weights = self.info.weights[rows]
        if len(self.info.root_index) != 0:
            out.info.root_index = self.info.root_index[rows]
        return out
