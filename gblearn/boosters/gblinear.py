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
from gblearn.common.config import NO_BUFFER
from gblearn.common.errors import FormatError
from gblearn.common.utils import numerical_dtype, read_array, write_array
from gblearn.data import DMatrix


class GBLinear(GradBooster):
    """
    Linear booster updated by one pass of coordinate descent per boosting
    step. Predictions are cheap, so no prediction buffer is kept and buffer
    offsets are ignored. Missing values contribute as zeros.
    """
    name = 'gblinear'

    def __init__(self):
        self.eta = 1.0
        self.reg_lambda = 0.0
        self.reg_alpha = 0.0
        self.reg_lambda_bias = 0.0
        self.num_feature = 0
        self.num_output_group = 1
        # row num_feature holds the bias of each group
        self.weight = np.zeros((1, 1), dtype=np.float64)
        self.num_steps = 0
        # weights before every step made since construction or loading
        self.history: List[np.ndarray] = []

    def set_param(self, name: str, value: str) -> None:
        if name.startswith('bst:'):
            name = name[len('bst:'):]
        if name in ('eta', 'learning_rate'):
            self.eta = float(value)
        elif name in ('lambda', 'reg_lambda'):
            self.reg_lambda = float(value)
        elif name in ('alpha', 'reg_alpha'):
            self.reg_alpha = float(value)
        elif name == 'lambda_bias':
            self.reg_lambda_bias = float(value)
        elif name == 'num_feature' and self.num_steps == 0:
            self.num_feature = int(value)
        elif name == 'num_class' and self.num_steps == 0:
            self.num_output_group = max(int(value), 1)

    def init_model(self) -> None:
        self.weight = np.zeros((self.num_feature + 1, self.num_output_group),
                               dtype=np.float64)
        self.num_steps = 0
        self.history = []

    def num_boosters(self) -> int:
        return self.num_steps

    def num_group(self) -> int:
        return self.num_output_group

    def _ensure_features(self, num_col: int) -> None:
        if num_col > self.num_feature:
            extra = np.zeros((num_col - self.num_feature, self.num_output_group))
            self.weight = np.vstack([self.weight[:-1], extra, self.weight[-1:]])
            self.num_feature = num_col

    def _delta(self, sum_grad: float, sum_hess: float, w: float) -> float:
        if sum_hess < 1e-5:
            return 0.0
        tmp = w - (sum_grad + self.reg_lambda * w) / (sum_hess + self.reg_lambda)
        if tmp >= 0:
            return max(-(sum_grad + self.reg_lambda * w + self.reg_alpha) /
                       (sum_hess + self.reg_lambda), -w)
        return min(-(sum_grad + self.reg_lambda * w - self.reg_alpha) /
                   (sum_hess + self.reg_lambda), -w)

    def do_boost(self, grad: np.ndarray, hess: np.ndarray, dmat: DMatrix,
                 root_index: np.ndarray, bst_group: int = 0,
                 buffer_offset: int = NO_BUFFER) -> None:
        assert 0 <= bst_group < self.num_output_group, "invalid booster group"
        self._ensure_features(dmat.num_col)
        self.history.append(self.weight.copy())
        self.num_steps += 1
        grad = grad.astype(np.float64).copy()
        hess = hess.astype(np.float64)
        data = np.nan_to_num(dmat.data.astype(np.float64), nan=0.0)
        bias = self.num_feature
        dw = self.eta * -(grad.sum()) / (hess.sum() + self.reg_lambda_bias) \
            if hess.sum() > 0 else 0.0
        self.weight[bias, bst_group] += dw
        grad += hess * dw
        for fid in range(dmat.num_col):
            column = data[:, fid]
            sum_grad = float(np.dot(grad, column))
            sum_hess = float(np.dot(hess, column * column))
            dw = self.eta * self._delta(sum_grad, sum_hess, self.weight[fid, bst_group])
            self.weight[fid, bst_group] += dw
            grad += hess * column * dw

    def predict(self, dmat: DMatrix, buffer_offset: int,
                root_index: np.ndarray, bst_group: int) -> np.ndarray:
        data = np.nan_to_num(dmat.data.astype(np.float64), nan=0.0)
        num_col = min(dmat.num_col, self.num_feature)
        margin = data[:, :num_col] @ self.weight[:num_col, bst_group]
        return (margin + self.weight[self.num_feature, bst_group]).astype(numerical_dtype)

    def delete_booster(self) -> None:
        """Reverts the last boosting step made since construction or loading."""
        if not self.history:
            return
        self.weight = self.history.pop()
        self.num_feature = self.weight.shape[0] - 1
        self.num_steps -= 1

    def save_model(self, fo: BinaryIO) -> None:
        write_array(fo, np.array([self.num_feature, self.num_output_group,
                                  self.num_steps], dtype='<i8'))
        write_array(fo, self.weight)

    def load_model(self, fi: BinaryIO) -> None:
        model_param = read_array(fi, 'gblinear model parameters')
        if model_param.shape != (3,):
            raise FormatError("wrong model format: bad gblinear model parameters")
        self.num_feature, self.num_output_group, self.num_steps = (int(v) for v in model_param)
        weight = read_array(fi, 'gblinear weights')
        if weight.shape != (self.num_feature + 1, self.num_output_group):
            raise FormatError("wrong model format: bad gblinear weights")
        self.weight = weight.astype(np.float64)
        self.history = []

    def dump_model(self, fmap: Optional[Sequence[str]] = None,
                   with_stats: bool = False) -> List[str]:
        lines = ['bias:'] + [f'{w:g}' for w in self.weight[self.num_feature]]
        lines.append('weight:')
        for fid in range(self.num_feature):
            lines.extend(f'{w:g}' for w in self.weight[fid])
        return ['\n'.join(lines) + '\n']
