##############################################################################
# Copyright (c) 2024, NVIDIA Corporation. All rights reserved.
#
# This work is made available under the Nvidia Source Code License-NC.
# To view a copy of this license, visit
# https://nvlabs.github.io/gbrl/license.html
#
##############################################################################
import numpy as np
from scipy.special import expit

from gblearn.common.config import LOSS_LINEAR
from gblearn.common.utils import GradientPairs, numerical_dtype
from gblearn.data import MetaInfo
from gblearn.objectives.base import ObjFunction
from gblearn.objectives.regression import MIN_HESSIAN


class PairwiseRank(ObjFunction):
    """
    Pairwise ranking with a logistic loss over every ordered pair of a query
    group. Rows without group information form a single group.
    """
    name = 'rank:pairwise'
    loss_type = LOSS_LINEAR

    def get_gradient(self, preds: np.ndarray, info: MetaInfo,
                     iteration: int) -> GradientPairs:
        self._check_labels(preds, info)
        num_row = len(preds)
        group_ptr = info.group_ptr
        if len(group_ptr) == 0:
            group_ptr = np.array([0, num_row], dtype=np.uint32)
        assert group_ptr[-1] == num_row, "group structure does not match the number of rows"
        weights = info.get_weight(num_row)
        grad = np.zeros(num_row, dtype=np.float64)
        hess = np.zeros(num_row, dtype=np.float64)
        for begin, end in zip(group_ptr[:-1], group_ptr[1:]):
            scores = preds[begin:end].astype(np.float64)
            labels = info.labels[begin:end]
            # pairs (i, j) where row i should rank above row j
            pairs = labels[:, np.newaxis] > labels[np.newaxis, :]
            p = expit(scores[:, np.newaxis] - scores[np.newaxis, :])
            g = np.where(pairs, p - 1.0, 0.0)
            h = np.where(pairs, np.maximum(p * (1.0 - p), MIN_HESSIAN), 0.0)
            grad[begin:end] = g.sum(axis=1) - g.sum(axis=0)
            hess[begin:end] = h.sum(axis=1) + h.sum(axis=0)
        grad *= weights
        hess *= weights
        return grad.astype(numerical_dtype), hess.astype(numerical_dtype)

    def default_eval_metric(self) -> str:
        return 'map'
