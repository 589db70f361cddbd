##############################################################################
# Copyright (c) 2024, NVIDIA Corporation. All rights reserved.
#
# This work is made available under the Nvidia Source Code License-NC.
# To view a copy of this license, visit
# https://nvlabs.github.io/gbrl/license.html
#
##############################################################################
import numpy as np

from gblearn.common.config import LOSS_SOFTMAX
from gblearn.common.utils import (GradientPairs, group_softmax,
                                  numerical_dtype, prob_to_margin)
from gblearn.data import MetaInfo
from gblearn.objectives.base import ObjFunction
from gblearn.objectives.regression import MIN_HESSIAN


class SoftmaxMultiClass(ObjFunction):
    """
    Softmax multi-class classification.

    Predictions are laid out group-major: the margins of class g for every
    row are stored contiguously in [g * rows, (g + 1) * rows). Gradients use
    the same layout. Final predictions are the most probable class per row.
    """
    name = 'multi:softmax'
    loss_type = LOSS_SOFTMAX

    def __init__(self):
        self.num_class = 0

    def set_param(self, name: str, value: str) -> None:
        if name == 'num_class':
            self.num_class = int(value)

    def get_gradient(self, preds: np.ndarray, info: MetaInfo,
                     iteration: int) -> GradientPairs:
        assert self.num_class > 1, "must set num_class to use softmax"
        self._check_labels(preds, info, self.num_class)
        labels = info.labels.astype(np.int64)
        if np.any((labels < 0) | (labels >= self.num_class)):
            raise ValueError(f"{self.name}: label must be in [0, num_class)")
        num_row = len(labels)
        weights = info.get_weight(num_row)
        prob = group_softmax(preds, self.num_class).reshape((self.num_class, num_row))
        onehot = np.zeros_like(prob)
        onehot[labels, np.arange(num_row)] = 1.0
        grad = (prob - onehot) * weights
        hess = np.maximum(2.0 * prob * (1.0 - prob), MIN_HESSIAN) * weights
        return (grad.ravel().astype(numerical_dtype),
                hess.ravel().astype(numerical_dtype))

    def pred_transform(self, preds: np.ndarray) -> np.ndarray:
        margins = preds.reshape((self.num_class, -1))
        return np.argmax(margins, axis=0).astype(numerical_dtype)

    def eval_transform(self, preds: np.ndarray) -> np.ndarray:
        return group_softmax(preds, self.num_class)

    def default_eval_metric(self) -> str:
        return 'merror'

    def prob_to_margin(self, base_score: float) -> float:
        return prob_to_margin(base_score)


class SoftprobMultiClass(SoftmaxMultiClass):
    """Softmax multi-class classification returning per-class probabilities."""
    name = 'multi:softprob'

    def pred_transform(self, preds: np.ndarray) -> np.ndarray:
        return group_softmax(preds, self.num_class)
