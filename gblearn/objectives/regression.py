##############################################################################
# Copyright (c) 2024, NVIDIA Corporation. All rights reserved.
#
# This work is made available under the Nvidia Source Code License-NC.
# To view a copy of this license, visit
# https://nvlabs.github.io/gbrl/license.html
#
##############################################################################
import numpy as np

from gblearn.common.config import LOSS_LINEAR, LOSS_LOGISTIC, LOSS_LOGITRAW
from gblearn.common.utils import (GradientPairs, numerical_dtype,
                                  prob_to_margin, sigmoid)
from gblearn.data import MetaInfo
from gblearn.objectives.base import ObjFunction

# lower bound of logistic hessians
MIN_HESSIAN = 1e-16


class LinearRegression(ObjFunction):
    """Squared error regression."""
    name = 'reg:linear'
    loss_type = LOSS_LINEAR

    def __init__(self):
        self.scale_pos_weight = 1.0

    def set_param(self, name: str, value: str) -> None:
        if name == 'scale_pos_weight':
            self.scale_pos_weight = float(value)

    def get_gradient(self, preds: np.ndarray, info: MetaInfo,
                     iteration: int) -> GradientPairs:
        self._check_labels(preds, info)
        labels = info.labels
        weights = info.get_weight(len(labels)).copy()
        if self.scale_pos_weight != 1.0:
            weights[labels == 1.0] *= self.scale_pos_weight
        p = self.pred_transform(preds)
        grad = (p - labels) * weights
        hess = self._second_order(p) * weights
        return grad.astype(numerical_dtype), hess.astype(numerical_dtype)

    def _second_order(self, p: np.ndarray) -> np.ndarray:
        return np.ones_like(p)

    def default_eval_metric(self) -> str:
        return 'rmse'


class LogisticRegression(LinearRegression):
    """Logistic regression on probabilities, labels in [0, 1]."""
    name = 'reg:logistic'
    loss_type = LOSS_LOGISTIC

    def get_gradient(self, preds: np.ndarray, info: MetaInfo,
                     iteration: int) -> GradientPairs:
        labels = info.labels
        if np.any((labels < 0.0) | (labels > 1.0)):
            raise ValueError("label must be in [0,1] for logistic regression")
        return super().get_gradient(preds, info, iteration)

    def _second_order(self, p: np.ndarray) -> np.ndarray:
        return np.maximum(p * (1.0 - p), MIN_HESSIAN)

    def pred_transform(self, preds: np.ndarray) -> np.ndarray:
        return sigmoid(preds)

    def prob_to_margin(self, base_score: float) -> float:
        return prob_to_margin(base_score)


class LogisticClassification(LogisticRegression):
    """Binary classification, outputs the probability of the positive class."""
    name = 'binary:logistic'

    def default_eval_metric(self) -> str:
        return 'error'


class LogisticRaw(LogisticRegression):
    """Binary classification, outputs the margin before the sigmoid."""
    name = 'binary:logitraw'
    loss_type = LOSS_LOGITRAW

    def get_gradient(self, preds: np.ndarray, info: MetaInfo,
                     iteration: int) -> GradientPairs:
        self._check_labels(preds, info)
        labels = info.labels
        weights = info.get_weight(len(labels)).copy()
        if self.scale_pos_weight != 1.0:
            weights[labels == 1.0] *= self.scale_pos_weight
        p = sigmoid(preds)
        grad = (p - labels) * weights
        hess = np.maximum(p * (1.0 - p), MIN_HESSIAN) * weights
        return grad.astype(numerical_dtype), hess.astype(numerical_dtype)

    def pred_transform(self, preds: np.ndarray) -> np.ndarray:
        return preds

    def default_eval_metric(self) -> str:
        return 'auc'
