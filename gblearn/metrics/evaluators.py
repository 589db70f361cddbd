##############################################################################
# Copyright (c) 2024, NVIDIA Corporation. All rights reserved.
#
# This work is made available under the Nvidia Source Code License-NC.
# To view a copy of this license, visit
# https://nvlabs.github.io/gbrl/license.html
#
##############################################################################
from abc import ABC, abstractmethod

import numpy as np
from scipy.stats import rankdata

from gblearn.data import MetaInfo

EPS = 1e-16


class Evaluator(ABC):
    """
    Abstract base class for evaluation metrics.

    Predictions are already transformed by the objective. Multi-class
    predictions arrive group-major, the number of groups being inferred from
    the ratio between prediction and label sizes.
    """
    name = ''

    @abstractmethod
    def eval(self, preds: np.ndarray, info: MetaInfo) -> float:
        """Evaluates predictions against the labels of info."""
        pass

    @staticmethod
    def _check(preds: np.ndarray, info: MetaInfo) -> int:
        num_row = len(info.labels)
        assert num_row != 0, "labels are required for evaluation"
        assert len(preds) % num_row == 0, "label and prediction size not match"
        return len(preds) // num_row


class PointwiseEvaluator(Evaluator):
    """Weighted mean of a per-row loss."""

    def eval(self, preds: np.ndarray, info: MetaInfo) -> float:
        self._check(preds, info)
        labels = info.labels.astype(np.float64)
        weights = info.get_weight(len(labels)).astype(np.float64)
        losses = self.loss(preds[:len(labels)].astype(np.float64), labels)
        return self.finalize(np.sum(losses * weights), np.sum(weights))

    @abstractmethod
    def loss(self, preds: np.ndarray, labels: np.ndarray) -> np.ndarray:
        pass

    def finalize(self, esum: float, wsum: float) -> float:
        return float(esum / wsum)


class RMSE(PointwiseEvaluator):
    name = 'rmse'

    def loss(self, preds, labels):
        return (preds - labels) ** 2

    def finalize(self, esum, wsum):
        return float(np.sqrt(esum / wsum))


class MAE(PointwiseEvaluator):
    name = 'mae'

    def loss(self, preds, labels):
        return np.abs(preds - labels)


class LogLoss(PointwiseEvaluator):
    name = 'logloss'

    def loss(self, preds, labels):
        p = np.clip(preds, EPS, 1.0 - EPS)
        return -(labels * np.log(p) + (1.0 - labels) * np.log(1.0 - p))


class Error(PointwiseEvaluator):
    name = 'error'

    def loss(self, preds, labels):
        return ((preds > 0.5) != (labels > 0.5)).astype(np.float64)


class MultiClassEvaluator(Evaluator):
    """Metrics over group-major class probabilities."""

    def eval(self, preds: np.ndarray, info: MetaInfo) -> float:
        num_group = self._check(preds, info)
        labels = info.labels.astype(np.int64)
        weights = info.get_weight(len(labels)).astype(np.float64)
        prob = preds.astype(np.float64).reshape((num_group, len(labels)))
        losses = self.loss(prob, labels)
        return float(np.sum(losses * weights) / np.sum(weights))

    @abstractmethod
    def loss(self, prob: np.ndarray, labels: np.ndarray) -> np.ndarray:
        pass


class MultiError(MultiClassEvaluator):
    name = 'merror'

    def loss(self, prob, labels):
        if prob.shape[0] == 1:
            # already transformed to class indices
            return (prob[0].astype(np.int64) != labels).astype(np.float64)
        return (np.argmax(prob, axis=0) != labels).astype(np.float64)


class MultiLogLoss(MultiClassEvaluator):
    name = 'mlogloss'

    def loss(self, prob, labels):
        assert prob.shape[0] > 1, "mlogloss requires per-class probabilities"
        picked = prob[labels, np.arange(prob.shape[1])]
        return -np.log(np.clip(picked, EPS, None))


class AUC(Evaluator):
    name = 'auc'

    def eval(self, preds: np.ndarray, info: MetaInfo) -> float:
        self._check(preds, info)
        labels = info.labels > 0.5
        num_pos = int(labels.sum())
        num_neg = len(labels) - num_pos
        assert num_pos != 0 and num_neg != 0, "auc: the dataset only contains pos or neg samples"
        ranks = rankdata(preds[:len(labels)])
        return float((ranks[labels].sum() - num_pos * (num_pos + 1) / 2.0) /
                     (num_pos * num_neg))


class MAP(Evaluator):
    """Mean average precision over query groups, label > 0 is relevant."""
    name = 'map'

    def eval(self, preds: np.ndarray, info: MetaInfo) -> float:
        self._check(preds, info)
        num_row = len(info.labels)
        group_ptr = info.group_ptr
        if len(group_ptr) == 0:
            group_ptr = np.array([0, num_row], dtype=np.uint32)
        scores = []
        for begin, end in zip(group_ptr[:-1], group_ptr[1:]):
            order = np.argsort(-preds[begin:end], kind='stable')
            relevant = info.labels[begin:end][order] > 0
            if not relevant.any():
                scores.append(1.0)
                continue
            hits = np.cumsum(relevant)
            precision = hits / np.arange(1, len(relevant) + 1)
            scores.append(float(np.sum(precision[relevant]) / hits[-1]))
        return float(np.mean(scores))
