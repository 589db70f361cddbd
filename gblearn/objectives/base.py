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

from gblearn.common.config import LOSS_LINEAR
from gblearn.common.utils import GradientPairs
from gblearn.data import MetaInfo


class ObjFunction(ABC):
    """
    Abstract base class for objective functions.

    An objective maps raw (margin space) predictions to first and second
    order gradients used for boosting, and transforms margins into the
    output space used for evaluation and final prediction.

    Attributes:
        name (str): registry name of the objective.
        loss_type (int): loss family used to adjust the base score.
    """
    name = ''
    loss_type = LOSS_LINEAR

    def set_param(self, name: str, value: str) -> None:
        """Sets a parameter, unknown names are ignored."""
        pass

    @abstractmethod
    def get_gradient(self, preds: np.ndarray, info: MetaInfo,
                     iteration: int) -> GradientPairs:
        """
        Computes gradient pairs for the given predictions.

        Args:
            preds (np.ndarray): raw predictions, group-major when the model
            has more than one output group.
            info (MetaInfo): labels, weights and groups of the dataset.
            iteration (int): current boosting iteration.

        Returns:
            GradientPairs: gradients and hessians, same layout as preds.
        """
        pass

    def pred_transform(self, preds: np.ndarray) -> np.ndarray:
        """Transforms raw predictions into final predictions."""
        return preds

    def eval_transform(self, preds: np.ndarray) -> np.ndarray:
        """Transforms raw predictions before evaluation."""
        return self.pred_transform(preds)

    @abstractmethod
    def default_eval_metric(self) -> str:
        """Returns the name of the metric evaluated by default."""
        pass

    def prob_to_margin(self, base_score: float) -> float:
        """Maps a base score from output space to margin space."""
        return base_score

    def _check_labels(self, preds: np.ndarray, info: MetaInfo,
                      num_group: int = 1) -> None:
        num_row = len(info.labels)
        assert num_row != 0, "labels are required to compute gradients"
        assert len(preds) == num_row * num_group, (
            f"{self.name}: label size {num_row} does not match "
            f"prediction size {len(preds)}")
