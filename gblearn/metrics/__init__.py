##############################################################################
# Copyright (c) 2024, NVIDIA Corporation. All rights reserved.
#
# This work is made available under the Nvidia Source Code License-NC.
# To view a copy of this license, visit
# https://nvlabs.github.io/gbrl/license.html
#
##############################################################################
"""
gblearn Metrics Module

This module provides the evaluation metrics, a name registry and EvalSet,
the ordered collection of metrics reported during training.
"""
from typing import Dict, List, Optional, Type

import numpy as np

from gblearn.common.errors import ConfigurationError
from gblearn.data import MetaInfo
from gblearn.metrics.evaluators import (AUC, MAE, MAP, RMSE, Error, Evaluator,
                                        LogLoss, MultiError, MultiLogLoss)

EVALUATORS: Dict[str, Type[Evaluator]] = {
    cls.name: cls for cls in [RMSE, MAE, LogLoss, Error, MultiError,
                              MultiLogLoss, AUC, MAP]
}


def create_evaluator(name: str) -> Optional[Evaluator]:
    """
    Constructs a metric by name.

    Args:
        name (str): metric name, e.g. 'rmse'.

    Returns:
        Optional[Evaluator]: a new metric, None if the name is unknown.
    """
    if name not in EVALUATORS:
        return None
    return EVALUATORS[name]()


class EvalSet:
    """Ordered, duplicate free set of metrics."""
    def __init__(self):
        self.evals: List[Evaluator] = []

    def add_eval(self, name: str) -> None:
        """
        Adds a metric, names already present are ignored.

        Raises:
            ConfigurationError: if the metric name is unknown.
        """
        if any(ev.name == name for ev in self.evals):
            return
        evaluator = create_evaluator(name)
        if evaluator is None:
            raise ConfigurationError(f"unknown evaluation metric type: {name}")
        self.evals.append(evaluator)

    def eval(self, evname: str, preds: np.ndarray, info: MetaInfo) -> str:
        """
        Evaluates every metric and formats the results.

        Args:
            evname (str): name of the evaluated dataset.
            preds (np.ndarray): transformed predictions.
            info (MetaInfo): labels and weights of the dataset.

        Returns:
            str: one ' {evname}-{metric}:{value}' entry per metric.
        """
        return ''.join(f" {evname}-{ev.name}:{ev.eval(preds, info):f}"
                       for ev in self.evals)

    def __len__(self) -> int:
        return len(self.evals)


__all__ = ['Evaluator', 'EvalSet', 'EVALUATORS', 'create_evaluator']
