##############################################################################
# Copyright (c) 2024, NVIDIA Corporation. All rights reserved.
#
# This work is made available under the Nvidia Source Code License-NC.
# To view a copy of this license, visit
# https://nvlabs.github.io/gbrl/license.html
#
##############################################################################
"""
gblearn Objectives Module

This module provides the objective functions that turn raw predictions into
gradient pairs, and the registry used to construct them by name.
"""
from typing import Dict, Type

from gblearn.common.errors import ConfigurationError
from gblearn.objectives.base import ObjFunction
from gblearn.objectives.multiclass import SoftmaxMultiClass, SoftprobMultiClass
from gblearn.objectives.rank import PairwiseRank
from gblearn.objectives.regression import (LinearRegression, LogisticClassification,
                                           LogisticRaw, LogisticRegression)

OBJECTIVES: Dict[str, Type[ObjFunction]] = {
    cls.name: cls for cls in [LinearRegression, LogisticRegression,
                              LogisticClassification, LogisticRaw,
                              SoftmaxMultiClass, SoftprobMultiClass,
                              PairwiseRank]
}


def create_objective(name: str) -> ObjFunction:
    """
    Constructs an objective function by name.

    Args:
        name (str): registry name, e.g. 'reg:linear' or 'multi:softmax'.

    Returns:
        ObjFunction: a new objective instance.

    Raises:
        ConfigurationError: if no objective is registered under name.
    """
    if name not in OBJECTIVES:
        raise ConfigurationError(f"unknown objective function type: {name}")
    return OBJECTIVES[name]()


__all__ = ['ObjFunction', 'OBJECTIVES', 'create_objective']
