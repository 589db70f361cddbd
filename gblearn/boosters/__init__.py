##############################################################################
# Copyright (c) 2024, NVIDIA Corporation. All rights reserved.
#
# This work is made available under the Nvidia Source Code License-NC.
# To view a copy of this license, visit
# https://nvlabs.github.io/gbrl/license.html
#
##############################################################################
"""
gblearn Boosters Module

This module provides the gradient boosters (tree and linear ensembles) and
the registry used to construct them by name.
"""
from typing import Dict, Type

from gblearn.boosters.base import GradBooster
from gblearn.boosters.gblinear import GBLinear
from gblearn.boosters.gbtree import GBTree
from gblearn.common.errors import ConfigurationError

BOOSTERS: Dict[str, Type[GradBooster]] = {
    cls.name: cls for cls in [GBTree, GBLinear]
}


def create_booster(name: str) -> GradBooster:
    """
    Constructs a gradient booster by name.

    Args:
        name (str): registry name, 'gbtree' or 'gblinear'.

    Returns:
        GradBooster: a new booster instance.

    Raises:
        ConfigurationError: if no booster is registered under name.
    """
    if name not in BOOSTERS:
        raise ConfigurationError(f"unknown booster type: {name}")
    return BOOSTERS[name]()


__all__ = ['GradBooster', 'BOOSTERS', 'create_booster']
