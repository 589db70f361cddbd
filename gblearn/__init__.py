##############################################################################
# Copyright (c) 2024, NVIDIA Corporation. All rights reserved.
#
# This work is made available under the Nvidia Source Code License-NC.
# To view a copy of this license, visit
# https://nvlabs.github.io/gbrl/license.html
#
##############################################################################
"""
gblearn: Gradient Boosting Learner Library

A gradient boosting library built around a learner that caches predictions
across boosting rounds, with tree and linear boosters, numpy and PyTorch
inputs and a stable binary model format.
"""
__version__ = "1.0.0"

from gblearn.data import DMatrix  # noqa: E402
from gblearn.learners.boost_learner import BoostLearner  # noqa: E402
from gblearn.models.booster import Booster, train  # noqa: E402

__all__ = ['DMatrix', 'BoostLearner', 'Booster', 'train']
