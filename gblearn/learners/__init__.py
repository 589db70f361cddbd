##############################################################################
# Copyright (c) 2024, NVIDIA Corporation. All rights reserved.
#
# This work is made available under the Nvidia Source Code License-NC.
# To view a copy of this license, visit
# https://nvlabs.github.io/gbrl/license.html
#
##############################################################################
"""
gblearn Learners Module

This module provides the learner orchestrating objectives and boosters: the
model header, the configuration store, the prediction cache and the
BoostLearner itself.
"""
