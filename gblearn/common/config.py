##############################################################################
# Copyright (c) 2024, NVIDIA Corporation. All rights reserved.
#
# This work is made available under the Nvidia Source Code License-NC.
# To view a copy of this license, visit
# https://nvlabs.github.io/gbrl/license.html
#
##############################################################################
"""
gblearn Configuration Constants

This module contains the default names, the recognized learner parameters
and the on-disk layout constants shared throughout the gblearn library.
"""
DEFAULT_OBJECTIVE = 'reg:linear'
DEFAULT_BOOSTER = 'gbtree'
DEFAULT_BASE_SCORE = 0.5

MULTI_CLASS_OBJECTIVES = ['multi:softmax', 'multi:softprob']
AUTO_MULTI_CLASS_OBJECTIVE = 'multi:softmax'

# keys interpreted by the learner itself, everything is still forwarded
LEARNER_PARAMS = ['silent', 'eval_metric', 'objective', 'booster',
                  'num_class', 'base_score', 'bst:num_feature',
                  'clear_period', 'loss_type']

# loss families used when adjusting the base score
LOSS_AUTO = -1
LOSS_LINEAR = 0
LOSS_LOGISTIC = 1
LOSS_LOGITRAW = 2
LOSS_SOFTMAX = 3
PROBABILITY_LOSSES = [LOSS_LOGISTIC, LOSS_LOGITRAW, LOSS_SOFTMAX]

# header record: base_score, num_feature, num_class, loss_type,
# clear_period and the zero padding. 140 bytes, never grows.
HEADER_FORMAT = '<fIiii30i'
HEADER_RESERVED = 30
# length prefix of serialized strings
STRING_LENGTH_FORMAT = '<Q'

# buffer offset returned when a dataset cannot use the prediction cache
NO_BUFFER = -1

APPROVED_TREE_PARAMS = ['eta', 'bst:eta', 'max_depth', 'bst:max_depth',
                        'lambda', 'bst:lambda', 'alpha', 'bst:alpha',
                        'gamma', 'bst:gamma', 'min_child_weight',
                        'bst:min_child_weight', 'num_roots']
