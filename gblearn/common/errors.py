##############################################################################
# Copyright (c) 2024, NVIDIA Corporation. All rights reserved.
#
# This work is made available under the Nvidia Source Code License-NC.
# To view a copy of this license, visit
# https://nvlabs.github.io/gbrl/license.html
#
##############################################################################
"""Exceptions raised by the gblearn learner and its collaborators."""


class ConfigurationError(ValueError):
    """Unknown objective, booster or metric name at construction time."""


class FormatError(IOError):
    """Truncated or malformed model stream."""


class StateError(RuntimeError):
    """A learner invariant was violated (programming error)."""
