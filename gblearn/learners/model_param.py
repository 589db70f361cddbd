##############################################################################
# Copyright (c) 2024, NVIDIA Corporation. All rights reserved.
#
# This work is made available under the Nvidia Source Code License-NC.
# To view a copy of this license, visit
# https://nvlabs.github.io/gbrl/license.html
#
##############################################################################
"""
Learner Model Parameters

ModelHeader is the fixed size record persisted at the front of every model
file. ConfigStore records every configuration call so that lazily built
objectives and boosters can be brought up to date.
"""
import struct
from typing import BinaryIO, Callable, Iterator, List, Tuple

import numpy as np

from gblearn.common.config import (DEFAULT_BASE_SCORE, HEADER_FORMAT,
                                   HEADER_RESERVED, LOSS_AUTO,
                                   PROBABILITY_LOSSES)
from gblearn.common.errors import FormatError
from gblearn.common.utils import prob_to_margin, read_exact
from gblearn.objectives.base import ObjFunction


class ModelHeader:
    """
    Model hyperparameters persisted with the model.

    The binary record is, in order: base_score (float32), num_feature
    (uint32), num_class (int32), loss_type (int32), clear_period (int32)
    and 30 reserved int32 slots kept zero. New fields take reserved slots so
    the record size never changes.

    Attributes:
        base_score (float): global bias, in margin space once adjusted.
        num_feature (int): number of features, never decreases.
        num_class (int): number of classes, 0 for single output models.
        loss_type (int): loss family, -1 derives it from the objective.
        clear_period (int): clear cached predictions every clear_period
        iterations, 0 disables.
    """
    SIZE = struct.calcsize(HEADER_FORMAT)

    def __init__(self):
        self.base_score = DEFAULT_BASE_SCORE
        self.num_feature = 0
        self.num_class = 0
        self.loss_type = LOSS_AUTO
        self.clear_period = 0
        self.reserved = [0] * HEADER_RESERVED

    def set_param(self, name: str, value: str) -> None:
        if name == 'base_score':
            # stored as float32, the precision of the persisted record
            self.base_score = float(np.float32(value))
        elif name == 'num_class':
            self.num_class = int(value)
        elif name == 'bst:num_feature':
            self.num_feature = max(self.num_feature, int(value))
        elif name == 'loss_type':
            self.loss_type = int(value)
        elif name == 'clear_period':
            self.clear_period = int(value)

    def adjust_base(self, obj: ObjFunction) -> None:
        """
        Moves base_score to margin space.

        The loss family is taken from the objective unless loss_type was
        set explicitly, in which case probability producing families map
        base_score through the inverse sigmoid.

        Raises:
            StateError: if base_score is outside (0, 1) for a probability
            producing loss.
        """
        if self.loss_type == LOSS_AUTO:
            self.loss_type = obj.loss_type
            self.base_score = obj.prob_to_margin(self.base_score)
        elif self.loss_type in PROBABILITY_LOSSES:
            self.base_score = prob_to_margin(self.base_score)

    def save(self, fo: BinaryIO) -> None:
        fo.write(struct.pack(HEADER_FORMAT, self.base_score, self.num_feature,
                             self.num_class, self.loss_type, self.clear_period,
                             *self.reserved))

    def load(self, fi: BinaryIO) -> None:
        data = read_exact(fi, self.SIZE, 'model header')
        fields = struct.unpack(HEADER_FORMAT, data)
        (self.base_score, self.num_feature, self.num_class, self.loss_type,
         self.clear_period) = fields[:5]
        self.reserved = list(fields[5:])
        if self.num_class < 0:
            raise FormatError("wrong model format: negative num_class")

    def __eq__(self, other) -> bool:
        if not isinstance(other, ModelHeader):
            return NotImplemented
        return (self.base_score, self.num_feature, self.num_class,
                self.loss_type, self.clear_period, self.reserved) == \
            (other.base_score, other.num_feature, other.num_class,
             other.loss_type, other.clear_period, other.reserved)


class ConfigStore:
    """Append-only, ordered record of (name, value) configuration calls."""
    def __init__(self):
        self._cfg: List[Tuple[str, str]] = []

    def append(self, name: str, value: str) -> None:
        self._cfg.append((name, value))

    def replay(self, *setters: Callable[[str, str], None]) -> None:
        """Applies every recorded pair, in order, to each setter."""
        for name, value in self._cfg:
            for setter in setters:
                setter(name, value)

    def __iter__(self) -> Iterator[Tuple[str, str]]:
        return iter(self._cfg)

    def __len__(self) -> int:
        return len(self._cfg)
