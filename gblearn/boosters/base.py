##############################################################################
# Copyright (c) 2024, NVIDIA Corporation. All rights reserved.
#
# This work is made available under the Nvidia Source Code License-NC.
# To view a copy of this license, visit
# https://nvlabs.github.io/gbrl/license.html
#
##############################################################################
from abc import ABC, abstractmethod
from typing import BinaryIO, List, Optional, Sequence

import numpy as np

from gblearn.common.config import NO_BUFFER
from gblearn.data import DMatrix


class GradBooster(ABC):
    """
    Abstract base class for gradient boosters.

    A booster is the incrementally updated model: every call to do_boost
    adds to it using one group of gradient pairs. Boosters that keep a
    prediction buffer own it entirely; callers only pass buffer offsets
    (NO_BUFFER when a dataset is not cached).

    Attributes:
        name (str): registry name of the booster.
    """
    name = ''

    @abstractmethod
    def set_param(self, name: str, value: str) -> None:
        """Sets a parameter, unknown names are ignored."""
        pass

    @abstractmethod
    def init_model(self) -> None:
        """Initializes an empty model before training."""
        pass

    @abstractmethod
    def do_boost(self, grad: np.ndarray, hess: np.ndarray, dmat: DMatrix,
                 root_index: np.ndarray, bst_group: int = 0,
                 buffer_offset: int = NO_BUFFER) -> None:
        """
        Performs one boosting step for a single output group.

        Args:
            grad (np.ndarray): first order gradients, one per row.
            hess (np.ndarray): second order gradients, one per row.
            dmat (DMatrix): training data.
            root_index (np.ndarray): tree root per row, empty for the default root.
            bst_group (int, optional): output group being boosted. Defaults to 0.
            buffer_offset (int, optional): offset of dmat in the prediction
            buffer. Defaults to NO_BUFFER.
        """
        pass

    @abstractmethod
    def predict(self, dmat: DMatrix, buffer_offset: int,
                root_index: np.ndarray, bst_group: int) -> np.ndarray:
        """
        Predicts the booster contribution (without base score) of one group.

        Args:
            dmat (DMatrix): input data.
            buffer_offset (int): offset of dmat in the prediction buffer,
            NO_BUFFER to compute without caching.
            root_index (np.ndarray): tree root per row, empty for the default root.
            bst_group (int): output group.

        Returns:
            np.ndarray: one score per row.
        """
        pass

    def clear_buffer(self, buffer_offset: int, num_row: int) -> None:
        """Drops cached predictions of rows [buffer_offset, buffer_offset + num_row)."""
        pass

    def interact_predict(self, dmat: DMatrix, buffer_offset: int,
                         bst_group: int) -> np.ndarray:
        """Predicts for interactive updates, always from the default root."""
        return self.predict(dmat, buffer_offset, np.zeros(0, dtype=np.uint32), bst_group)

    def interact_re_predict(self, dmat: DMatrix, buffer_offset: int) -> None:
        """Recomputes the cached predictions of dmat after the model changed."""
        pass

    @abstractmethod
    def delete_booster(self) -> None:
        """Removes the most recently added incremental unit."""
        pass

    @abstractmethod
    def save_model(self, fo: BinaryIO) -> None:
        pass

    @abstractmethod
    def load_model(self, fi: BinaryIO) -> None:
        pass

    @abstractmethod
    def dump_model(self, fmap: Optional[Sequence[str]] = None,
                   with_stats: bool = False) -> List[str]:
        """Returns a text dump of the model, one string per unit."""
        pass

    @abstractmethod
    def num_boosters(self) -> int:
        """Returns the number of incremental units in the model."""
        pass

    @abstractmethod
    def num_group(self) -> int:
        """Returns the number of output groups."""
        pass
