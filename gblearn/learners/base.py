##############################################################################
# Copyright (c) 2024, NVIDIA Corporation. All rights reserved.
#
# This work is made available under the Nvidia Source Code License-NC.
# To view a copy of this license, visit
# https://nvlabs.github.io/gbrl/license.html
#
##############################################################################
import os
from abc import ABC, abstractmethod
from typing import BinaryIO, List, Optional, Sequence, Tuple

import numpy as np

from gblearn.data import DMatrix


class BaseLearner(ABC):
    """
    Abstract base class for gradient boosting learners.

    This class defines the fundamental interface of a learner: configuration,
    prediction caching, training iterations, evaluation, prediction and
    model persistence.
    """

    @abstractmethod
    def set_param(self, name: str, value) -> None:
        """
        Sets a configuration parameter.

        Args:
            name (str): parameter name.
            value: parameter value, converted to a string.
        """
        pass

    @abstractmethod
    def set_cache_data(self, dmats: Sequence[DMatrix]) -> None:
        """
        Registers the datasets whose predictions are cached across iterations.

        Args:
            dmats (Sequence[DMatrix]): training and evaluation datasets.
        """
        pass

    @abstractmethod
    def init_model(self) -> None:
        """Initializes a new model before the first training iteration."""
        pass

    @abstractmethod
    def update_one_iter(self, iteration: int, dtrain: DMatrix) -> None:
        """
        Performs one boosting iteration.

        Args:
            iteration (int): current iteration number.
            dtrain (DMatrix): training data.
        """
        pass

    @abstractmethod
    def eval_one_iter(self, iteration: int, evals: Sequence[DMatrix],
                      evnames: Sequence[str]) -> str:
        """
        Evaluates the configured metrics on several datasets.

        Returns:
            str: evaluation report of the iteration.
        """
        pass

    @abstractmethod
    def evaluate(self, dmat: DMatrix, metric: str) -> Tuple[str, float]:
        """
        Evaluates a single metric.

        Returns:
            Tuple[str, float]: metric name and value.
        """
        pass

    @abstractmethod
    def predict(self, dmat: DMatrix, *args, **kwargs) -> np.ndarray:
        """
        Generates predictions using the trained model.

        Returns:
            np.ndarray: Model predictions.
        """
        pass

    @abstractmethod
    def save_model(self, fo: BinaryIO) -> None:
        """Writes the model to a binary stream."""
        pass

    @abstractmethod
    def load_model(self, fi: BinaryIO) -> None:
        """Reads the model from a binary stream."""
        pass

    @abstractmethod
    def dump_model(self, fmap: Optional[Sequence[str]] = None,
                   with_stats: bool = False) -> List[str]:
        """
        Dumps the model as text.

        Returns:
            List[str]: one dump per incremental unit of the model.
        """
        pass

    def save(self, filename: str) -> None:
        """
        Saves the model to a file.

        Args:
            filename (str): The filename to save the model to.
        """
        with open(filename, 'wb') as fo:
            self.save_model(fo)

    def load(self, filename: str) -> None:
        """
        Loads the model from a file.

        Args:
            filename (str): Path to the model file.
        """
        assert os.path.isfile(filename), "filename doesn't exist!"
        with open(filename, 'rb') as fi:
            self.load_model(fi)

    def copy(self):
        """
        Creates a copy of the learner instance.

        Returns:
            BaseLearner: A copy of the learner.
        """
        return self.__copy__()

    @abstractmethod
    def __copy__(self) -> "BaseLearner":
        """Creates and returns a copy of the learner instance."""
        pass
