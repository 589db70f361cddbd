##############################################################################
# Copyright (c) 2024, NVIDIA Corporation. All rights reserved.
#
# This work is made available under the Nvidia Source Code License-NC.
# To view a copy of this license, visit
# https://nvlabs.github.io/gbrl/license.html
#
##############################################################################
"""
Booster Model Module

This module provides the Booster class, a parameter dictionary driven
front end to BoostLearner, and the train function running the standard
boosting loop.
"""
from typing import (Callable, Dict, Iterable, List, Optional, Sequence, Tuple,
                    Union)

import numpy as np

from gblearn.common.utils import NumericalData, to_numpy, validate_array
from gblearn.data import DMatrix
from gblearn.learners.boost_learner import BoostLearner

Params = Union[Dict[str, object], Iterable[Tuple[str, object]]]
ObjectiveCallable = Callable[[np.ndarray, DMatrix], Tuple[NumericalData, NumericalData]]


class Booster:
    """
    Gradient boosting model.

    Parameters are applied in the order given. The model is initialized
    lazily on the first call that needs it, so parameters may still be set
    after construction.
    """
    def __init__(self, params: Optional[Params] = None,
                 cache: Sequence[DMatrix] = (),
                 model_file: Optional[str] = None):
        """
        Args:
            params (Optional[Params]): parameters, a dict or a list of
            (name, value) pairs. Lists allow repeated names such as
            several eval_metric entries.
            cache (Sequence[DMatrix]): datasets whose predictions are cached,
            usually the training set followed by the evaluation sets.
            model_file (Optional[str]): model to load instead of starting
            a new one.
        """
        for dmat in cache:
            assert isinstance(dmat, DMatrix), "invalid cache item, expected DMatrix"
        self.learner = BoostLearner()
        self.set_param(params or {})
        if len(cache) != 0:
            self.learner.set_cache_data(list(cache))
        if model_file is not None:
            self.load_model(model_file)

    def set_param(self, params: Union[Params, str], value=None) -> None:
        """
        Sets parameters.

        Args:
            params (Union[Params, str]): parameter name, or a dict or list of
            (name, value) pairs.
            value: parameter value when params is a name.
        """
        if isinstance(params, str):
            params = [(params, value)]
        elif isinstance(params, dict):
            params = params.items()
        for name, val in params:
            self.learner.set_param(name, val)

    def _lazy_init(self) -> None:
        if not self.learner.model_ready:
            self.learner.init_model()

    @property
    def silent(self) -> bool:
        return bool(self.learner.silent)

    @property
    def num_boosters(self) -> int:
        self._lazy_init()
        return self.learner.num_boosters()

    def update(self, dtrain: DMatrix, iteration: int) -> None:
        """
        Performs one boosting iteration using the configured objective.

        Args:
            dtrain (DMatrix): training data.
            iteration (int): current iteration number.
        """
        assert isinstance(dtrain, DMatrix), "invalid training matrix"
        self._lazy_init()
        self.learner.update_one_iter(iteration, dtrain)

    def boost(self, dtrain: DMatrix, grad: NumericalData, hess: NumericalData) -> None:
        """
        Performs one boosting iteration using custom gradients.

        Args:
            dtrain (DMatrix): training data.
            grad (NumericalData): first order gradients.
            hess (NumericalData): second order gradients.
        """
        assert len(grad) == len(hess), "grad / hess length mismatch"
        grad, hess = to_numpy(grad), to_numpy(hess)
        validate_array(grad)
        validate_array(hess)
        self._lazy_init()
        self.learner.boost_one_iter(dtrain, grad, hess)

    def update_interact(self, dtrain: DMatrix, action: str = 'boost') -> None:
        """
        Boosts or removes the last unit of the model in interactive mode.

        Every dataset passed in the cache, dtrain included, is kept up to
        date.

        Args:
            dtrain (DMatrix): training data.
            action (str): 'boost' or 'remove'.
        """
        self._lazy_init()
        self.learner.update_interact(action, dtrain)

    def eval_set(self, evals: Sequence[Tuple[DMatrix, str]], iteration: int = 0) -> str:
        """
        Evaluates the configured metrics on several datasets.

        Args:
            evals (Sequence[Tuple[DMatrix, str]]): datasets and their names.
            iteration (int): iteration number printed in the report.

        Returns:
            str: evaluation report, e.g. '[0] train-rmse:0.500000'.
        """
        for dmat, name in evals:
            assert isinstance(dmat, DMatrix), "expected DMatrix in evals"
            assert isinstance(name, str), "expected a dataset name in evals"
        self._lazy_init()
        return self.learner.eval_one_iter(iteration, [dmat for dmat, _ in evals],
                                          [name for _, name in evals])

    def eval(self, dmat: DMatrix, name: str = 'eval', iteration: int = 0) -> str:
        return self.eval_set([(dmat, name)], iteration)

    def evaluate(self, dmat: DMatrix, metric: str = 'auto') -> Tuple[str, float]:
        self._lazy_init()
        return self.learner.evaluate(dmat, metric)

    def predict(self, data: Union[DMatrix, NumericalData], output_margin: bool = False,
                bst_group: int = -1, tensor: bool = False,
                device: str = 'cpu') -> NumericalData:
        """
        Predicts with the model.

        Args:
            data (Union[DMatrix, NumericalData]): input data, raw arrays are
            wrapped into an uncached DMatrix.
            output_margin (bool): return untransformed margins.
            bst_group (int): output group to predict, -1 predicts every group.
            tensor (bool): return a PyTorch tensor.
            device (str): device of the returned tensor.

        Returns:
            NumericalData: predictions.
        """
        if not isinstance(data, DMatrix):
            data = DMatrix(data)
        self._lazy_init()
        return self.learner.predict(data, bst_group, output_margin, tensor, device)

    def save_model(self, fname: str) -> None:
        """
        Saves the model to a file.

        Args:
            fname (str): output file name.
        """
        self._lazy_init()
        self.learner.save(fname)

    def load_model(self, fname: str) -> None:
        """
        Loads a model from a file.

        Datasets cached by this booster keep their buffer ranges; they must
        be the datasets the saved model was trained with.

        Args:
            fname (str): model file name.
        """
        self.learner.load(fname)

    def dump_model(self, fname: Optional[str] = None,
                   fmap: Optional[Sequence[str]] = None,
                   with_stats: bool = False) -> List[str]:
        """
        Dumps the model as text.

        Args:
            fname (Optional[str]): file to write the dump to.
            fmap (Optional[Sequence[str]]): feature names, by feature index.
            with_stats (bool): include split gains and covers.

        Returns:
            List[str]: one dump per booster unit.
        """
        self._lazy_init()
        dumps = self.learner.dump_model(fmap, with_stats)
        if fname is not None:
            with open(fname, 'w') as fo:
                for i, dump in enumerate(dumps):
                    fo.write(f'booster[{i}]:\n')
                    fo.write(dump)
        return dumps

    def copy(self) -> "Booster":
        return self.__copy__()

    def __copy__(self) -> "Booster":
        """Copies parameters and model. Cached datasets are not shared."""
        booster = Booster.__new__(Booster)
        booster.learner = self.learner.copy()
        return booster


def train(params: Params, dtrain: DMatrix, num_boost_round: int = 10,
          evals: Sequence[Tuple[DMatrix, str]] = (),
          obj: Optional[ObjectiveCallable] = None) -> Booster:
    """
    Trains a booster.

    Args:
        params (Params): booster parameters.
        dtrain (DMatrix): training data.
        num_boost_round (int): number of boosting iterations.
        evals (Sequence[Tuple[DMatrix, str]]): datasets evaluated after each
        iteration, the report is printed unless silent.
        obj (Optional[ObjectiveCallable]): custom objective, called with the
        margins and dtrain, returning gradients and hessians.

    Returns:
        Booster: the trained booster.
    """
    evals = list(evals)
    booster = Booster(params, [dtrain] + [dmat for dmat, _ in evals])
    for i in range(num_boost_round):
        if obj is None:
            booster.update(dtrain, i)
        else:
            grad, hess = obj(booster.predict(dtrain, output_margin=True), dtrain)
            booster.boost(dtrain, grad, hess)
        if len(evals) != 0:
            msg = booster.eval_set(evals, i)
            if not booster.silent:
                print(msg)
    return booster
