##############################################################################
# Copyright (c) 2024, NVIDIA Corporation. All rights reserved.
#
# This work is made available under the Nvidia Source Code License-NC.
# To view a copy of this license, visit
# https://nvlabs.github.io/gbrl/license.html
#
##############################################################################
import io
from typing import BinaryIO, List, Optional, Sequence, Tuple

import numpy as np

from gblearn.boosters import GradBooster, create_booster
from gblearn.common.config import (AUTO_MULTI_CLASS_OBJECTIVE, DEFAULT_BOOSTER,
                                   DEFAULT_OBJECTIVE, LEARNER_PARAMS,
                                   MULTI_CLASS_OBJECTIVES, NO_BUFFER)
from gblearn.common.errors import StateError
from gblearn.common.utils import (NumericalData, ensure_leaf_tensor_or_array,
                                  numerical_dtype, read_string, write_string)
from gblearn.data import DMatrix
from gblearn.learners.base import BaseLearner
from gblearn.learners.cache import CacheToken, PredictionCache
from gblearn.learners.model_param import ConfigStore, ModelHeader
from gblearn.metrics import EvalSet, create_evaluator
from gblearn.objectives import ObjFunction, create_objective


class BoostLearner(BaseLearner):
    """
    Learner driving the training of a gradient booster.

    The objective and the booster are constructed by name, lazily, the
    first time the model is initialized or loaded. Every configuration
    call is recorded and replayed into them once they exist, so parameters
    may be set in any order before that point.

    Datasets registered through set_cache_data own a range of the booster's
    prediction buffer; predictions on them only evaluate what was added to
    the model since the previous call.
    """
    def __init__(self, dmats: Optional[Sequence[DMatrix]] = None):
        """
        Args:
            dmats (Optional[Sequence[DMatrix]]): datasets to cache, typically
            the training set followed by the evaluation sets.
        """
        self.silent = 0
        self.name_obj = DEFAULT_OBJECTIVE
        self.name_gbm = DEFAULT_BOOSTER
        self.mparam = ModelHeader()
        self.cfg = ConfigStore()
        self.evaluator = EvalSet()
        self.cache = PredictionCache()
        self.cache_token: Optional[CacheToken] = None
        self.obj_: Optional[ObjFunction] = None
        self.gbm_: Optional[GradBooster] = None
        self.model_ready = False
        if dmats:
            self.set_cache_data(dmats)

    def set_param(self, name: str, value) -> None:
        value = str(value)
        if name == 'silent':
            self.silent = int(value)
        elif name == 'eval_metric':
            self.evaluator.add_eval(value)
        if self.gbm_ is None:
            if name == 'objective':
                self.name_obj = value
            elif name == 'booster':
                self.name_gbm = value
            if name in LEARNER_PARAMS:
                self.mparam.set_param(name, value)
        else:
            if name == 'bst:num_feature':
                self.mparam.set_param(name, value)
            self.obj_.set_param(name, value)
            self.gbm_.set_param(name, value)
        self.cfg.append(name, value)

    def set_cache_data(self, dmats: Sequence[DMatrix]) -> None:
        """
        Registers the datasets whose predictions are buffered.

        Can only be called once per learner. After loading a model, the same
        datasets, with the same number of rows and in the same order, must be
        registered again before training resumes.

        Raises:
            StateError: if datasets were already registered.
        """
        self.cache_token = self.cache.register(dmats)
        num_feature = max((entry.dmat.num_col for entry in self.cache), default=0)
        if num_feature > self.mparam.num_feature:
            self.set_param('bst:num_feature', num_feature)
        self.set_param('num_pbuffer', self.cache.buffer_size)
        if not self.silent:
            print(f"buffer_size={self.cache.buffer_size}")

    def init_trainer(self) -> None:
        """Constructs the objective and the booster for a new model."""
        if self.gbm_ is not None:
            return
        if self.mparam.num_class > 0 and self.name_obj not in MULTI_CLASS_OBJECTIVES:
            self.name_obj = AUTO_MULTI_CLASS_OBJECTIVE
            if not self.silent:
                print(f"auto select objective={AUTO_MULTI_CLASS_OBJECTIVE} "
                      "to support multi-class classification")
        self._init_obj_gbm()

    def _create_obj_gbm(self, name_obj: str,
                        name_gbm: str) -> Tuple[ObjFunction, GradBooster]:
        obj = create_objective(name_obj)
        gbm = create_booster(name_gbm)
        self.cfg.replay(obj.set_param, gbm.set_param)
        return obj, gbm

    def _init_obj_gbm(self) -> None:
        self.obj_, self.gbm_ = self._create_obj_gbm(self.name_obj, self.name_gbm)
        self.evaluator.add_eval(self.obj_.default_eval_metric())

    def init_model(self) -> None:
        """
        Initializes a new model: constructs the objective and booster, moves
        base_score to margin space and resets the booster.

        Raises:
            StateError: if the model was already initialized or loaded, or if
            base_score is invalid for the objective's loss.
        """
        if self.model_ready:
            raise StateError("model is already initialized")
        self.init_trainer()
        self.mparam.adjust_base(self.obj_)
        self.gbm_.init_model()
        self.model_ready = True

    def _check_ready(self) -> None:
        if not self.model_ready:
            raise StateError("model must be initialized or loaded before use")

    @property
    def base_score(self) -> float:
        return self.mparam.base_score

    def num_group(self) -> int:
        self._check_ready()
        return self.gbm_.num_group()

    def num_boosters(self) -> int:
        self._check_ready()
        return self.gbm_.num_boosters()

    def _predict_raw(self, dmat: DMatrix, buffer_offset: int,
                     bst_group: int = -1) -> np.ndarray:
        root_index = dmat.info.root_index
        groups = range(self.gbm_.num_group()) if bst_group < 0 else [bst_group]
        preds = [self.gbm_.predict(dmat, buffer_offset, root_index, group) +
                 np.float32(self.mparam.base_score) for group in groups]
        return np.concatenate(preds).astype(numerical_dtype)

    def predict_raw(self, dmat: DMatrix, bst_group: int = -1) -> np.ndarray:
        """
        Computes margin predictions.

        Args:
            dmat (DMatrix): input data.
            bst_group (int): output group to predict, -1 predicts every group.

        Returns:
            np.ndarray: margins of length num_row for a single group, else
            num_row * num_group laid out group-major.
        """
        self._check_ready()
        if bst_group >= self.gbm_.num_group():
            raise ValueError(f"invalid booster group: {bst_group}")
        buffer_offset = self.cache.lookup(dmat, self.cache_token)
        return self._predict_raw(dmat, buffer_offset, bst_group)

    def _boost(self, grad: np.ndarray, hess: np.ndarray, dtrain: DMatrix,
               root_index: np.ndarray, buffer_offset: int) -> None:
        num_row = dtrain.num_row
        num_group = self.gbm_.num_group()
        if len(grad) != len(hess):
            raise ValueError(f"gradient size {len(grad)} differs from hessian size {len(hess)}")
        if len(grad) == num_row:
            self.gbm_.do_boost(grad, hess, dtrain, root_index, 0, buffer_offset)
        elif len(grad) == num_row * num_group:
            # groups share the booster state, boost them one after the other
            for group in range(num_group):
                rows = slice(group * num_row, (group + 1) * num_row)
                self.gbm_.do_boost(grad[rows].copy(), hess[rows].copy(), dtrain,
                                   root_index, group, buffer_offset)
        else:
            raise StateError(f"gradient size {len(grad)} must be {num_row} or "
                             f"{num_row * num_group}")

    def update_one_iter(self, iteration: int, dtrain: DMatrix) -> None:
        self._check_ready()
        buffer_offset = self.cache.lookup(dtrain, self.cache_token)
        preds = self._predict_raw(dtrain, buffer_offset)
        grad, hess = self.obj_.get_gradient(preds, dtrain.info, iteration)
        self._boost(grad, hess, dtrain, dtrain.info.root_index, buffer_offset)
        if self.mparam.clear_period > 0 and (iteration + 1) % self.mparam.clear_period == 0:
            self.clear_buffer(dtrain)

    def boost_one_iter(self, dtrain: DMatrix, grad: NumericalData,
                       hess: NumericalData) -> None:
        """
        Performs one boosting step with externally computed gradients.

        Args:
            dtrain (DMatrix): training data.
            grad (NumericalData): gradients, num_row or num_row * num_group long.
            hess (NumericalData): hessians, same layout as grad.
        """
        self._check_ready()
        grad = np.asarray(grad, dtype=numerical_dtype).ravel()
        hess = np.asarray(hess, dtype=numerical_dtype).ravel()
        buffer_offset = self.cache.lookup(dtrain, self.cache_token)
        self._boost(grad, hess, dtrain, dtrain.info.root_index, buffer_offset)

    def clear_buffer(self, dmat: DMatrix) -> None:
        """Drops the buffered predictions of a cached dataset."""
        buffer_offset = self.cache.lookup(dmat, self.cache_token)
        if buffer_offset != NO_BUFFER:
            self.gbm_.clear_buffer(buffer_offset, dmat.num_row)

    def update_interact(self, action: str, dtrain: DMatrix) -> None:
        """
        Interactive update of the model.

        Every cached dataset is predicted before the action. 'boost' adds one
        boosting step fit on the current training predictions and refreshes
        every cached dataset, 'remove' deletes the last unit added to the
        booster. Root indices are ignored on this path.

        Args:
            action (str): 'boost' or 'remove'.
            dtrain (DMatrix): training data, must be cached.

        Raises:
            StateError: if a dataset, dtrain included, cannot use the cache.
        """
        self._check_ready()
        if action not in ('boost', 'remove'):
            raise ValueError(f"unknown interact action: {action}")
        train_preds = None
        offsets = []
        for entry in self.cache:
            buffer_offset = self.cache.lookup(entry.dmat, self.cache_token)
            if buffer_offset == NO_BUFFER:
                raise StateError("interact mode requires every dataset to be cached")
            offsets.append((entry.dmat, buffer_offset))
            preds = np.concatenate([
                self.gbm_.interact_predict(entry.dmat, buffer_offset, group) +
                np.float32(self.mparam.base_score)
                for group in range(self.gbm_.num_group())])
            if entry.dmat is dtrain:
                train_preds = preds
        if action == 'remove':
            self.gbm_.delete_booster()
            return
        if train_preds is None:
            raise StateError("interact mode requires the training data to be cached")
        grad, hess = self.obj_.get_gradient(train_preds, dtrain.info,
                                            self.gbm_.num_boosters())
        train_offset = next(offset for dmat, offset in offsets if dmat is dtrain)
        self._boost(grad, hess, dtrain, np.zeros(0, dtype=np.uint32), train_offset)
        for dmat, buffer_offset in offsets:
            self.gbm_.interact_re_predict(dmat, buffer_offset)

    def eval_one_iter(self, iteration: int, evals: Sequence[DMatrix],
                      evnames: Sequence[str]) -> str:
        self._check_ready()
        if len(evals) != len(evnames):
            raise ValueError("every evaluated dataset needs a name")
        res = f"[{iteration}]"
        for dmat, evname in zip(evals, evnames):
            preds = self.obj_.eval_transform(self.predict_raw(dmat))
            res += self.evaluator.eval(evname, preds, dmat.info)
        return res

    def evaluate(self, dmat: DMatrix, metric: str = 'auto') -> Tuple[str, float]:
        """
        Evaluates one metric, independently of the configured ones.

        Args:
            dmat (DMatrix): labeled data.
            metric (str): metric name, 'auto' for the objective's default.

        Returns:
            Tuple[str, float]: metric name and value, ('', 0.0) when the
            metric is unknown.
        """
        self._check_ready()
        if metric == 'auto':
            metric = self.obj_.default_eval_metric()
        evaluator = create_evaluator(metric)
        if evaluator is None:
            return '', 0.0
        preds = self.obj_.eval_transform(self.predict_raw(dmat))
        return metric, evaluator.eval(preds, dmat.info)

    def predict(self, dmat: DMatrix, bst_group: int = -1,
                output_margin: bool = False, tensor: bool = False,
                device: str = 'cpu') -> NumericalData:
        """
        Predicts with the objective's output transform.

        A single group of a multi-group model is returned as margins, the
        transform being defined over all groups.

        Args:
            dmat (DMatrix): input data.
            bst_group (int): output group to predict, -1 predicts every group.
            output_margin (bool): return untransformed margins.
            tensor (bool): return a PyTorch tensor instead of a numpy array.
            device (str): device of the returned tensor.

        Returns:
            NumericalData: predictions.
        """
        preds = self.predict_raw(dmat, bst_group)
        if not output_margin and (bst_group < 0 or self.gbm_.num_group() == 1):
            preds = self.obj_.pred_transform(preds)
        return ensure_leaf_tensor_or_array(np.ascontiguousarray(preds), tensor, device)

    def save_model(self, fo: BinaryIO) -> None:
        self._check_ready()
        self.mparam.save(fo)
        write_string(fo, self.name_obj)
        write_string(fo, self.name_gbm)
        self.gbm_.save_model(fo)

    def load_model(self, fi: BinaryIO) -> None:
        """
        Loads a model, replacing the objective and booster by the ones named
        in the stream. Recorded configuration is replayed into them before
        the booster reads its state. The learner is left untouched when
        loading fails.

        A prediction buffer whose size differs from the registered datasets
        is discarded, predictions on them are then recomputed from the trees.

        Raises:
            FormatError: if the stream is truncated or malformed.
            ConfigurationError: if the stream names an unknown objective or
            booster.
        """
        mparam = ModelHeader()
        mparam.load(fi)
        name_obj = read_string(fi, 'objective name')
        name_gbm = read_string(fi, 'booster name')
        obj, gbm = self._create_obj_gbm(name_obj, name_gbm)
        if mparam.num_class > 0:
            obj.set_param('num_class', str(mparam.num_class))
        gbm.load_model(fi)
        if self.cache_token is not None:
            gbm.set_param('num_pbuffer', str(self.cache.buffer_size))
        self.mparam = mparam
        self.name_obj, self.name_gbm = name_obj, name_gbm
        self.obj_, self.gbm_ = obj, gbm
        self.evaluator.add_eval(obj.default_eval_metric())
        self.model_ready = True

    def dump_model(self, fmap: Optional[Sequence[str]] = None,
                   with_stats: bool = False) -> List[str]:
        self._check_ready()
        return self.gbm_.dump_model(fmap, with_stats)

    def __copy__(self) -> "BoostLearner":
        """Copies the configuration and the model. Cached datasets are not shared."""
        learner = BoostLearner()
        for name, value in self.cfg:
            learner.set_param(name, value)
        if self.model_ready:
            buffer = io.BytesIO()
            self.save_model(buffer)
            buffer.seek(0)
            learner.load_model(buffer)
        return learner
