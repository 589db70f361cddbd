##############################################################################
# Copyright (c) 2024-2025, NVIDIA Corporation. All rights reserved.
#
# Permission is hereby granted, free of charge, to any person obtaining a
# copy of this software and associated documentation files (the "Software"),
# to deal in the Software without restriction, including without limitation
# the rights to use, copy, modify, merge, publish, distribute, sublicense,
# and/or sell copies of the Software, and to permit persons to whom the
# Software is furnished to do so, subject to the following conditions:
#
# The above copyright notice and this permission notice shall be included in
# all copies or substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
# IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
# FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL
# THE AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
# LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING
# FROM, OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER
# DEALINGS IN THE SOFTWARE.
##############################################################################
import io
import os
import shutil
import sys
import tempfile
import unittest
from pathlib import Path

import numpy as np

ROOT_PATH = Path(__file__).parent.parent
sys.path.insert(0, str(ROOT_PATH))

from gblearn.common.errors import ConfigurationError, FormatError
from gblearn.common.utils import write_string
from gblearn.data import DMatrix
from gblearn.learners.boost_learner import BoostLearner
from gblearn.learners.model_param import ModelHeader
from tests import binary_data, regression_data, toy_dmatrix


def train_learner(params, dtrain, num_iters):
    learner = BoostLearner()
    learner.set_param('silent', 1)
    for name, value in params:
        learner.set_param(name, value)
    learner.set_cache_data([dtrain])
    learner.init_model()
    for i in range(num_iters):
        learner.update_one_iter(i, dtrain)
    return learner


def save_to_bytes(learner) -> bytes:
    buffer = io.BytesIO()
    learner.save_model(buffer)
    return buffer.getvalue()


class TestSerialization(unittest.TestCase):

    @classmethod
    def setUpClass(cls):
        cls.binary_data = binary_data(num_row=50)
        cls.reg_data = regression_data(num_row=50)
        cls.test_dir = tempfile.mkdtemp()

    @classmethod
    def tearDownClass(cls):
        shutil.rmtree(cls.test_dir)

    def test_round_trip(self):
        print("Running test_round_trip")
        X, y = self.binary_data
        dtrain = DMatrix(X, label=y)
        params = [('objective', 'binary:logistic'), ('max_depth', 3),
                  ('clear_period', 4)]
        learner = train_learner(params, dtrain, 2)
        loaded = BoostLearner()
        loaded.set_param('silent', 1)
        loaded.load_model(io.BytesIO(save_to_bytes(learner)))
        self.assertEqual(loaded.mparam, learner.mparam)
        self.assertEqual(loaded.name_obj, 'binary:logistic')
        self.assertEqual(loaded.name_gbm, 'gbtree')
        self.assertEqual(loaded.num_boosters(), 2)
        uncached = dtrain.slice(range(dtrain.num_row))
        np.testing.assert_array_equal(loaded.predict(uncached), learner.predict(uncached))
        self.assertEqual(save_to_bytes(loaded), save_to_bytes(learner))

    def test_stream_layout(self):
        print("Running test_stream_layout")
        X, y = self.binary_data
        learner = train_learner([('objective', 'reg:logistic')], DMatrix(X, label=y), 1)
        data = save_to_bytes(learner)
        header = ModelHeader()
        header.load(io.BytesIO(data[:ModelHeader.SIZE]))
        self.assertEqual(header, learner.mparam)
        names = io.BytesIO()
        write_string(names, 'reg:logistic')
        write_string(names, 'gbtree')
        offset = ModelHeader.SIZE
        self.assertEqual(data[offset:offset + len(names.getvalue())], names.getvalue())

    def test_names_come_from_stream(self):
        print("Running test_names_come_from_stream")
        X, y = self.reg_data
        learner = train_learner([('booster', 'gblinear')], DMatrix(X, label=y), 2)
        loaded = BoostLearner()
        loaded.set_param('silent', 1)
        loaded.set_param('objective', 'binary:logistic')
        loaded.set_param('booster', 'gbtree')
        loaded.load_model(io.BytesIO(save_to_bytes(learner)))
        self.assertEqual(loaded.name_obj, 'reg:linear')
        self.assertEqual(loaded.name_gbm, 'gblinear')
        dtest = DMatrix(X)
        np.testing.assert_array_equal(loaded.predict(dtest), learner.predict(dtest))

    def test_multiclass_round_trip(self):
        print("Running test_multiclass_round_trip")
        X, y = self.reg_data
        labels = (np.argsort(np.argsort(y)) * 3 // len(y)).astype(np.float32)
        dtrain = DMatrix(X, label=labels)
        learner = train_learner([('num_class', 3), ('objective', 'multi:softprob'),
                                 ('max_depth', 2)], dtrain, 2)
        loaded = BoostLearner()
        loaded.set_param('silent', 1)
        loaded.load_model(io.BytesIO(save_to_bytes(learner)))
        self.assertEqual(loaded.obj_.num_class, 3)
        dtest = DMatrix(X)
        np.testing.assert_allclose(loaded.predict(dtest), learner.predict(dtest))

    def test_truncated_stream(self):
        print("Running test_truncated_stream")
        learner = train_learner([], toy_dmatrix(), 2)
        data = save_to_bytes(learner)
        names_end = ModelHeader.SIZE + 2 * 8 + len('reg:linear') + len('gbtree')
        for cut in [0, 50, ModelHeader.SIZE, ModelHeader.SIZE + 4,
                    ModelHeader.SIZE + 12, names_end, names_end + 10, len(data) - 1]:
            loaded = BoostLearner()
            loaded.set_param('silent', 1)
            with self.assertRaises(FormatError, msg=f'cut at {cut}'):
                loaded.load_model(io.BytesIO(data[:cut]))

    def test_unknown_name_in_stream(self):
        print("Running test_unknown_name_in_stream")
        buffer = io.BytesIO()
        ModelHeader().save(buffer)
        write_string(buffer, 'reg:linear')
        write_string(buffer, 'gbforest')
        buffer.seek(0)
        with self.assertRaises(ConfigurationError):
            BoostLearner().load_model(buffer)

    def test_failed_load_keeps_model(self):
        print("Running test_failed_load_keeps_model")
        X, y = self.reg_data
        dtrain = DMatrix(X, label=y)
        learner = train_learner([('max_depth', 3)], dtrain, 3)
        data = save_to_bytes(learner)
        dtest = DMatrix(X)
        expected = learner.predict(dtest)

        with self.assertRaises(FormatError):
            learner.load_model(io.BytesIO(data[:len(data) // 2]))
        buffer = io.BytesIO()
        ModelHeader().save(buffer)
        write_string(buffer, 'binary:logistic')
        write_string(buffer, 'gbforest')
        buffer.seek(0)
        with self.assertRaises(ConfigurationError):
            learner.load_model(buffer)

        self.assertEqual(learner.name_obj, 'reg:linear')
        self.assertEqual(learner.name_gbm, 'gbtree')
        self.assertEqual(learner.num_boosters(), 3)
        np.testing.assert_array_equal(learner.predict(dtest), expected)
        self.assertEqual(save_to_bytes(learner), data)
        loaded = BoostLearner()
        loaded.set_param('silent', 1)
        loaded.load_model(io.BytesIO(save_to_bytes(learner)))
        np.testing.assert_array_equal(loaded.predict(dtest), expected)

    def test_load_into_different_cache(self):
        print("Running test_load_into_different_cache")
        X, y = self.reg_data
        dtrain = DMatrix(X, label=y)
        uncached = BoostLearner()
        uncached.set_param('silent', 1)
        uncached.init_model()
        for i in range(2):
            uncached.update_one_iter(i, dtrain)
        cached = train_learner([], DMatrix(X, label=y), 2)

        for source in [uncached, cached]:
            dtest = DMatrix(X[:10], label=y[:10])
            loaded = BoostLearner()
            loaded.set_param('silent', 1)
            loaded.set_cache_data([dtest])
            loaded.load_model(io.BytesIO(save_to_bytes(source)))
            np.testing.assert_allclose(loaded.predict(dtest),
                                       source.predict(DMatrix(X[:10])), rtol=1e-5)
            loaded.update_one_iter(2, dtest)
            self.assertEqual(loaded.num_boosters(), 3)
            np.testing.assert_allclose(loaded.predict(dtest),
                                       loaded.predict(dtest.slice(range(10))), rtol=1e-5)

    def test_resume_after_load(self):
        print("Running test_resume_after_load")
        X, y = self.reg_data
        params = [('max_depth', 3), ('eta', 0.5)]
        dcontinuous = DMatrix(X, label=y)
        continuous = train_learner(params, dcontinuous, 4)

        dresumed = DMatrix(X, label=y)
        first = train_learner(params, dresumed, 2)
        filename = os.path.join(self.test_dir, 'test_resume_after_load.model')
        first.save(filename)
        resumed = BoostLearner()
        resumed.set_param('silent', 1)
        for name, value in params:
            resumed.set_param(name, value)
        resumed.load(filename)
        resumed.set_cache_data([dresumed])
        for i in range(2, 4):
            resumed.update_one_iter(i, dresumed)
        np.testing.assert_array_equal(resumed.predict(dresumed),
                                      continuous.predict(dcontinuous))
        self.assertEqual(save_to_bytes(resumed), save_to_bytes(continuous))

    def test_resume_toy(self):
        print("Running test_resume_toy")
        dcontinuous = toy_dmatrix()
        continuous = train_learner([], dcontinuous, 2)

        dresumed = toy_dmatrix()
        first = train_learner([], dresumed, 1)
        resumed = BoostLearner()
        resumed.set_param('silent', 1)
        resumed.set_cache_data([dresumed])
        resumed.load_model(io.BytesIO(save_to_bytes(first)))
        resumed.update_one_iter(1, dresumed)
        np.testing.assert_array_equal(resumed.predict(dresumed),
                                      continuous.predict(dcontinuous))


if __name__ == '__main__':
    unittest.main()
