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
import struct
import sys
import unittest
from pathlib import Path

import numpy as np
from scipy.special import logit

ROOT_PATH = Path(__file__).parent.parent
sys.path.insert(0, str(ROOT_PATH))

from gblearn.common.config import LOSS_AUTO, LOSS_LINEAR, LOSS_LOGISTIC
from gblearn.common.errors import FormatError, StateError
from gblearn.learners.model_param import ConfigStore, ModelHeader
from gblearn.objectives import create_objective


class TestModelHeader(unittest.TestCase):

    def test_defaults(self):
        print("Running test_defaults")
        header = ModelHeader()
        self.assertEqual(header.base_score, 0.5)
        self.assertEqual(header.num_feature, 0)
        self.assertEqual(header.num_class, 0)
        self.assertEqual(header.loss_type, LOSS_AUTO)
        self.assertEqual(header.clear_period, 0)
        self.assertTrue(all(v == 0 for v in header.reserved))

    def test_num_feature_monotonic(self):
        print("Running test_num_feature_monotonic")
        header = ModelHeader()
        header.set_param('bst:num_feature', '5')
        header.set_param('bst:num_feature', '3')
        self.assertEqual(header.num_feature, 5)
        header.set_param('bst:num_feature', '7')
        self.assertEqual(header.num_feature, 7)

    def test_unknown_keys_ignored(self):
        print("Running test_unknown_keys_ignored")
        header = ModelHeader()
        header.set_param('eta', '0.1')
        header.set_param('objective', 'binary:logistic')
        self.assertEqual(header, ModelHeader())

    def test_binary_size_is_fixed(self):
        print("Running test_binary_size_is_fixed")
        self.assertEqual(ModelHeader.SIZE, 140)
        header = ModelHeader()
        for name, value in [('base_score', '0.25'), ('num_class', '4'),
                            ('bst:num_feature', '12'), ('loss_type', '3'),
                            ('clear_period', '10')]:
            header.set_param(name, value)
        buffer = io.BytesIO()
        header.save(buffer)
        self.assertEqual(len(buffer.getvalue()), ModelHeader.SIZE)
        base_score, num_feature, num_class = struct.unpack('<fIi', buffer.getvalue()[:12])
        self.assertEqual(base_score, 0.25)
        self.assertEqual(num_feature, 12)
        self.assertEqual(num_class, 4)

    def test_save_load(self):
        print("Running test_save_load")
        header = ModelHeader()
        header.set_param('base_score', '0.3')
        header.set_param('num_class', '3')
        header.set_param('bst:num_feature', '8')
        header.set_param('clear_period', '5')
        buffer = io.BytesIO()
        header.save(buffer)
        buffer.seek(0)
        loaded = ModelHeader()
        loaded.load(buffer)
        self.assertEqual(header, loaded)
        self.assertEqual(loaded.base_score, np.float32(0.3))

    def test_truncated_header(self):
        print("Running test_truncated_header")
        with self.assertRaises(FormatError):
            ModelHeader().load(io.BytesIO(b'\x00' * 50))

    def test_adjust_base_linear(self):
        print("Running test_adjust_base_linear")
        header = ModelHeader()
        header.adjust_base(create_objective('reg:linear'))
        self.assertEqual(header.base_score, 0.5)
        self.assertEqual(header.loss_type, LOSS_LINEAR)

    def test_adjust_base_logistic(self):
        print("Running test_adjust_base_logistic")
        header = ModelHeader()
        header.set_param('base_score', '0.7')
        header.adjust_base(create_objective('binary:logistic'))
        self.assertEqual(header.loss_type, LOSS_LOGISTIC)
        self.assertAlmostEqual(header.base_score, float(logit(0.7)), places=5)

        header = ModelHeader()
        header.adjust_base(create_objective('binary:logistic'))
        self.assertEqual(header.base_score, 0.0)

    def test_adjust_base_explicit_loss_type(self):
        print("Running test_adjust_base_explicit_loss_type")
        header = ModelHeader()
        header.set_param('loss_type', str(LOSS_LINEAR))
        header.set_param('base_score', '3.0')
        header.adjust_base(create_objective('binary:logistic'))
        self.assertEqual(header.base_score, 3.0)

    def test_adjust_base_out_of_range(self):
        print("Running test_adjust_base_out_of_range")
        for base_score in ['0', '1', '1.5', '-0.2']:
            header = ModelHeader()
            header.set_param('base_score', base_score)
            with self.assertRaises(StateError):
                header.adjust_base(create_objective('reg:logistic'))


class TestConfigStore(unittest.TestCase):

    def test_replay_order(self):
        print("Running test_replay_order")
        cfg = ConfigStore()
        pairs = [('eta', '0.1'), ('max_depth', '3'), ('eta', '0.2'), ('unknown', 'x')]
        for name, value in pairs:
            cfg.append(name, value)
        first, second = [], []
        cfg.replay(lambda n, v: first.append((n, v)),
                   lambda n, v: second.append((n, v)))
        self.assertEqual(first, pairs)
        self.assertEqual(second, pairs)
        self.assertEqual(list(cfg), pairs)
        self.assertEqual(len(cfg), 4)


if __name__ == '__main__':
    unittest.main()
