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
import sys
import unittest
from contextlib import redirect_stderr, redirect_stdout
from pathlib import Path

ROOT_PATH = Path(__file__).parent.parent
sys.path.insert(0, str(ROOT_PATH))

from gblearn.common.config import NO_BUFFER
from gblearn.common.errors import StateError
from gblearn.data import DMatrix
from gblearn.learners.boost_learner import BoostLearner
from gblearn.learners.cache import PredictionCache
from tests import regression_data


def make_dmatrix(num_row: int, seed: int = 0) -> DMatrix:
    X, y = regression_data(num_row=num_row, seed=seed)
    return DMatrix(X, label=y)


class TestPredictionCache(unittest.TestCase):

    def test_deduplicates_by_identity(self):
        print("Running test_deduplicates_by_identity")
        d1, d2 = make_dmatrix(5), make_dmatrix(7)
        cache = PredictionCache()
        token = cache.register([d1, d1, d2, d1])
        self.assertEqual(len(cache), 2)
        self.assertEqual(cache.buffer_size, 12)
        self.assertEqual(cache.lookup(d1, token), 0)
        self.assertEqual(cache.lookup(d2, token), 5)

    def test_equal_values_are_distinct_datasets(self):
        print("Running test_equal_values_are_distinct_datasets")
        X, y = regression_data(num_row=4)
        d1, d2 = DMatrix(X, label=y), DMatrix(X, label=y)
        cache = PredictionCache()
        cache.register([d1, d2])
        self.assertEqual(len(cache), 2)
        self.assertEqual(cache.buffer_size, 8)

    def test_offsets_disjoint_and_monotone(self):
        print("Running test_offsets_disjoint_and_monotone")
        dmats = [make_dmatrix(n, seed=n) for n in [3, 1, 8, 4]]
        cache = PredictionCache()
        token = cache.register(dmats)
        offsets = [cache.lookup(dmat, token) for dmat in dmats]
        self.assertEqual(offsets, [0, 3, 4, 12])
        for entry, next_entry in zip(list(cache)[:-1], list(cache)[1:]):
            self.assertEqual(entry.buffer_offset + entry.num_row, next_entry.buffer_offset)

    def test_stable_lookup(self):
        print("Running test_stable_lookup")
        d1, d2 = make_dmatrix(5), make_dmatrix(6)
        cache = PredictionCache()
        token = cache.register([d1, d2])
        for _ in range(3):
            self.assertEqual(cache.lookup(d2, token), 5)

    def test_row_change_disables_lookup(self):
        print("Running test_row_change_disables_lookup")
        dmat = make_dmatrix(5)
        cache = PredictionCache()
        token = cache.register([dmat])
        X, y = regression_data(num_row=2, seed=1)
        dmat.add_rows(X, y)
        err = io.StringIO()
        with redirect_stderr(err):
            offset = cache.lookup(dmat, token)
        self.assertEqual(offset, NO_BUFFER)
        self.assertIn("number of rows", err.getvalue())

    def test_foreign_owner_disables_lookup(self):
        print("Running test_foreign_owner_disables_lookup")
        dmat = make_dmatrix(5)
        first, second = PredictionCache(), PredictionCache()
        first_token = first.register([dmat])
        second_token = second.register([dmat])
        err = io.StringIO()
        with redirect_stderr(err):
            self.assertEqual(first.lookup(dmat, first_token), NO_BUFFER)
        self.assertIn("another learner", err.getvalue())
        self.assertEqual(second.lookup(dmat, second_token), 0)

    def test_unknown_dataset_or_token(self):
        print("Running test_unknown_dataset_or_token")
        d1, d2 = make_dmatrix(5), make_dmatrix(5)
        cache = PredictionCache()
        token = cache.register([d1])
        self.assertEqual(cache.lookup(d2, token), NO_BUFFER)
        self.assertEqual(cache.lookup(d1, None), NO_BUFFER)
        self.assertEqual(PredictionCache().lookup(d1, token), NO_BUFFER)

    def test_register_twice(self):
        print("Running test_register_twice")
        cache = PredictionCache()
        cache.register([make_dmatrix(3)])
        with self.assertRaises(StateError):
            cache.register([make_dmatrix(3)])

    def test_learner_cache(self):
        print("Running test_learner_cache")
        dtrain, dtest = make_dmatrix(10), make_dmatrix(4, seed=1)
        out = io.StringIO()
        with redirect_stdout(out):
            learner = BoostLearner([dtrain, dtest, dtrain])
        self.assertIn("buffer_size=14", out.getvalue())
        self.assertEqual(len(learner.cache), 2)
        self.assertEqual(learner.mparam.num_feature, dtrain.num_col)
        with self.assertRaises(StateError):
            learner.set_cache_data([dtrain])

    def test_learner_cache_silent(self):
        print("Running test_learner_cache_silent")
        learner = BoostLearner()
        learner.set_param('silent', 1)
        out = io.StringIO()
        with redirect_stdout(out):
            learner.set_cache_data([make_dmatrix(3)])
        self.assertEqual(out.getvalue(), "")
        self.assertIn(('num_pbuffer', '3'), list(learner.cfg))


if __name__ == '__main__':
    unittest.main()
