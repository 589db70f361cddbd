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
import numpy as np

from gblearn.data import DMatrix

# three rows of a single feature
TOY_INPUTS = [1.0, 2.0, 3.0]
TOY_LABELS = [1.0, 2.0, 3.0]


def toy_dmatrix() -> DMatrix:
    return DMatrix(np.array(TOY_INPUTS, dtype=np.float32),
                   label=np.array(TOY_LABELS, dtype=np.float32))


def regression_data(num_row: int = 60, num_col: int = 3, seed: int = 0):
    rng = np.random.default_rng(seed)
    X = rng.normal(size=(num_row, num_col)).astype(np.float32)
    y = (X @ np.arange(1, num_col + 1) + 0.1 * rng.normal(size=num_row)).astype(np.float32)
    return X, y


def binary_data(num_row: int = 60, num_col: int = 3, seed: int = 0):
    X, y = regression_data(num_row, num_col, seed)
    return X, (y > np.median(y)).astype(np.float32)
