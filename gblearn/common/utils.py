##############################################################################
# Copyright (c) 2024, NVIDIA Corporation. All rights reserved.
#
# This work is made available under the Nvidia Source Code License-NC.
# To view a copy of this license, visit
# https://nvlabs.github.io/gbrl/license.html
#
##############################################################################
import struct
from typing import BinaryIO, Tuple, Union

import numpy as np
import torch as th
from scipy.special import expit, logit, softmax

from gblearn.common.config import STRING_LENGTH_FORMAT
from gblearn.common.errors import FormatError, StateError

numerical_dtype = np.dtype('float32')
NumericalData = Union[np.ndarray, th.Tensor]
GradientPairs = Tuple[np.ndarray, np.ndarray]


def to_numpy(arr: NumericalData) -> np.ndarray:
    if isinstance(arr, th.Tensor):
        arr = arr.detach().cpu().numpy()
    return np.ascontiguousarray(arr, dtype=numerical_dtype)


def to_matrix(arr: NumericalData) -> np.ndarray:
    """Formats a feature array as a 2D float32 matrix.

    A 1D input is treated as a single column, matching how a dataset of
    single-feature rows is usually written.

    Args:
        arr (NumericalData): numpy array or torch tensor.

    Returns:
        np.ndarray: contiguous 2D float32 matrix.
    """
    arr = to_numpy(arr)
    if arr.ndim == 1:
        arr = arr[:, np.newaxis]
    if arr.ndim > 2:
        arr = arr.reshape((arr.shape[0], -1))
    return arr


def validate_array(arr: NumericalData) -> None:
    """Checks for NaN and Inf values in an array/tensor.

    Args:
        arr (NumericalData): array/tensor
    """
    if isinstance(arr, np.ndarray):
        assert not np.isnan(arr).any(), "nan in array"
        assert not np.isinf(arr).any(), "infinity in array"
    else:
        assert not th.isnan(arr).any(), "nan in tensor"
        assert not th.isinf(arr).any(), "infinity in tensor"


def prob_to_margin(base_score: float) -> float:
    """Maps a probability to margin space through the inverse sigmoid.

    Args:
        base_score (float): probability, must lie in (0, 1).

    Returns:
        float: logit of base_score.

    Raises:
        StateError: if base_score is outside the open interval (0, 1).
    """
    if not 0.0 < base_score < 1.0:
        raise StateError("base_score must be in (0,1) for a probability "
                         f"based loss, got {base_score}")
    return float(np.float32(logit(np.float32(base_score))))


def sigmoid(margin: np.ndarray) -> np.ndarray:
    return expit(margin).astype(numerical_dtype)


def group_softmax(preds: np.ndarray, num_group: int) -> np.ndarray:
    """Softmax over groups of a group-major prediction vector.

    Args:
        preds (np.ndarray): predictions of length rows * num_group, group g
            stored in [g * rows, (g + 1) * rows).
        num_group (int): number of groups (classes).

    Returns:
        np.ndarray: probabilities with the same group-major layout.
    """
    margins = preds.reshape((num_group, -1))
    return softmax(margins, axis=0).astype(numerical_dtype).ravel()


def ensure_leaf_tensor_or_array(array: np.ndarray, tensor: bool,
                                device: str = 'cpu') -> NumericalData:
    """
    Returns predictions as a detached PyTorch tensor if `tensor=True`,
    otherwise as the numpy array itself.

    Args:
        array (np.ndarray): predictions.
        tensor (bool): If True, convert the output to a PyTorch tensor.
        device (str, optional): target tensor device. Defaults to 'cpu'.

    Returns:
        NumericalData: A PyTorch tensor or a NumPy array.
    """
    if tensor:
        return th.from_numpy(array).to(device)
    return array


def write_string(fo: BinaryIO, value: str) -> None:
    data = value.encode('utf-8')
    fo.write(struct.pack(STRING_LENGTH_FORMAT, len(data)))
    fo.write(data)


def read_exact(fi: BinaryIO, size: int, what: str) -> bytes:
    data = fi.read(size)
    if len(data) != size:
        raise FormatError(f"wrong model format: truncated {what}, expected "
                          f"{size} bytes, got {len(data)}")
    return data


def read_string(fi: BinaryIO, what: str = 'string') -> str:
    prefix = read_exact(fi, struct.calcsize(STRING_LENGTH_FORMAT),
                        f'{what} length')
    length, = struct.unpack(STRING_LENGTH_FORMAT, prefix)
    try:
        return read_exact(fi, length, what).decode('utf-8')
    except UnicodeDecodeError as e:
        raise FormatError(f"wrong model format: malformed {what}") from e


def write_array(fo: BinaryIO, arr: np.ndarray) -> None:
    np.save(fo, arr, allow_pickle=False)


def read_array(fi: BinaryIO, what: str = 'array') -> np.ndarray:
    try:
        return np.load(fi, allow_pickle=False)
    except (ValueError, EOFError) as e:
        raise FormatError(f"wrong model format: cannot read {what}") from e
