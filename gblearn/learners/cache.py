##############################################################################
# Copyright (c) 2024, NVIDIA Corporation. All rights reserved.
#
# This work is made available under the Nvidia Source Code License-NC.
# To view a copy of this license, visit
# https://nvlabs.github.io/gbrl/license.html
#
##############################################################################
"""
Prediction Cache Module

This module assigns every cached dataset a disjoint range of the booster's
prediction buffer. The cache only keeps offsets; predicted values live in
the booster.
"""
import sys
import weakref
from typing import Iterator, List, Optional, Sequence

from gblearn.common.config import NO_BUFFER
from gblearn.common.errors import StateError
from gblearn.data import DMatrix

# dataset -> token of the cache that registered it last
_OWNERS: "weakref.WeakKeyDictionary[DMatrix, CacheToken]" = weakref.WeakKeyDictionary()


class CacheToken:
    """Opaque handle identifying one registration of a PredictionCache."""
    __slots__ = ('__weakref__',)


class CacheEntry:
    """A cached dataset, its buffer offset and its row count at registration."""
    __slots__ = ('dmat', 'buffer_offset', 'num_row')

    def __init__(self, dmat: DMatrix, buffer_offset: int, num_row: int):
        self.dmat = dmat
        self.buffer_offset = buffer_offset
        self.num_row = num_row


class PredictionCache:
    """
    Allocates prediction buffer ranges to datasets.

    Registration happens once: every distinct dataset, in first seen order,
    receives the range [offset, offset + num_row) following the previous
    one. A dataset may be owned by a single cache at a time; registering it
    with another cache transfers ownership and disables its lookups here.
    """
    def __init__(self):
        self.entries: List[CacheEntry] = []
        self.buffer_size = 0
        self.token: Optional[CacheToken] = None

    def register(self, dmats: Sequence[DMatrix]) -> CacheToken:
        """
        Registers the datasets whose predictions should be cached.

        Args:
            dmats (Sequence[DMatrix]): datasets, duplicates are ignored.

        Returns:
            CacheToken: handle to pass back to lookup.

        Raises:
            StateError: if this cache was already registered.
        """
        if self.token is not None:
            raise StateError("can only call cache data once")
        token = CacheToken()
        for dmat in dmats:
            if any(entry.dmat is dmat for entry in self.entries):
                continue
            self.entries.append(CacheEntry(dmat, self.buffer_size, dmat.num_row))
            self.buffer_size += dmat.num_row
            _OWNERS[dmat] = token
        self.token = token
        return token

    def lookup(self, dmat: DMatrix, token: Optional[CacheToken]) -> int:
        """
        Finds the buffer offset of a dataset.

        Args:
            dmat (DMatrix): dataset to predict.
            token (Optional[CacheToken]): handle returned by register.

        Returns:
            int: the buffer offset, NO_BUFFER when dmat is not cached, is
            owned by another cache or changed its number of rows.
        """
        if token is None or token is not self.token:
            return NO_BUFFER
        for entry in self.entries:
            if entry.dmat is not dmat:
                continue
            if _OWNERS.get(dmat) is not token:
                print("warning: input matrix is cached by another learner, "
                      "ignore cached results", file=sys.stderr)
            elif entry.num_row != dmat.num_row:
                print("warning: number of rows in input matrix changed as "
                      "remembered in cachelist, ignore cached results",
                      file=sys.stderr)
            else:
                return entry.buffer_offset
        return NO_BUFFER

    def __iter__(self) -> Iterator[CacheEntry]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)
