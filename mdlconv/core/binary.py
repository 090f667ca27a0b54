"""Big-endian byte-array writers for the container payload.

Indices are stored as 16-bit unsigned integers. That width is a hard limit of
the format, so out-of-range values raise :class:`IndexOverflow` instead of
wrapping.
"""

from __future__ import annotations
from typing import Sequence, Union
import numpy as np

from .errors import IndexOverflow

MAX_INDEX = 0xFFFF
INDEX_DTYPE = np.dtype(">u2")
FLOAT_DTYPE = np.dtype(">f4")
HEADER_LENGTH_DTYPE = np.dtype(">u4")
HEADER_LENGTH_SIZE = HEADER_LENGTH_DTYPE.itemsize

ArrayLike = Union[np.ndarray, Sequence[float], Sequence[int]]


def check_indices(values: ArrayLike) -> np.ndarray:
    arr = np.asarray(values, dtype=np.int64).reshape(-1)
    if arr.size:
        hi = int(arr.max())
        if hi > MAX_INDEX:
            raise IndexOverflow(hi, MAX_INDEX)
        lo = int(arr.min())
        if lo < 0:
            raise IndexOverflow(lo, MAX_INDEX)
    return arr


def _put(buffer: memoryview, offset: int, data: bytes) -> int:
    end = offset + len(data)
    if offset < 0 or end > len(buffer):
        raise ValueError(f"Write of {len(data)} bytes at offset {offset} exceeds buffer size {len(buffer)}")
    buffer[offset:end] = data
    return len(data)


def write_uint32(buffer: memoryview, offset: int, value: int) -> int:
    return _put(buffer, offset, np.array([value], dtype=HEADER_LENGTH_DTYPE).tobytes())


def write_uint16_array(buffer: memoryview, offset: int, values: ArrayLike) -> int:
    arr = check_indices(values)
    return _put(buffer, offset, arr.astype(INDEX_DTYPE).tobytes())


def write_float32_array(buffer: memoryview, offset: int, values: ArrayLike) -> int:
    arr = np.asarray(values, dtype=np.float64).reshape(-1)
    return _put(buffer, offset, arr.astype(FLOAT_DTYPE).tobytes())
