"""
Binary codec for parameter buffers.

Layout of one buffer record (all little-endian):

    uint64            rank
    uint64 * rank     dimensions
    float32 * prod    data, C order

Records are written back to back with no node-boundary markers; a reader
needs the live graph to know how many records belong to which node.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, BinaryIO

import numpy as np

from dagnet.utils.data.formatting import format_shape
from dagnet.utils.errors.exceptions import ParameterStreamError

if TYPE_CHECKING:
    from dagnet.core.graph.buffer import Buffer

_HEADER_DTYPE = np.dtype("<u8")
_DATA_DTYPE = np.dtype("<f4")

# Guards against interpreting garbage as an absurdly large rank
_MAX_RANK = 32


def _read_exact(stream: BinaryIO, n_bytes: int, what: str) -> bytes:
    raw = stream.read(n_bytes)
    if raw is None or len(raw) != n_bytes:
        got = 0 if raw is None else len(raw)
        msg = f"Parameter stream exhausted while reading {what}: expected {n_bytes} bytes, got {got}."
        raise ParameterStreamError(msg)
    return raw


def write_buffer(stream: BinaryIO, buffer: Buffer):
    """
    Write one buffer record to `stream`.

    Args:
        stream (BinaryIO): Writable binary stream.
        buffer (Buffer): Buffer whose data is written.

    """
    shape = np.asarray(buffer.shape, dtype=_HEADER_DTYPE)
    stream.write(np.asarray([shape.size], dtype=_HEADER_DTYPE).tobytes())
    stream.write(shape.tobytes())
    stream.write(np.ascontiguousarray(buffer.data, dtype=_DATA_DTYPE).tobytes())


def read_shape(stream: BinaryIO) -> tuple[int, ...]:
    """
    Read the shape header of the next record.

    Raises:
        ParameterStreamError: If the stream ends inside the header or the
            rank is implausible.

    """
    (rank,) = np.frombuffer(_read_exact(stream, _HEADER_DTYPE.itemsize, "rank"), dtype=_HEADER_DTYPE)
    if rank > _MAX_RANK:
        msg = f"Invalid buffer rank {int(rank)} in parameter stream."
        raise ParameterStreamError(msg)
    dims = np.frombuffer(
        _read_exact(stream, _HEADER_DTYPE.itemsize * int(rank), "shape"),
        dtype=_HEADER_DTYPE,
    )
    return tuple(int(d) for d in dims)


def read_buffer_into(stream: BinaryIO, buffer: Buffer):
    """
    Read the next record from `stream` into `buffer.data`.

    Args:
        stream (BinaryIO): Readable binary stream.
        buffer (Buffer): Live buffer receiving the data; its shape must match
            the persisted shape.

    Raises:
        ParameterStreamError: If the stream is exhausted early or the persisted
            shape does not match the buffer's shape.

    """
    shape = read_shape(stream)
    if shape != tuple(buffer.shape):
        msg = (
            f"Persisted shape {format_shape(shape)} does not match "
            f"buffer shape {format_shape(buffer.shape)}."
        )
        raise ParameterStreamError(msg)

    n_bytes = _DATA_DTYPE.itemsize * int(np.prod(shape, dtype=np.int64))
    values = np.frombuffer(_read_exact(stream, n_bytes, "buffer data"), dtype=_DATA_DTYPE)
    buffer.data[...] = values.reshape(shape)
