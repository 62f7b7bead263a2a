"""Binary model streams.

A model file is a single zlib-compressed payload preceded by its uncompressed
length as a big-endian ``uint32``. Inside the payload, transforms and distances
write their state with the typed primitives of :class:`ModelWriter`.
"""
from __future__ import annotations

import io
import os
import struct
import zlib

import numpy as np

from ..errors import FatalError

_UINT32 = struct.Struct(">I")
_INT64 = struct.Struct(">q")
_FLOAT64 = struct.Struct(">d")


class ModelWriter:
    """Append-only typed stream."""

    def __init__(self) -> None:
        self._buffer = io.BytesIO()

    def write_string(self, value: str) -> None:
        encoded = value.encode("utf-8")
        self._buffer.write(_UINT32.pack(len(encoded)))
        self._buffer.write(encoded)

    def write_bool(self, value: bool) -> None:
        self._buffer.write(b"\x01" if value else b"\x00")

    def write_int(self, value: int) -> None:
        self._buffer.write(_INT64.pack(int(value)))

    def write_float(self, value: float) -> None:
        self._buffer.write(_FLOAT64.pack(float(value)))

    def write_array(self, array: np.ndarray) -> None:
        np.save(self._buffer, np.asarray(array), allow_pickle=False)

    def getvalue(self) -> bytes:
        return self._buffer.getvalue()


class ModelReader:
    """Reader for streams produced by :class:`ModelWriter`."""

    def __init__(self, payload: bytes) -> None:
        self._buffer = io.BytesIO(payload)
        self._size = len(payload)

    def _read_exact(self, size: int) -> bytes:
        data = self._buffer.read(size)
        if len(data) != size:
            raise FatalError("Truncated model stream")
        return data

    def read_string(self) -> str:
        (length,) = _UINT32.unpack(self._read_exact(_UINT32.size))
        return self._read_exact(length).decode("utf-8")

    def read_bool(self) -> bool:
        return self._read_exact(1) != b"\x00"

    def read_int(self) -> int:
        return _INT64.unpack(self._read_exact(_INT64.size))[0]

    def read_float(self) -> float:
        return _FLOAT64.unpack(self._read_exact(_FLOAT64.size))[0]

    def read_array(self) -> np.ndarray:
        if self.at_end():
            raise FatalError("Truncated model stream")
        try:
            return np.load(self._buffer, allow_pickle=False)
        except (ValueError, EOFError) as exc:
            raise FatalError(f"Corrupt array in model stream: {exc}") from exc

    def at_end(self) -> bool:
        return self._buffer.tell() >= self._size


def compress(payload: bytes) -> bytes:
    return _UINT32.pack(len(payload)) + zlib.compress(payload)


def decompress(data: bytes) -> bytes:
    if len(data) < _UINT32.size:
        raise FatalError("Truncated model stream")
    (expected,) = _UINT32.unpack(data[:_UINT32.size])
    try:
        payload = zlib.decompress(data[_UINT32.size:])
    except zlib.error as exc:
        raise FatalError(f"Corrupt model stream: {exc}") from exc
    if len(payload) != expected:
        raise FatalError(f"Model stream length mismatch: expected {expected}, got {len(payload)}")
    return payload


def write_model_file(path: str, writer: ModelWriter) -> None:
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(path, "wb") as handle:
        handle.write(compress(writer.getvalue()))


def read_model_file(path: str) -> ModelReader:
    if not os.path.isfile(path):
        raise FatalError(f"Missing model file {path}")
    with open(path, "rb") as handle:
        return ModelReader(decompress(handle.read()))
