# Copyright 2026 The Pigweed Authors
#
# Licensed under the Apache License, Version 2.0 (the "License"); you may not
# use this file except in compliance with the License. You may obtain a copy of
# the License at
#
#     https://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS, WITHOUT
# WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied. See the
# License for the specific language governing permissions and limitations under
# the License.
"""Low-level protobuf binary encoding primitives.

BinaryEncoder appends raw wire values (varints, fixed-width integers, floats)
to a byte buffer. It knows nothing about tags or fields; see writer.py for the
field-level API used by generated code.

Every method validates its input before writing. Values outside the range of
the target type, or non-integral values passed to integer encoders, raise
ValidationError: these are programming errors and fail immediately.
"""

import math
import struct
from typing import Union

from pw_protogen import wire_format
from pw_protogen.errors import ValidationError
from pw_protogen.wire_format import (
    INT32_MAX,
    INT32_MIN,
    INT64_MAX,
    INT64_MIN,
    UINT32_MAX,
    UINT64_MAX,
)

_FLOAT32_MAX = 3.4028234663852886e38

Number = Union[int, float]


def check_integer(value: Number, minimum: int, maximum: int,
                  type_name: str) -> int:
    """Returns value as an int after checking it is integral and in range."""
    if isinstance(value, bool):
        value = int(value)
    elif isinstance(value, float):
        if not value.is_integer():
            raise ValidationError(
                f'{value!r} is not an integer and cannot be encoded as '
                f'{type_name}')
        value = int(value)
    elif not isinstance(value, int):
        raise ValidationError(
            f'Expected an integer for {type_name}, got {type(value).__name__}')

    if not minimum <= value <= maximum:
        raise ValidationError(
            f'{value} is out of range for {type_name} '
            f'[{minimum}, {maximum}]')
    return value


def check_float(value: Number, type_name: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(
            f'Expected a number for {type_name}, got {type(value).__name__}')
    return float(value)


class BinaryEncoder:
    """Append-only byte sink for raw protobuf wire values."""
    def __init__(self) -> None:
        self._buffer = bytearray()

    def __len__(self) -> int:
        return len(self._buffer)

    def end(self) -> bytes:
        """Returns the bytes written so far and resets the encoder."""
        data = bytes(self._buffer)
        self._buffer = bytearray()
        return data

    def write_raw(self, data: bytes) -> None:
        self._buffer += data

    def write_unsigned_varint64(self, value: Number) -> None:
        """Writes a 64-bit unsigned integer as a base-128 varint."""
        value = check_integer(value, 0, UINT64_MAX, 'uint64')
        while value > 0x7F:
            self._buffer.append((value & 0x7F) | 0x80)
            value >>= 7
        self._buffer.append(value)

    def write_unsigned_varint32(self, value: Number) -> None:
        self.write_unsigned_varint64(
            check_integer(value, 0, UINT32_MAX, 'uint32'))

    def write_signed_varint32(self, value: Number) -> None:
        """Writes an int32 as a varint.

        Negative values are sign-extended to 64 bits, so they always occupy 10
        bytes with a final byte of 0x01.
        """
        value = check_integer(value, INT32_MIN, INT32_MAX, 'int32')
        self.write_unsigned_varint64(wire_format.to_unsigned(value, 64))

    def write_signed_varint64(self, value: Number) -> None:
        value = check_integer(value, INT64_MIN, INT64_MAX, 'int64')
        self.write_unsigned_varint64(wire_format.to_unsigned(value, 64))

    def write_zigzag_varint32(self, value: Number) -> None:
        value = check_integer(value, INT32_MIN, INT32_MAX, 'sint32')
        self.write_unsigned_varint64(wire_format.zigzag_encode(value, 32))

    def write_zigzag_varint64(self, value: Number) -> None:
        value = check_integer(value, INT64_MIN, INT64_MAX, 'sint64')
        self.write_unsigned_varint64(wire_format.zigzag_encode(value, 64))

    def write_uint32(self, value: Number) -> None:
        """Writes a fixed32: four little-endian bytes."""
        self._buffer += struct.pack(
            '<I', check_integer(value, 0, UINT32_MAX, 'fixed32'))

    def write_int32(self, value: Number) -> None:
        self._buffer += struct.pack(
            '<i', check_integer(value, INT32_MIN, INT32_MAX, 'sfixed32'))

    def write_uint64(self, value: Number) -> None:
        self._buffer += struct.pack(
            '<Q', check_integer(value, 0, UINT64_MAX, 'fixed64'))

    def write_int64(self, value: Number) -> None:
        self._buffer += struct.pack(
            '<q', check_integer(value, INT64_MIN, INT64_MAX, 'sfixed64'))

    def write_float(self, value: Number) -> None:
        """Writes a float32. Finite values beyond float32 range are rejected."""
        value = check_float(value, 'float')
        if math.isfinite(value) and abs(value) > _FLOAT32_MAX:
            raise ValidationError(f'{value} is out of range for float')
        self._buffer += struct.pack('<f', value)

    def write_double(self, value: Number) -> None:
        self._buffer += struct.pack('<d', check_float(value, 'double'))

    def write_bool(self, value: object) -> None:
        if not isinstance(value, (bool, int)):
            raise ValidationError(
                f'Expected a bool, got {type(value).__name__}')
        self._buffer.append(1 if value else 0)

    def write_enum(self, value: Number) -> None:
        self.write_signed_varint32(value)

    def write_bytes(self, data: bytes) -> None:
        self._buffer += data
