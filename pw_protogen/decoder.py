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
"""Low-level protobuf binary decoding primitives."""

import struct
from typing import Optional

from pw_protogen import wire_format
from pw_protogen.errors import ParseError
from pw_protogen.wire_format import MAX_VARINT_BYTES


class BinaryDecoder:
    """Cursor over an immutable buffer of protobuf wire values.

    All reads raise ParseError rather than returning partial data when the
    buffer is exhausted.
    """
    def __init__(self,
                 data: bytes,
                 start: int = 0,
                 end: Optional[int] = None) -> None:
        if not isinstance(data, memoryview):
            data = memoryview(bytes(data))
        self._data = data
        self._position = start
        self._end = len(self._data) if end is None else end

    @property
    def buffer(self) -> memoryview:
        return self._data

    @property
    def position(self) -> int:
        return self._position

    @property
    def end(self) -> int:
        return self._end

    def at_end(self) -> bool:
        return self._position >= self._end

    def advance(self, count: int) -> None:
        if count < 0 or self._position + count > self._end:
            raise ParseError(
                f'Attempted to read {count} bytes at offset {self._position}, '
                f'but only {self._end - self._position} remain')
        self._position += count

    def _take(self, count: int) -> memoryview:
        start = self._position
        self.advance(count)
        return self._data[start:self._position]

    def read_unsigned_varint64(self) -> int:
        """Reads a varint of up to 10 bytes, keeping the low 64 bits."""
        value = 0
        for index in range(MAX_VARINT_BYTES):
            if self._position >= self._end:
                raise ParseError('Truncated varint')
            byte = self._data[self._position]
            self._position += 1
            value |= (byte & 0x7F) << (7 * index)
            if not byte & 0x80:
                return wire_format.to_unsigned(value, 64)

        raise ParseError(
            f'Varint longer than {MAX_VARINT_BYTES} bytes at offset '
            f'{self._position - MAX_VARINT_BYTES}')

    def read_unsigned_varint32(self) -> int:
        return wire_format.to_unsigned(self.read_unsigned_varint64(), 32)

    def read_signed_varint32(self) -> int:
        return wire_format.to_signed(self.read_unsigned_varint64(), 32)

    def read_signed_varint64(self) -> int:
        return wire_format.to_signed(self.read_unsigned_varint64(), 64)

    def read_zigzag_varint32(self) -> int:
        return wire_format.zigzag_decode(self.read_unsigned_varint32())

    def read_zigzag_varint64(self) -> int:
        return wire_format.zigzag_decode(self.read_unsigned_varint64())

    def read_uint32(self) -> int:
        return struct.unpack('<I', self._take(4))[0]

    def read_int32(self) -> int:
        return struct.unpack('<i', self._take(4))[0]

    def read_uint64(self) -> int:
        return struct.unpack('<Q', self._take(8))[0]

    def read_int64(self) -> int:
        return struct.unpack('<q', self._take(8))[0]

    def read_float(self) -> float:
        return struct.unpack('<f', self._take(4))[0]

    def read_double(self) -> float:
        return struct.unpack('<d', self._take(8))[0]

    def read_bool(self) -> bool:
        return self.read_unsigned_varint64() != 0

    def read_enum(self) -> int:
        return self.read_signed_varint32()

    def read_bytes(self, length: int) -> bytes:
        return bytes(self._take(length))

    def read_string(self, length: int) -> str:
        data = self._take(length)
        try:
            return bytes(data).decode('utf-8')
        except UnicodeDecodeError as err:
            raise ParseError(f'Invalid UTF-8 in string field: {err}') from err
