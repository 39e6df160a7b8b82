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
"""Field-level protobuf binary reader used by generated code.

A BinaryReader walks the tagged fields of one message:

  reader = BinaryReader(data)
  while reader.next_field():
      if reader.field_number() == 1:
          msg.inches = reader.read_int32()
      else:
          reader.skip_field()

Once next_field() returns False the reader is exhausted for good.

Messages and groups nested more than MAX_NESTING_DEPTH levels deep are
rejected with ParseError.
"""

import enum
from typing import Callable, List, Optional, Tuple, TypeVar

from pw_protogen.decoder import BinaryDecoder
from pw_protogen.errors import ParseError
from pw_protogen.wire_format import INT32_MAX, UINT32_MAX, WireType, split_tag

T = TypeVar('T')

ReadFunction = Callable[[T, 'BinaryReader'], None]

# Matches the default recursion limit of the protobuf reference runtimes.
MAX_NESTING_DEPTH = 100


class _State(enum.Enum):
    NOT_STARTED = 0
    POSITIONED = 1
    EXHAUSTED = 2


class BinaryReader:
    """Reads tagged fields from a serialized protobuf message."""
    def __init__(self,
                 data: bytes,
                 start: int = 0,
                 end: Optional[int] = None,
                 depth: int = 0) -> None:
        if depth > MAX_NESTING_DEPTH:
            raise ParseError(
                f'Messages nested more than {MAX_NESTING_DEPTH} levels deep')
        self._decoder = BinaryDecoder(data, start, end)
        self._data = self._decoder.buffer
        self._depth = depth
        self._state = _State.NOT_STARTED
        self._field_number = 0
        self._wire_type = WireType.VARINT

    def next_field(self) -> bool:
        """Advances to the next field; returns False when none remain."""
        if self._state is _State.EXHAUSTED:
            return False

        if self._decoder.at_end():
            self._state = _State.EXHAUSTED
            return False

        field_number, wire_type = self._read_tag()
        if field_number == 0:
            raise ParseError('Invalid field number 0')
        try:
            self._wire_type = WireType(wire_type)
        except ValueError as err:
            raise ParseError(f'Invalid wire type {wire_type} for field '
                             f'{field_number}') from err
        if self._wire_type is WireType.END_GROUP:
            raise ParseError(f'Unmatched END_GROUP for field {field_number}')

        self._field_number = field_number
        self._state = _State.POSITIONED
        return True

    def _check_positioned(self) -> None:
        if self._state is not _State.POSITIONED:
            raise ParseError('The reader is not positioned on a field')

    def field_number(self) -> int:
        self._check_positioned()
        return self._field_number

    def wire_type(self) -> WireType:
        self._check_positioned()
        return self._wire_type

    def is_delimited(self) -> bool:
        return self.wire_type() is WireType.DELIMITED

    def _expect(self, wire_type: WireType) -> None:
        self._check_positioned()
        if self._wire_type is not wire_type:
            raise ParseError(
                f'Field {self._field_number} has wire type '
                f'{self._wire_type.name}, expected {wire_type.name}')

    def _read_tag(self) -> Tuple[int, int]:
        tag = self._decoder.read_unsigned_varint64()
        if tag > UINT32_MAX:
            raise ParseError(f'Tag {tag} does not fit in 32 bits')
        return split_tag(tag)

    def _read_length_prefix(self) -> int:
        length = self._decoder.read_unsigned_varint64()
        if length > INT32_MAX:
            raise ParseError(f'Length {length} exceeds the 2 GiB limit')
        remaining = self._decoder.end - self._decoder.position
        if length > remaining:
            raise ParseError(f'Length {length} exceeds the {remaining} bytes '
                             'remaining')
        return length

    def _read_length(self) -> int:
        self._expect(WireType.DELIMITED)
        return self._read_length_prefix()

    def skip_field(self) -> None:
        """Consumes the payload of the current field without decoding it."""
        self._check_positioned()
        self._skip(self._field_number, self._wire_type, self._depth)

    def _skip(self, field_number: int, wire_type: WireType,
              depth: int) -> None:
        if wire_type is WireType.VARINT:
            self._decoder.read_unsigned_varint64()
        elif wire_type is WireType.FIXED64:
            self._decoder.advance(8)
        elif wire_type is WireType.FIXED32:
            self._decoder.advance(4)
        elif wire_type is WireType.DELIMITED:
            self._decoder.advance(self._read_length_prefix())
        elif wire_type is WireType.START_GROUP:
            self._skip_group(field_number, depth + 1)
        else:
            raise ParseError(f'Cannot skip wire type {wire_type}')

    def _skip_group(self, group_number: int, depth: int) -> None:
        if depth > MAX_NESTING_DEPTH:
            raise ParseError('Groups nested too deeply')

        while True:
            if self._decoder.at_end():
                raise ParseError(f'Unterminated group {group_number}')
            field_number, raw_wire_type = self._read_tag()
            try:
                wire_type = WireType(raw_wire_type)
            except ValueError as err:
                raise ParseError(
                    f'Invalid wire type {raw_wire_type}') from err
            if wire_type is WireType.END_GROUP:
                if field_number != group_number:
                    raise ParseError(
                        f'END_GROUP {field_number} does not match START_GROUP '
                        f'{group_number}')
                return
            self._skip(field_number, wire_type, depth)

    # Varint scalar types.
    def read_int32(self) -> int:
        self._expect(WireType.VARINT)
        return self._decoder.read_signed_varint32()

    def read_int64(self) -> int:
        self._expect(WireType.VARINT)
        return self._decoder.read_signed_varint64()

    def read_uint32(self) -> int:
        self._expect(WireType.VARINT)
        return self._decoder.read_unsigned_varint32()

    def read_uint64(self) -> int:
        self._expect(WireType.VARINT)
        return self._decoder.read_unsigned_varint64()

    def read_sint32(self) -> int:
        self._expect(WireType.VARINT)
        return self._decoder.read_zigzag_varint32()

    def read_sint64(self) -> int:
        self._expect(WireType.VARINT)
        return self._decoder.read_zigzag_varint64()

    def read_bool(self) -> bool:
        self._expect(WireType.VARINT)
        return self._decoder.read_bool()

    def read_enum(self) -> int:
        self._expect(WireType.VARINT)
        return self._decoder.read_enum()

    # Fixed-width scalar types.
    def read_fixed32(self) -> int:
        self._expect(WireType.FIXED32)
        return self._decoder.read_uint32()

    def read_sfixed32(self) -> int:
        self._expect(WireType.FIXED32)
        return self._decoder.read_int32()

    def read_float(self) -> float:
        self._expect(WireType.FIXED32)
        return self._decoder.read_float()

    def read_fixed64(self) -> int:
        self._expect(WireType.FIXED64)
        return self._decoder.read_uint64()

    def read_sfixed64(self) -> int:
        self._expect(WireType.FIXED64)
        return self._decoder.read_int64()

    def read_double(self) -> float:
        self._expect(WireType.FIXED64)
        return self._decoder.read_double()

    # Length-delimited types.
    def read_string(self) -> str:
        return self._decoder.read_string(self._read_length())

    def read_bytes(self) -> bytes:
        return self._decoder.read_bytes(self._read_length())

    def read_message(self, msg: T, read_fn: ReadFunction) -> T:
        """Merges the nested message at the current field into msg."""
        length = self._read_length()
        start = self._decoder.position
        self._decoder.advance(length)
        read_fn(msg,
                BinaryReader(self._data, start, start + length,
                             self._depth + 1))
        return msg

    def _read_packed(self, wire_type: WireType,
                     read: Callable[[BinaryDecoder], T]) -> List[T]:
        """Reads a packed run, or a single unpacked element."""
        self._check_positioned()
        if self._wire_type is not WireType.DELIMITED:
            self._expect(wire_type)
            return [read(self._decoder)]

        length = self._read_length_prefix()
        start = self._decoder.position
        self._decoder.advance(length)
        packed = BinaryDecoder(self._data, start, start + length)
        values = []
        while not packed.at_end():
            values.append(read(packed))
        return values

    def read_packed_int32(self) -> List[int]:
        return self._read_packed(WireType.VARINT,
                                 BinaryDecoder.read_signed_varint32)

    def read_packed_int64(self) -> List[int]:
        return self._read_packed(WireType.VARINT,
                                 BinaryDecoder.read_signed_varint64)

    def read_packed_uint32(self) -> List[int]:
        return self._read_packed(WireType.VARINT,
                                 BinaryDecoder.read_unsigned_varint32)

    def read_packed_uint64(self) -> List[int]:
        return self._read_packed(WireType.VARINT,
                                 BinaryDecoder.read_unsigned_varint64)

    def read_packed_sint32(self) -> List[int]:
        return self._read_packed(WireType.VARINT,
                                 BinaryDecoder.read_zigzag_varint32)

    def read_packed_sint64(self) -> List[int]:
        return self._read_packed(WireType.VARINT,
                                 BinaryDecoder.read_zigzag_varint64)

    def read_packed_bool(self) -> List[bool]:
        return self._read_packed(WireType.VARINT, BinaryDecoder.read_bool)

    def read_packed_enum(self) -> List[int]:
        return self._read_packed(WireType.VARINT, BinaryDecoder.read_enum)

    def read_packed_fixed32(self) -> List[int]:
        return self._read_packed(WireType.FIXED32, BinaryDecoder.read_uint32)

    def read_packed_sfixed32(self) -> List[int]:
        return self._read_packed(WireType.FIXED32, BinaryDecoder.read_int32)

    def read_packed_float(self) -> List[float]:
        return self._read_packed(WireType.FIXED32, BinaryDecoder.read_float)

    def read_packed_fixed64(self) -> List[int]:
        return self._read_packed(WireType.FIXED64, BinaryDecoder.read_uint64)

    def read_packed_sfixed64(self) -> List[int]:
        return self._read_packed(WireType.FIXED64, BinaryDecoder.read_int64)

    def read_packed_double(self) -> List[float]:
        return self._read_packed(WireType.FIXED64, BinaryDecoder.read_double)
