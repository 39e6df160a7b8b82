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
"""Field-level protobuf binary writer used by generated code."""

from typing import Callable, Iterable, TypeVar

from pw_protogen.encoder import BinaryEncoder, Number
from pw_protogen.errors import ValidationError
from pw_protogen.wire_format import FIELD_NUMBER_MAX, WireType, make_tag

T = TypeVar('T')

WriteFunction = Callable[[T, 'BinaryWriter'], None]


class BinaryWriter:
    """Serializes tagged fields into a protobuf binary payload.

    A writer is used for a single message. Nested messages are written to a
    child writer first so that their length is known before the outer tag is
    emitted.
    """
    def __init__(self) -> None:
        self._encoder = BinaryEncoder()

    def result(self) -> bytes:
        """Returns the serialized bytes and resets the writer."""
        return self._encoder.end()

    def __len__(self) -> int:
        return len(self._encoder)

    def _tag(self, field_number: int, wire_type: WireType) -> None:
        if not 0 < field_number <= FIELD_NUMBER_MAX:
            raise ValidationError(f'Invalid field number {field_number}')
        self._encoder.write_unsigned_varint32(
            make_tag(field_number, wire_type))

    def _delimited(self, field_number: int, payload: bytes) -> None:
        self._tag(field_number, WireType.DELIMITED)
        self._encoder.write_unsigned_varint32(len(payload))
        self._encoder.write_bytes(payload)

    def _packed(self, field_number: int, values: Iterable,
                write: Callable[[BinaryEncoder, Number], None]) -> None:
        values = list(values)
        if not values:
            return

        child = BinaryEncoder()
        for value in values:
            write(child, value)
        self._delimited(field_number, child.end())

    # Varint scalar types.
    def write_int32(self, field_number: int, value: Number) -> None:
        self._tag(field_number, WireType.VARINT)
        self._encoder.write_signed_varint32(value)

    def write_int64(self, field_number: int, value: Number) -> None:
        self._tag(field_number, WireType.VARINT)
        self._encoder.write_signed_varint64(value)

    def write_uint32(self, field_number: int, value: Number) -> None:
        self._tag(field_number, WireType.VARINT)
        self._encoder.write_unsigned_varint32(value)

    def write_uint64(self, field_number: int, value: Number) -> None:
        self._tag(field_number, WireType.VARINT)
        self._encoder.write_unsigned_varint64(value)

    def write_sint32(self, field_number: int, value: Number) -> None:
        self._tag(field_number, WireType.VARINT)
        self._encoder.write_zigzag_varint32(value)

    def write_sint64(self, field_number: int, value: Number) -> None:
        self._tag(field_number, WireType.VARINT)
        self._encoder.write_zigzag_varint64(value)

    def write_bool(self, field_number: int, value: bool) -> None:
        self._tag(field_number, WireType.VARINT)
        self._encoder.write_bool(value)

    def write_enum(self, field_number: int, value: Number) -> None:
        self._tag(field_number, WireType.VARINT)
        self._encoder.write_enum(value)

    # Fixed-width scalar types.
    def write_fixed32(self, field_number: int, value: Number) -> None:
        self._tag(field_number, WireType.FIXED32)
        self._encoder.write_uint32(value)

    def write_sfixed32(self, field_number: int, value: Number) -> None:
        self._tag(field_number, WireType.FIXED32)
        self._encoder.write_int32(value)

    def write_float(self, field_number: int, value: Number) -> None:
        self._tag(field_number, WireType.FIXED32)
        self._encoder.write_float(value)

    def write_fixed64(self, field_number: int, value: Number) -> None:
        self._tag(field_number, WireType.FIXED64)
        self._encoder.write_uint64(value)

    def write_sfixed64(self, field_number: int, value: Number) -> None:
        self._tag(field_number, WireType.FIXED64)
        self._encoder.write_int64(value)

    def write_double(self, field_number: int, value: Number) -> None:
        self._tag(field_number, WireType.FIXED64)
        self._encoder.write_double(value)

    # Length-delimited types.
    def write_string(self, field_number: int, value: str) -> None:
        if not isinstance(value, str):
            raise ValidationError(
                f'Expected a str for field {field_number}, got '
                f'{type(value).__name__}')
        self._delimited(field_number, value.encode('utf-8'))

    def write_bytes(self, field_number: int, value: bytes) -> None:
        if not isinstance(value, (bytes, bytearray, memoryview)):
            raise ValidationError(
                f'Expected bytes for field {field_number}, got '
                f'{type(value).__name__}')
        self._delimited(field_number, bytes(value))

    def write_message(self,
                      field_number: int,
                      value: T,
                      write_fn: WriteFunction,
                      omit_empty: bool = False) -> None:
        """Writes a nested message using its generated write function.

        When omit_empty is set, nothing is written if the nested message
        serializes to zero bytes.
        """
        child = BinaryWriter()
        write_fn(value, child)
        payload = child.result()
        if omit_empty and not payload:
            return
        self._delimited(field_number, payload)

    def write_repeated_message(self, field_number: int, values: Iterable[T],
                               write_fn: WriteFunction) -> None:
        for value in values:
            self.write_message(field_number, value, write_fn)

    def write_repeated_string(self, field_number: int,
                              values: Iterable[str]) -> None:
        for value in values:
            self.write_string(field_number, value)

    def write_repeated_bytes(self, field_number: int,
                             values: Iterable[bytes]) -> None:
        for value in values:
            self.write_bytes(field_number, value)

    # Packed repeated scalars.
    def write_packed_int32(self, field_number: int, values: Iterable) -> None:
        self._packed(field_number, values, BinaryEncoder.write_signed_varint32)

    def write_packed_int64(self, field_number: int, values: Iterable) -> None:
        self._packed(field_number, values, BinaryEncoder.write_signed_varint64)

    def write_packed_uint32(self, field_number: int, values: Iterable) -> None:
        self._packed(field_number, values,
                     BinaryEncoder.write_unsigned_varint32)

    def write_packed_uint64(self, field_number: int, values: Iterable) -> None:
        self._packed(field_number, values,
                     BinaryEncoder.write_unsigned_varint64)

    def write_packed_sint32(self, field_number: int, values: Iterable) -> None:
        self._packed(field_number, values, BinaryEncoder.write_zigzag_varint32)

    def write_packed_sint64(self, field_number: int, values: Iterable) -> None:
        self._packed(field_number, values, BinaryEncoder.write_zigzag_varint64)

    def write_packed_bool(self, field_number: int, values: Iterable) -> None:
        self._packed(field_number, values, BinaryEncoder.write_bool)

    def write_packed_enum(self, field_number: int, values: Iterable) -> None:
        self._packed(field_number, values, BinaryEncoder.write_enum)

    def write_packed_fixed32(self, field_number: int,
                             values: Iterable) -> None:
        self._packed(field_number, values, BinaryEncoder.write_uint32)

    def write_packed_sfixed32(self, field_number: int,
                              values: Iterable) -> None:
        self._packed(field_number, values, BinaryEncoder.write_int32)

    def write_packed_float(self, field_number: int, values: Iterable) -> None:
        self._packed(field_number, values, BinaryEncoder.write_float)

    def write_packed_fixed64(self, field_number: int,
                             values: Iterable) -> None:
        self._packed(field_number, values, BinaryEncoder.write_uint64)

    def write_packed_sfixed64(self, field_number: int,
                              values: Iterable) -> None:
        self._packed(field_number, values, BinaryEncoder.write_int64)

    def write_packed_double(self, field_number: int,
                            values: Iterable) -> None:
        self._packed(field_number, values, BinaryEncoder.write_double)
