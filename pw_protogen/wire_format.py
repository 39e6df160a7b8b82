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
"""Constants and helpers shared by the binary encoder and decoder."""

import enum
from typing import Tuple, Type, TypeVar, Union

INT32_MIN = -(2**31)
INT32_MAX = 2**31 - 1
UINT32_MAX = 2**32 - 1
INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1
UINT64_MAX = 2**64 - 1

# Largest field number allowed by the protobuf language.
FIELD_NUMBER_MAX = 2**29 - 1

MAX_VARINT_BYTES = 10

_MASK_32 = 0xFFFFFFFF
_MASK_64 = 0xFFFFFFFFFFFFFFFF


class WireType(enum.IntEnum):
    """The 3-bit framing type carried in the low bits of every tag."""

    VARINT = 0
    FIXED64 = 1
    DELIMITED = 2
    START_GROUP = 3
    END_GROUP = 4
    FIXED32 = 5


def make_tag(field_number: int, wire_type: WireType) -> int:
    return (field_number << 3) | wire_type


def split_tag(tag: int) -> Tuple[int, int]:
    """Returns the (field number, wire type) pair encoded in a tag."""
    return tag >> 3, tag & 0x7


def zigzag_encode(value: int, bits: int = 64) -> int:
    """Maps a signed integer to an unsigned one with small negatives short."""
    mask = _MASK_64 if bits == 64 else _MASK_32
    return ((value << 1) ^ (value >> (bits - 1))) & mask


def zigzag_decode(value: int) -> int:
    """ZigZag decode function from protobuf's wire_format module."""
    if not value & 0x1:
        return value >> 1
    return (value >> 1) ^ (~0)


def to_signed(value: int, bits: int) -> int:
    """Reinterprets the low `bits` bits of value as a two's complement int."""
    value &= (1 << bits) - 1
    if value >= 1 << (bits - 1):
        value -= 1 << bits
    return value


def to_unsigned(value: int, bits: int) -> int:
    return value & ((1 << bits) - 1)


EnumT = TypeVar('EnumT', bound=enum.IntEnum)


def enum_value(enum_type: Type[EnumT], value: int) -> Union[EnumT, int]:
    """Converts a wire enum number to its member; unknown numbers stay ints.

    proto3 enums are open, so values added to a schema after the code was
    generated are preserved rather than rejected.
    """
    try:
        return enum_type(value)
    except ValueError:
        return value
