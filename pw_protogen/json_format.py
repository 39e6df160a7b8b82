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
"""Helpers for the canonical protobuf JSON mapping.

Generated JSON codecs convert records to and from plain Python values (dicts,
lists, str, int, float, bool) with these functions, then use dumps() and
loads() for the text form. Parse functions raise ParseError for input that does
not match the mapping; serialize functions raise SerializeError for values
that have no JSON representation.
"""

import base64
import binascii
import datetime
import decimal
import json
import math
import re
import struct
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from pw_protogen.errors import ParseError, SerializeError
from pw_protogen.reader import MAX_NESTING_DEPTH
from pw_protogen.wire_format import (
    INT32_MAX,
    INT32_MIN,
    INT64_MAX,
    INT64_MIN,
    UINT32_MAX,
    UINT64_MAX,
)

JsonValue = Union[None, bool, int, float, str, List[Any], Dict[str, Any]]

_FLOAT32_MAX = 3.4028234663852886e38

_NUMBER = re.compile(r'-?(0|[1-9][0-9]*)(\.[0-9]+)?([eE][+-]?[0-9]+)?')

_NAN = 'NaN'
_INFINITY = 'Infinity'
_NEGATIVE_INFINITY = '-Infinity'

# 0001-01-01T00:00:00Z and 9999-12-31T23:59:59Z.
TIMESTAMP_SECONDS_MIN = -62135596800
TIMESTAMP_SECONDS_MAX = 253402300799

# Roughly +/-10,000 years.
DURATION_SECONDS_MAX = 315576000000

NANOS_PER_SECOND = 1000000000

_EPOCH = datetime.datetime(1970, 1, 1, tzinfo=datetime.timezone.utc)

_TIMESTAMP = re.compile(r'(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2}):(\d{2})'
                        r'(?:\.(\d{1,9}))?(Z|[+-]\d{2}:\d{2})')

_DURATION = re.compile(r'(-)?(\d+)(?:\.(\d{1,9}))?s')


def loads_value(text: Union[str, bytes]) -> JsonValue:
    """Parses JSON text holding any single value.

    Objects nested more than MAX_NESTING_DEPTH levels deep are rejected.
    """
    try:
        value = json.loads(text)
    except RecursionError as err:
        raise ParseError('JSON nested too deeply') from err
    except ValueError as err:
        raise ParseError(f'Invalid JSON: {err}') from err
    _check_depth(value)
    return value


def _check_depth(value: JsonValue) -> None:
    pending = [(value, 0)]
    while pending:
        item, depth = pending.pop()
        if isinstance(item, dict):
            if depth > MAX_NESTING_DEPTH:
                raise ParseError(
                    f'JSON objects nested more than {MAX_NESTING_DEPTH} '
                    'levels deep')
            pending.extend((child, depth + 1) for child in item.values())
        elif isinstance(item, list):
            pending.extend((child, depth) for child in item)


def loads(text: Union[str, bytes]) -> Dict[str, Any]:
    """Parses JSON text that must hold a single object."""
    return expect_object(loads_value(text))


def dumps(value: JsonValue) -> str:
    """Serializes plain values to compact JSON text."""
    return json.dumps(value, separators=(',', ':'), ensure_ascii=False)


def field(json_object: Mapping[str, Any], *names: str) -> Any:
    """Returns the first value present under any of the given keys.

    null is treated the same as a missing key.
    """
    for name in names:
        value = json_object.get(name)
        if value is not None:
            return value
    return None


def expect_object(value: Any, what: str = 'message') -> Dict[str, Any]:
    if not isinstance(value, dict):
        raise ParseError(
            f'Expected a JSON object for {what}, got {_describe(value)}')
    return value


def expect_list(value: Any, what: str = 'repeated field') -> List[Any]:
    if not isinstance(value, list):
        raise ParseError(
            f'Expected a JSON array for {what}, got {_describe(value)}')
    return value


def _describe(value: Any) -> str:
    if value is None:
        return 'null'
    if isinstance(value, bool):
        return 'boolean'
    if isinstance(value, (int, float)):
        return 'number'
    if isinstance(value, str):
        return 'string'
    if isinstance(value, list):
        return 'array'
    return 'object'


# Integers
def _parse_integer(value: Any, minimum: int, maximum: int,
                   type_name: str) -> int:
    if isinstance(value, bool):
        raise ParseError(f'Expected {type_name}, got boolean')

    if isinstance(value, int):
        result = value
    elif isinstance(value, float):
        if not value.is_integer():
            raise ParseError(f'{value!r} is not an integer')
        result = int(value)
    elif isinstance(value, str):
        if not _NUMBER.fullmatch(value):
            raise ParseError(f'Invalid {type_name} string {value!r}')
        number = decimal.Decimal(value)
        if number != number.to_integral_value():
            raise ParseError(f'{value!r} is not an integer')
        result = int(number)
    else:
        raise ParseError(f'Expected {type_name}, got {_describe(value)}')

    if not minimum <= result <= maximum:
        raise ParseError(f'{result} is out of range for {type_name}')
    return result


def parse_int32(value: Any) -> int:
    return _parse_integer(value, INT32_MIN, INT32_MAX, 'int32')


def parse_uint32(value: Any) -> int:
    return _parse_integer(value, 0, UINT32_MAX, 'uint32')


def parse_int64(value: Any) -> int:
    return _parse_integer(value, INT64_MIN, INT64_MAX, 'int64')


def parse_uint64(value: Any) -> int:
    return _parse_integer(value, 0, UINT64_MAX, 'uint64')


def serialize_int64(value: int) -> str:
    """64-bit integers are written as decimal strings."""
    return str(int(value))


# Floating point
def _parse_floating(value: Any, type_name: str) -> float:
    if isinstance(value, bool):
        raise ParseError(f'Expected {type_name}, got boolean')
    if isinstance(value, (int, float)):
        try:
            return float(value)
        except OverflowError as err:
            raise ParseError(
                f'{value} is out of range for {type_name}') from err
    if isinstance(value, str):
        if value == _NAN:
            return math.nan
        if value == _INFINITY:
            return math.inf
        if value == _NEGATIVE_INFINITY:
            return -math.inf
        if _NUMBER.fullmatch(value):
            return float(value)
        raise ParseError(f'Invalid {type_name} string {value!r}')
    raise ParseError(f'Expected {type_name}, got {_describe(value)}')


def parse_double(value: Any) -> float:
    result = _parse_floating(value, 'double')
    if math.isinf(result) and value not in (_INFINITY, _NEGATIVE_INFINITY):
        raise ParseError(f'{value!r} is out of range for double')
    return result


def parse_float(value: Any) -> float:
    result = _parse_floating(value, 'float')
    if math.isinf(result) and value not in (_INFINITY, _NEGATIVE_INFINITY):
        raise ParseError(f'{value!r} is out of range for float')
    if math.isfinite(result) and abs(result) > _FLOAT32_MAX:
        raise ParseError(f'{value!r} is out of range for float')
    return result


def _special_float(value: float) -> Optional[str]:
    if math.isnan(value):
        return _NAN
    if math.isinf(value):
        return _INFINITY if value > 0 else _NEGATIVE_INFINITY
    return None


def serialize_double(value: float) -> Union[float, str]:
    special = _special_float(value)
    return value if special is None else special


def serialize_float(value: float) -> Union[float, str]:
    """Returns the shortest value that round-trips through float32."""
    special = _special_float(value)
    if special is not None:
        return special

    if abs(value) > _FLOAT32_MAX:
        raise SerializeError(f'{value} is out of range for float')

    single = struct.unpack('<f', struct.pack('<f', value))[0]
    for precision in range(1, 10):
        candidate = float(f'{single:.{precision}g}')
        if (abs(candidate) <= _FLOAT32_MAX and
                struct.pack('<f', candidate) == struct.pack('<f', single)):
            return candidate
    return single


# Other scalars
def parse_bool(value: Any) -> bool:
    if not isinstance(value, bool):
        raise ParseError(f'Expected boolean, got {_describe(value)}')
    return value


def parse_string(value: Any) -> str:
    if not isinstance(value, str):
        raise ParseError(f'Expected string, got {_describe(value)}')
    return value


def serialize_bytes(value: bytes) -> str:
    return base64.b64encode(value).decode('ascii')


def parse_bytes(value: Any) -> bytes:
    """Decodes standard or URL-safe base64, with or without padding."""
    text = parse_string(value).replace('-', '+').replace('_', '/')
    text = text.rstrip('=')
    text += '=' * (-len(text) % 4)
    try:
        return base64.b64decode(text, validate=True)
    except binascii.Error as err:
        raise ParseError(f'Invalid base64 value {value!r}: {err}') from err


# Enums
def serialize_enum(value: int, names: Mapping[int, str]) -> Union[str, int]:
    """Writes an enum by name; numbers without a name are written as is."""
    return names.get(int(value), int(value))


def parse_enum(value: Any, values: Mapping[str, int]) -> int:
    if isinstance(value, str):
        try:
            return values[value]
        except KeyError as err:
            raise ParseError(f'Unknown enum value {value!r}') from err
    return parse_int32(value)


# Map keys
def serialize_map_key(key: Union[bool, int, str]) -> str:
    if isinstance(key, bool):
        return 'true' if key else 'false'
    return str(key)


def parse_bool_key(key: str) -> bool:
    if key == 'true':
        return True
    if key == 'false':
        return False
    raise ParseError(f'Invalid bool map key {key!r}')


# google.protobuf.Timestamp
def _fraction(nanos: int) -> str:
    """Formats nanos with 0, 3, 6 or 9 digits."""
    if nanos == 0:
        return ''
    if nanos % 1000000 == 0:
        return f'.{nanos // 1000000:03d}'
    if nanos % 1000 == 0:
        return f'.{nanos // 1000:06d}'
    return f'.{nanos:09d}'


def _parse_fraction(digits: Optional[str]) -> int:
    if not digits:
        return 0
    return int(digits.ljust(9, '0'))


def serialize_timestamp(seconds: int, nanos: int) -> str:
    if not TIMESTAMP_SECONDS_MIN <= seconds <= TIMESTAMP_SECONDS_MAX:
        raise SerializeError(f'Timestamp seconds {seconds} out of range')
    if not 0 <= nanos < NANOS_PER_SECOND:
        raise SerializeError(f'Timestamp nanos {nanos} out of range')

    moment = _EPOCH + datetime.timedelta(seconds=seconds)
    return (f'{moment.year:04d}-{moment.month:02d}-{moment.day:02d}T'
            f'{moment.hour:02d}:{moment.minute:02d}:{moment.second:02d}'
            f'{_fraction(nanos)}Z')


def parse_timestamp(value: Any) -> Tuple[int, int]:
    """Parses an RFC 3339 timestamp into (seconds, nanos)."""
    match = _TIMESTAMP.fullmatch(parse_string(value))
    if not match:
        raise ParseError(f'Invalid timestamp {value!r}')

    year, month, day, hour, minute, second = (int(part)
                                              for part in match.groups()[:6])
    try:
        moment = datetime.datetime(year,
                                   month,
                                   day,
                                   hour,
                                   minute,
                                   second,
                                   tzinfo=datetime.timezone.utc)
    except ValueError as err:
        raise ParseError(f'Invalid timestamp {value!r}: {err}') from err

    seconds = (moment - _EPOCH) // datetime.timedelta(seconds=1)

    offset = match.group(8)
    if offset != 'Z':
        sign = -1 if offset[0] == '-' else 1
        offset_hours, offset_minutes = int(offset[1:3]), int(offset[4:6])
        if offset_hours > 23 or offset_minutes > 59:
            raise ParseError(f'Invalid timestamp offset {offset!r}')
        seconds -= sign * (offset_hours * 3600 + offset_minutes * 60)

    if not TIMESTAMP_SECONDS_MIN <= seconds <= TIMESTAMP_SECONDS_MAX:
        raise ParseError(f'Timestamp {value!r} out of range')
    return seconds, _parse_fraction(match.group(7))


# google.protobuf.Duration
def serialize_duration(seconds: int, nanos: int) -> str:
    if not -DURATION_SECONDS_MAX <= seconds <= DURATION_SECONDS_MAX:
        raise SerializeError(f'Duration seconds {seconds} out of range')
    if not -NANOS_PER_SECOND < nanos < NANOS_PER_SECOND:
        raise SerializeError(f'Duration nanos {nanos} out of range')
    if (seconds < 0 < nanos) or (nanos < 0 < seconds):
        raise SerializeError('Duration seconds and nanos differ in sign')

    sign = '-' if seconds < 0 or nanos < 0 else ''
    return f'{sign}{abs(seconds)}{_fraction(abs(nanos))}s'


def parse_duration(value: Any) -> Tuple[int, int]:
    """Parses "<seconds>[.<fraction>]s" into (seconds, nanos)."""
    match = _DURATION.fullmatch(parse_string(value))
    if not match:
        raise ParseError(f'Invalid duration {value!r}')

    negative, whole, fraction = match.groups()
    seconds = int(whole)
    nanos = _parse_fraction(fraction)
    if seconds > DURATION_SECONDS_MAX:
        raise ParseError(f'Duration {value!r} out of range')
    if negative:
        return -seconds, -nanos
    return seconds, nanos
