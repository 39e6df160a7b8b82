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
"""Records and codecs for google.protobuf.Timestamp, Duration and Empty.

These have the same shape as generated code, so generated modules use them
like any other dependency. Their JSON forms follow the special cases of the
canonical JSON mapping: Timestamp is an RFC 3339 string and Duration is a
decimal number of seconds followed by "s".
"""

from __future__ import annotations

import dataclasses
import typing

from pw_protogen import json_format, partial, reader, writer


@dataclasses.dataclass
class Timestamp:
    """google.protobuf.Timestamp"""
    seconds: int = 0
    nanos: int = 0


class TimestampPartial(typing.TypedDict, total=False):
    seconds: int
    nanos: int


class TimestampCodec:
    """Protobuf binary codec for google.protobuf.Timestamp."""
    @staticmethod
    def encode(msg: typing.Union[Timestamp, TimestampPartial]) -> bytes:
        if not isinstance(msg, Timestamp):
            msg = TimestampCodec.initialize(msg)
        w = writer.BinaryWriter()
        TimestampCodec._write(msg, w)
        return w.result()

    @staticmethod
    def decode(data: bytes) -> Timestamp:
        return TimestampCodec._read(TimestampCodec.initialize(),
                                    reader.BinaryReader(data))

    @staticmethod
    def initialize(
            values: typing.Optional[TimestampPartial] = None) -> Timestamp:
        return partial.apply(Timestamp(), values)

    @staticmethod
    def _write(msg: Timestamp, w: writer.BinaryWriter) -> None:
        if msg.seconds:
            w.write_int64(1, msg.seconds)
        if msg.nanos:
            w.write_int32(2, msg.nanos)

    @staticmethod
    def _read(msg: Timestamp, r: reader.BinaryReader) -> Timestamp:
        while r.next_field():
            field_number = r.field_number()
            if field_number == 1:
                msg.seconds = r.read_int64()
            elif field_number == 2:
                msg.nanos = r.read_int32()
            else:
                r.skip_field()
        return msg


class TimestampJSONCodec:
    """Canonical JSON codec for google.protobuf.Timestamp."""
    @staticmethod
    def encode(msg: typing.Union[Timestamp, TimestampPartial]) -> str:
        if not isinstance(msg, Timestamp):
            msg = TimestampJSONCodec.initialize(msg)
        return json_format.dumps(TimestampJSONCodec._write(msg))

    @staticmethod
    def decode(text: typing.Union[str, bytes]) -> Timestamp:
        return TimestampJSONCodec._read(json_format.loads_value(text),
                                        TimestampJSONCodec.initialize())

    @staticmethod
    def initialize(
            values: typing.Optional[TimestampPartial] = None) -> Timestamp:
        return TimestampCodec.initialize(values)

    @staticmethod
    def _write(msg: Timestamp) -> str:
        return json_format.serialize_timestamp(msg.seconds, msg.nanos)

    @staticmethod
    def _read(obj: typing.Any, msg: Timestamp) -> Timestamp:
        msg.seconds, msg.nanos = json_format.parse_timestamp(obj)
        return msg


@dataclasses.dataclass
class Duration:
    """google.protobuf.Duration"""
    seconds: int = 0
    nanos: int = 0


class DurationPartial(typing.TypedDict, total=False):
    seconds: int
    nanos: int


class DurationCodec:
    """Protobuf binary codec for google.protobuf.Duration."""
    @staticmethod
    def encode(msg: typing.Union[Duration, DurationPartial]) -> bytes:
        if not isinstance(msg, Duration):
            msg = DurationCodec.initialize(msg)
        w = writer.BinaryWriter()
        DurationCodec._write(msg, w)
        return w.result()

    @staticmethod
    def decode(data: bytes) -> Duration:
        return DurationCodec._read(DurationCodec.initialize(),
                                   reader.BinaryReader(data))

    @staticmethod
    def initialize(
            values: typing.Optional[DurationPartial] = None) -> Duration:
        return partial.apply(Duration(), values)

    @staticmethod
    def _write(msg: Duration, w: writer.BinaryWriter) -> None:
        if msg.seconds:
            w.write_int64(1, msg.seconds)
        if msg.nanos:
            w.write_int32(2, msg.nanos)

    @staticmethod
    def _read(msg: Duration, r: reader.BinaryReader) -> Duration:
        while r.next_field():
            field_number = r.field_number()
            if field_number == 1:
                msg.seconds = r.read_int64()
            elif field_number == 2:
                msg.nanos = r.read_int32()
            else:
                r.skip_field()
        return msg


class DurationJSONCodec:
    """Canonical JSON codec for google.protobuf.Duration."""
    @staticmethod
    def encode(msg: typing.Union[Duration, DurationPartial]) -> str:
        if not isinstance(msg, Duration):
            msg = DurationJSONCodec.initialize(msg)
        return json_format.dumps(DurationJSONCodec._write(msg))

    @staticmethod
    def decode(text: typing.Union[str, bytes]) -> Duration:
        return DurationJSONCodec._read(json_format.loads_value(text),
                                       DurationJSONCodec.initialize())

    @staticmethod
    def initialize(
            values: typing.Optional[DurationPartial] = None) -> Duration:
        return DurationCodec.initialize(values)

    @staticmethod
    def _write(msg: Duration) -> str:
        return json_format.serialize_duration(msg.seconds, msg.nanos)

    @staticmethod
    def _read(obj: typing.Any, msg: Duration) -> Duration:
        msg.seconds, msg.nanos = json_format.parse_duration(obj)
        return msg


@dataclasses.dataclass
class Empty:
    """google.protobuf.Empty"""


class EmptyPartial(typing.TypedDict, total=False):
    pass


class EmptyCodec:
    """Protobuf binary codec for google.protobuf.Empty."""
    @staticmethod
    def encode(msg: typing.Union[Empty, EmptyPartial]) -> bytes:
        if not isinstance(msg, Empty):
            msg = EmptyCodec.initialize(msg)
        w = writer.BinaryWriter()
        EmptyCodec._write(msg, w)
        return w.result()

    @staticmethod
    def decode(data: bytes) -> Empty:
        return EmptyCodec._read(EmptyCodec.initialize(),
                                reader.BinaryReader(data))

    @staticmethod
    def initialize(values: typing.Optional[EmptyPartial] = None) -> Empty:
        return partial.apply(Empty(), values)

    @staticmethod
    def _write(msg: Empty, w: writer.BinaryWriter) -> None:
        pass

    @staticmethod
    def _read(msg: Empty, r: reader.BinaryReader) -> Empty:
        while r.next_field():
            r.skip_field()
        return msg


class EmptyJSONCodec:
    """Canonical JSON codec for google.protobuf.Empty."""
    @staticmethod
    def encode(msg: typing.Union[Empty, EmptyPartial]) -> str:
        if not isinstance(msg, Empty):
            msg = EmptyJSONCodec.initialize(msg)
        return json_format.dumps(EmptyJSONCodec._write(msg))

    @staticmethod
    def decode(text: typing.Union[str, bytes]) -> Empty:
        return EmptyJSONCodec._read(json_format.loads(text),
                                    EmptyJSONCodec.initialize())

    @staticmethod
    def initialize(values: typing.Optional[EmptyPartial] = None) -> Empty:
        return EmptyCodec.initialize(values)

    @staticmethod
    def _write(msg: Empty) -> typing.Dict[str, typing.Any]:
        return {}

    @staticmethod
    def _read(obj: typing.Any, msg: Empty) -> Empty:
        json_format.expect_object(obj, 'google.protobuf.Empty')
        return msg
