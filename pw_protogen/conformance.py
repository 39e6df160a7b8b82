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
"""Testee for the protobuf conformance test runner.

The runner writes ConformanceRequest messages to stdin and reads
ConformanceResponse messages from stdout, each preceded by its length as a
4-byte little-endian integer. Messages are decoded from the request payload
with the generated codecs registered for their type name and encoded again in
the requested output format.

Run it with the module generated for test_messages_proto3.proto:

  conformance_test_runner --enforce_recommended \\
      pw-protogen-conformance --module google.protobuf.test_messages_proto3_pb
"""

import argparse
import dataclasses
import enum
import importlib
import logging
import struct
import sys
from types import ModuleType
from typing import Any, BinaryIO, Callable, Dict, Optional, Tuple

from pw_protogen import errors, log, reader, wire_format, writer

_LOG = logging.getLogger(__name__)

FAILURE_SET_TYPE = 'conformance.FailureSet'
PROTO2_PACKAGE = 'protobuf_test_messages.proto2'
DEFAULT_PACKAGE = 'protobuf_test_messages.proto3'

_LENGTH = struct.Struct('<I')


class WireFormat(enum.IntEnum):
    UNSPECIFIED = 0
    PROTOBUF = 1
    JSON = 2
    JSPB = 3
    TEXT_FORMAT = 4


@dataclasses.dataclass
class ConformanceRequest:
    """conformance.ConformanceRequest, limited to the fields the testee uses."""
    protobuf_payload: Optional[bytes] = None
    json_payload: Optional[str] = None
    jspb_payload: Optional[str] = None
    text_payload: Optional[str] = None
    requested_output_format: int = WireFormat.UNSPECIFIED
    message_type: str = ''
    test_category: int = 0


class ConformanceRequestCodec:
    """Protobuf binary codec for conformance.ConformanceRequest."""
    @staticmethod
    def encode(msg: ConformanceRequest) -> bytes:
        w = writer.BinaryWriter()
        if msg.protobuf_payload is not None:
            w.write_bytes(1, msg.protobuf_payload)
        if msg.json_payload is not None:
            w.write_string(2, msg.json_payload)
        if msg.requested_output_format:
            w.write_enum(3, msg.requested_output_format)
        if msg.message_type:
            w.write_string(4, msg.message_type)
        if msg.test_category:
            w.write_enum(5, msg.test_category)
        if msg.jspb_payload is not None:
            w.write_string(7, msg.jspb_payload)
        if msg.text_payload is not None:
            w.write_string(8, msg.text_payload)
        return w.result()

    @staticmethod
    def decode(data: bytes) -> ConformanceRequest:
        msg = ConformanceRequest()
        r = reader.BinaryReader(data)
        while r.next_field():
            field_number = r.field_number()
            if field_number == 1:
                msg.protobuf_payload = r.read_bytes()
            elif field_number == 2:
                msg.json_payload = r.read_string()
            elif field_number == 3:
                msg.requested_output_format = wire_format.enum_value(
                    WireFormat, r.read_enum())
            elif field_number == 4:
                msg.message_type = r.read_string()
            elif field_number == 5:
                msg.test_category = r.read_enum()
            elif field_number == 7:
                msg.jspb_payload = r.read_string()
            elif field_number == 8:
                msg.text_payload = r.read_string()
            else:
                r.skip_field()
        return msg


@dataclasses.dataclass
class ConformanceResponse:
    """conformance.ConformanceResponse; exactly one result is set."""
    parse_error: Optional[str] = None
    runtime_error: Optional[str] = None
    protobuf_payload: Optional[bytes] = None
    json_payload: Optional[str] = None
    skipped: Optional[str] = None
    serialize_error: Optional[str] = None


# Field numbers of the ConformanceResponse result oneof.
_RESPONSE_FIELDS = (
    ('parse_error', 1),
    ('runtime_error', 2),
    ('protobuf_payload', 3),
    ('json_payload', 4),
    ('skipped', 5),
    ('serialize_error', 6),
)


class ConformanceResponseCodec:
    """Protobuf binary codec for conformance.ConformanceResponse."""
    @staticmethod
    def encode(msg: ConformanceResponse) -> bytes:
        w = writer.BinaryWriter()
        for name, number in _RESPONSE_FIELDS:
            value = getattr(msg, name)
            if value is None:
                continue
            if isinstance(value, bytes):
                w.write_bytes(number, value)
            else:
                w.write_string(number, value)
            break
        return w.result()

    @staticmethod
    def decode(data: bytes) -> ConformanceResponse:
        msg = ConformanceResponse()
        r = reader.BinaryReader(data)
        while r.next_field():
            field_number = r.field_number()
            for name, number in _RESPONSE_FIELDS:
                if field_number == number:
                    if name == 'protobuf_payload':
                        value: Any = r.read_bytes()
                    else:
                        value = r.read_string()
                    msg = ConformanceResponse(**{name: value})
                    break
            else:
                r.skip_field()
        return msg


# A registered message type: its binary codec and its JSON codec.
CodecPair = Tuple[Any, Any]
Registry = Dict[str, CodecPair]


def register_module(registry: Registry, module: ModuleType,
                    package: str) -> None:
    """Registers every message of a generated module under package."""
    for name in dir(module):
        if not name.endswith('JSONCodec'):
            continue
        message = name[:-len('JSONCodec')]
        codec = getattr(module, message + 'Codec', None)
        if codec is not None:
            registry[f'{package}.{message}'] = (codec, getattr(module, name))


def _codecs(registry: Registry, message_type: str) -> CodecPair:
    if message_type.startswith(PROTO2_PACKAGE + '.'):
        raise errors.UnsupportedError('proto2 test messages are not supported')
    try:
        return registry[message_type]
    except KeyError as err:
        raise errors.UnsupportedError(
            f'Unknown message type {message_type}') from err


def run_test(registry: Registry,
             request: ConformanceRequest) -> ConformanceResponse:
    """Produces the response to a single conformance request."""
    if request.message_type == FAILURE_SET_TYPE:
        # An empty FailureSet: no tests are expected to fail.
        return ConformanceResponse(protobuf_payload=b'')

    try:
        codec, json_codec = _codecs(registry, request.message_type)
    except errors.UnsupportedError as err:
        return ConformanceResponse(runtime_error=str(err))

    try:
        if request.protobuf_payload is not None:
            msg = codec.decode(request.protobuf_payload)
        elif request.json_payload is not None:
            msg = json_codec.decode(request.json_payload)
        elif request.jspb_payload is not None:
            return ConformanceResponse(skipped='JSPB is not supported')
        elif request.text_payload is not None:
            return ConformanceResponse(skipped='Text format is not supported')
        else:
            return ConformanceResponse(
                runtime_error='Request does not hold a payload')
    except (errors.Error, ValueError) as err:
        return ConformanceResponse(parse_error=str(err))

    output_format = request.requested_output_format
    if output_format == WireFormat.JSPB:
        return ConformanceResponse(skipped='JSPB is not supported')
    if output_format == WireFormat.TEXT_FORMAT:
        return ConformanceResponse(skipped='Text format is not supported')

    try:
        if output_format == WireFormat.PROTOBUF:
            return ConformanceResponse(protobuf_payload=codec.encode(msg))
        if output_format == WireFormat.JSON:
            return ConformanceResponse(json_payload=json_codec.encode(msg))
    except (errors.Error, ValueError) as err:
        return ConformanceResponse(serialize_error=str(err))

    return ConformanceResponse(
        runtime_error=f'Unknown requested output format {output_format}')


def _read_exactly(stream: BinaryIO, size: int) -> Optional[bytes]:
    """Reads size bytes; returns None if the stream ended before any byte."""
    data = b''
    while len(data) < size:
        chunk = stream.read(size - len(data))
        if not chunk:
            if not data:
                return None
            raise IOError('Premature end of input')
        data += chunk
    return data


def serve_one(test: Callable[[ConformanceRequest], ConformanceResponse],
              stdin: BinaryIO, stdout: BinaryIO) -> bool:
    """Handles one request frame; returns False at the end of input."""
    header = _read_exactly(stdin, _LENGTH.size)
    if header is None:
        return False

    (length, ) = _LENGTH.unpack(header)
    payload = _read_exactly(stdin, length)
    if payload is None and length:
        raise IOError('Failed to read request')

    request = ConformanceRequestCodec.decode(payload or b'')
    response = ConformanceResponseCodec.encode(test(request))

    stdout.write(_LENGTH.pack(len(response)))
    stdout.write(response)
    stdout.flush()
    return True


def serve(registry: Registry, stdin: BinaryIO, stdout: BinaryIO) -> int:
    """Answers requests until the input ends. Returns the number handled."""
    count = 0
    while serve_one(lambda request: run_test(registry, request), stdin,
                    stdout):
        count += 1
    return count


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument(
        '--module',
        dest='modules',
        action='append',
        default=[],
        help='Generated module whose messages are registered for testing',
    )
    parser.add_argument(
        '--package',
        default=DEFAULT_PACKAGE,
        help='.proto package of the messages in each module',
    )
    return parser.parse_args()


def main() -> int:
    log.install()
    args = _parse_args()

    registry: Registry = {}
    for module_name in args.modules:
        register_module(registry, importlib.import_module(module_name),
                        args.package)
    _LOG.debug('Registered %d message types', len(registry))

    try:
        count = serve(registry, sys.stdin.buffer, sys.stdout.buffer)
    except IOError as err:
        _LOG.error('Conformance testee exiting: %s', err)
        return 1

    _LOG.info('Handled %d conformance requests', count)
    return 0


if __name__ == '__main__':
    sys.exit(main())
