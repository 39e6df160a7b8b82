#!/usr/bin/env python3
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
"""Tests for the protoc plugin entry points."""

import os
import tempfile
import unittest
from pathlib import Path
from typing import Iterable
from unittest import mock

from google.protobuf import descriptor_pb2
from google.protobuf.compiler import plugin_pb2

from proto_fixtures import (INT32, MESSAGE, field, message, proto_file,
                            well_known_file)

from pw_protogen import config, plugin

_HAT = proto_file('shop/hat.proto',
                  'shop',
                  messages=[
                      message('Hat', [
                          field('inches', 1, INT32),
                          field('made', 2, MESSAGE,
                                '.google.protobuf.Timestamp'),
                      ])
                  ],
                  dependencies=['google/protobuf/timestamp.proto'])


def _request(files: Iterable[descriptor_pb2.FileDescriptorProto],
             to_generate: Iterable[str] = (),
             parameter: str = '') -> plugin_pb2.CodeGeneratorRequest:
    req = plugin_pb2.CodeGeneratorRequest()
    req.proto_file.extend(files)
    req.file_to_generate.extend(to_generate)
    req.parameter = parameter
    return req


class ParseParameterOptionsTest(unittest.TestCase):
    """Tests splitting and parsing the --pwpy_opt parameter string."""
    def test_empty(self) -> None:
        args = plugin.parse_parameter_options('')
        self.assertIsNone(args.config_file)
        self.assertIsNone(args.language)
        self.assertIsNone(args.emit_well_known_types)
        self.assertIsNone(args.json_emit_default_values)
        self.assertFalse(args.verbose)

    def test_comma_separated(self) -> None:
        args = plugin.parse_parameter_options(
            '--language=python-untyped,--json-emit-default-values,'
            '--json-use-proto-field-name')
        self.assertEqual(args.language, 'python-untyped')
        self.assertTrue(args.json_emit_default_values)
        self.assertTrue(args.json_use_proto_field_name)
        self.assertIsNone(args.emit_well_known_types)

    def test_quoted_path(self) -> None:
        args = plugin.parse_parameter_options(
            "--config-file='my dir/pw_protogen.yaml'")
        self.assertEqual(args.config_file, Path('my dir/pw_protogen.yaml'))

    def test_invalid_language(self) -> None:
        with mock.patch('sys.stderr'):
            with self.assertRaises(SystemExit):
                plugin.parse_parameter_options('--language=rust')


class ProcessProtoRequestTest(unittest.TestCase):
    """Tests turning a CodeGeneratorRequest into a response."""
    def setUp(self) -> None:
        environment = mock.patch.dict(os.environ)
        environment.start()
        self.addCleanup(environment.stop)
        os.environ.pop(config.ENVIRONMENT_VAR, None)

    def test_generates_requested_files(self) -> None:
        res = plugin_pb2.CodeGeneratorResponse()
        req = _request([well_known_file('timestamp'), _HAT],
                       ['shop/hat.proto'])
        self.assertTrue(plugin.process_proto_request(req, res))
        self.assertFalse(res.error)
        self.assertEqual([f.name for f in res.file], ['shop/hat_pb.py'])
        self.assertIn('class HatCodec:', res.file[0].content)

    def test_all_files_when_none_requested(self) -> None:
        res = plugin_pb2.CodeGeneratorResponse()
        req = _request([well_known_file('timestamp'), _HAT])
        self.assertTrue(plugin.process_proto_request(req, res))
        self.assertEqual([f.name for f in res.file], ['shop/hat_pb.py'])

    def test_emit_well_known_types(self) -> None:
        res = plugin_pb2.CodeGeneratorResponse()
        req = _request([well_known_file('timestamp'), _HAT],
                       parameter='--emit-well-known-types')
        self.assertTrue(plugin.process_proto_request(req, res))
        self.assertEqual(
            [f.name for f in res.file],
            ['google/protobuf/timestamp_pb.py', 'shop/hat_pb.py'])
        self.assertIn('import google.protobuf.timestamp_pb as',
                      res.file[1].content)

    def test_untyped_language(self) -> None:
        res = plugin_pb2.CodeGeneratorResponse()
        req = _request([well_known_file('timestamp'), _HAT],
                       ['shop/hat.proto'], '--language=python-untyped')
        self.assertTrue(plugin.process_proto_request(req, res))
        self.assertNotIn('HatPartial', res.file[0].content)

    def test_config_file(self) -> None:
        with tempfile.TemporaryDirectory() as tempdir:
            config_file = Path(tempdir, 'pw_protogen.yaml')
            config_file.write_text('pw_protogen:\n'
                                   '  language: python-untyped\n')
            res = plugin_pb2.CodeGeneratorResponse()
            req = _request([well_known_file('timestamp'), _HAT],
                           ['shop/hat.proto'],
                           f'--config-file={config_file}')
            self.assertTrue(plugin.process_proto_request(req, res))
        self.assertIn('def initialize(values=None):', res.file[0].content)

    def test_missing_config_file(self) -> None:
        res = plugin_pb2.CodeGeneratorResponse()
        req = _request([_HAT], parameter='--config-file=/no/such/file.yaml')
        with self.assertLogs('pw_protogen.plugin', 'ERROR'):
            self.assertFalse(plugin.process_proto_request(req, res))
        self.assertIn('Cannot load config file', res.error)
        self.assertEqual(len(res.file), 0)

    def test_codegen_error(self) -> None:
        broken = proto_file('broken.proto',
                            'pkg',
                            messages=[
                                message('Broken', [
                                    field('thing', 1, MESSAGE,
                                          '.missing.Thing'),
                                ])
                            ])
        res = plugin_pb2.CodeGeneratorResponse()
        with self.assertLogs('pw_protogen.plugin', 'ERROR'):
            self.assertFalse(
                plugin.process_proto_request(_request([broken]), res))
        self.assertTrue(
            res.error.startswith('pw_protogen codegen error: '))
        self.assertIn('in field thing', res.error)

    def test_duplicate_definitions(self) -> None:
        copy = proto_file('copy.proto', 'shop', messages=[message('Hat')])
        res = plugin_pb2.CodeGeneratorResponse()
        with self.assertLogs('pw_protogen.plugin', 'ERROR'):
            self.assertFalse(
                plugin.process_proto_request(
                    _request([well_known_file('timestamp'), _HAT, copy]),
                    res))
        self.assertIn('failed to index the request', res.error)


if __name__ == '__main__':
    unittest.main()
