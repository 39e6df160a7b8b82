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
"""pw_protogen compiler plugin.

This file implements a protobuf compiler plugin which generates Python records
and codecs for protobuf messages. Install the package and run protoc with

  protoc --pwpy_out=OUT_DIR --pwpy_opt=--language=python-untyped foo.proto
"""

import logging
import sys
from argparse import ArgumentParser, Namespace
from pathlib import Path
from shlex import shlex

from google.protobuf.compiler import plugin_pb2

from pw_protogen import codegen_py, config, identifiers, log

_LOG = logging.getLogger(__name__)


def parse_parameter_options(parameter: str) -> Namespace:
    """Parses parameters passed through from protoc.

    These parameters come in via passing `--${NAME}_opt` parameters to protoc,
    where protoc-gen-${NAME} is the supplied name of the plugin.
    """
    parser = ArgumentParser()
    parser.add_argument(
        '--config-file',
        dest='config_file',
        metavar='FILE',
        type=Path,
        help='YAML file holding a pw_protogen section',
    )
    parser.add_argument(
        '--language',
        dest='language',
        choices=config.LANGUAGES,
        help='Generate annotated (python) or unannotated (python-untyped) '
        'modules',
    )
    parser.add_argument(
        '--emit-well-known-types',
        dest='emit_well_known_types',
        action='store_true',
        default=None,
        help='Generate code for well-known types instead of using the '
        'runtime-provided Timestamp, Duration and Empty',
    )
    parser.add_argument(
        '--json-emit-default-values',
        dest='json_emit_default_values',
        action='store_true',
        default=None,
        help='Write fields holding default values in JSON output',
    )
    parser.add_argument(
        '--json-use-proto-field-name',
        dest='json_use_proto_field_name',
        action='store_true',
        default=None,
        help='Key JSON output by .proto field names instead of JSON names',
    )
    parser.add_argument(
        '-v',
        '--verbose',
        dest='verbose',
        action='store_true',
        help='Log debug messages to stderr',
    )

    # protoc passes the custom arguments in shell quoted form, separated by
    # commas. Use shlex to split them, correctly handling quoted sections, with
    # equivalent options to IFS=","
    lex = shlex(parameter)
    lex.whitespace_split = True
    lex.whitespace = ','
    lex.commenters = ''
    args = list(lex)

    return parser.parse_args(args)


def _fail(res: plugin_pb2.CodeGeneratorResponse, message: str) -> bool:
    _LOG.error('%s', message)
    res.error = message
    return False


def process_proto_request(req: plugin_pb2.CodeGeneratorRequest,
                          res: plugin_pb2.CodeGeneratorResponse) -> bool:
    """Handles a protoc CodeGeneratorRequest message.

    Generates code for the files in the request and writes the output to the
    specified CodeGeneratorResponse message.

    Args:
      req: A CodeGeneratorRequest for a proto compilation.
      res: A CodeGeneratorResponse to populate with the plugin's output.

    Returns:
      False if code generation failed. res.error describes the failure.
    """
    args = parse_parameter_options(req.parameter)
    if args.verbose:
        log.install(logging.DEBUG)

    try:
        options = config.load_options(
            args.config_file, {
                'language': args.language,
                'emit_well_known_types': args.emit_well_known_types,
                'json_emit_default_values': args.json_emit_default_values,
                'json_use_proto_field_name': args.json_use_proto_field_name,
            })
    except (config.InvalidConfig, config.MissingConfigTitle,
            FileNotFoundError) as err:
        return _fail(res, str(err).strip())

    try:
        table = identifiers.IdentifierTable(req.proto_file,
                                            options.emit_well_known_types)
    except ValueError as err:
        return _fail(res, f'pw_protogen failed to index the request: {err}')

    to_generate = list(req.file_to_generate) or [
        proto_file.name for proto_file in req.proto_file
    ]

    for file_name in to_generate:
        if table.is_runtime_provided(file_name):
            _LOG.debug('Skipping %s; its types are provided by %s', file_name,
                       identifiers.WELL_KNOWN_TYPES_MODULE)
            continue

        try:
            output_files = codegen_py.process_proto_file(
                table, file_name, options)
        except codegen_py.CodegenError as err:
            return _fail(res, err.formatted_message())

        for output_file in output_files:
            _LOG.debug('Generated %s', output_file.name())
            fd = res.file.add()
            fd.name = output_file.name()
            fd.content = output_file.content()

    return True


def main() -> int:
    """Protobuf compiler plugin entrypoint.

    Reads a CodeGeneratorRequest proto from stdin and writes a
    CodeGeneratorResponse to stdout.
    """
    log.install(logging.WARNING)

    data = sys.stdin.buffer.read()
    request = plugin_pb2.CodeGeneratorRequest.FromString(data)
    response = plugin_pb2.CodeGeneratorResponse()

    # Declare that this plugin supports optional fields in proto3.
    response.supported_features |= (  # type: ignore[attr-defined]
        response.FEATURE_PROTO3_OPTIONAL)  # type: ignore[attr-defined]

    # Failures are reported to protoc through response.error, which protoc
    # prints, so the response is written either way.
    process_proto_request(request, response)

    sys.stdout.buffer.write(response.SerializeToString())
    return 0


if __name__ == '__main__':
    sys.exit(main())
