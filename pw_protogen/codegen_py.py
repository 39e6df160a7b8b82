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
"""This module defines the generated code for pw_protogen Python modules.

Each .proto file becomes one module holding, for every message, a dataclass
record plus a binary codec and a JSON codec:

  @dataclasses.dataclass
  class Hat:
      inches: int = 0

  class HatCodec:
      encode(msg) -> bytes
      decode(data) -> Hat
      initialize(values=None) -> Hat

  class HatJSONCodec:
      encode(msg) -> str
      decode(text) -> Hat
      initialize(values=None) -> Hat

Generated modules call only the pw_protogen runtime: writer, reader,
json_format, wire_format and partial.
"""

import dataclasses
import logging
from graphlib import CycleError, TopologicalSorter
from typing import Dict, Iterator, List, Optional, Set, cast

from google.protobuf import descriptor_pb2

from pw_protogen import identifiers
from pw_protogen.config import GeneratorOptions
from pw_protogen.identifiers import (Identifier, IdentifierTable,
                                     UnknownIdentifierError)
from pw_protogen.output_file import OutputFile
from pw_protogen.proto_tree import (ProtoEnum, ProtoMessage,
                                    ProtoMessageField, ProtoNode)

_LOG = logging.getLogger(__name__)

PLUGIN_NAME = 'pw_protogen'
PLUGIN_VERSION = '0.1.0'

_RUNTIME_IMPORT = ('from pw_protogen import json_format, partial, reader, '
                   'wire_format, writer')


class CodegenError(Exception):
    def __init__(
        self,
        error_message: str,
        node: ProtoNode,
        field: Optional[ProtoMessageField] = None,
    ):
        super().__init__(f'pw_protogen codegen error: {error_message}')
        self.error_message = error_message
        self.node = node
        self.field = field

    def formatted_message(self) -> str:
        lines = [
            f'pw_protogen codegen error: {self.error_message}',
            f'    at {self.node.proto_path()}',
        ]

        if self.field is not None:
            lines.append(f'    in field {self.field.name()}')

        return '\n'.join(lines)


@dataclasses.dataclass(frozen=True)
class _ScalarType:
    """How one scalar protobuf type maps onto the runtime.

    method is the suffix of the BinaryWriter/BinaryReader methods for the type.
    json_write and json_read name json_format functions; an empty json_write
    means the Python value is already its JSON form.
    """
    method: str
    annotation: str
    default: str
    json_write: str
    json_read: str


_SCALAR_TYPES: Dict[int, _ScalarType] = {
    descriptor_pb2.FieldDescriptorProto.TYPE_DOUBLE:
    _ScalarType('double', 'float', '0.0', 'json_format.serialize_double',
                'json_format.parse_double'),
    descriptor_pb2.FieldDescriptorProto.TYPE_FLOAT:
    _ScalarType('float', 'float', '0.0', 'json_format.serialize_float',
                'json_format.parse_float'),
    descriptor_pb2.FieldDescriptorProto.TYPE_INT64:
    _ScalarType('int64', 'int', '0', 'json_format.serialize_int64',
                'json_format.parse_int64'),
    descriptor_pb2.FieldDescriptorProto.TYPE_UINT64:
    _ScalarType('uint64', 'int', '0', 'json_format.serialize_int64',
                'json_format.parse_uint64'),
    descriptor_pb2.FieldDescriptorProto.TYPE_INT32:
    _ScalarType('int32', 'int', '0', '', 'json_format.parse_int32'),
    descriptor_pb2.FieldDescriptorProto.TYPE_FIXED64:
    _ScalarType('fixed64', 'int', '0', 'json_format.serialize_int64',
                'json_format.parse_uint64'),
    descriptor_pb2.FieldDescriptorProto.TYPE_FIXED32:
    _ScalarType('fixed32', 'int', '0', '', 'json_format.parse_uint32'),
    descriptor_pb2.FieldDescriptorProto.TYPE_BOOL:
    _ScalarType('bool', 'bool', 'False', '', 'json_format.parse_bool'),
    descriptor_pb2.FieldDescriptorProto.TYPE_STRING:
    _ScalarType('string', 'str', "''", '', 'json_format.parse_string'),
    descriptor_pb2.FieldDescriptorProto.TYPE_BYTES:
    _ScalarType('bytes', 'bytes', "b''", 'json_format.serialize_bytes',
                'json_format.parse_bytes'),
    descriptor_pb2.FieldDescriptorProto.TYPE_UINT32:
    _ScalarType('uint32', 'int', '0', '', 'json_format.parse_uint32'),
    descriptor_pb2.FieldDescriptorProto.TYPE_SFIXED32:
    _ScalarType('sfixed32', 'int', '0', '', 'json_format.parse_int32'),
    descriptor_pb2.FieldDescriptorProto.TYPE_SFIXED64:
    _ScalarType('sfixed64', 'int', '0', 'json_format.serialize_int64',
                'json_format.parse_int64'),
    descriptor_pb2.FieldDescriptorProto.TYPE_SINT32:
    _ScalarType('sint32', 'int', '0', '', 'json_format.parse_int32'),
    descriptor_pb2.FieldDescriptorProto.TYPE_SINT64:
    _ScalarType('sint64', 'int', '0', 'json_format.serialize_int64',
                'json_format.parse_int64'),
}


def _eager_fields(message: ProtoMessage) -> Iterator[ProtoMessageField]:
    """Singular message fields that initialize() would populate."""
    for field in message.fields():
        if (field.is_message() and not field.is_repeated()
                and not field.has_presence()
                and isinstance(field.type_node(), ProtoMessage)):
            yield field


def _reaches(start: ProtoMessage, target: ProtoMessage,
             visited: Set[ProtoMessage]) -> bool:
    if start is target:
        return True
    if start in visited:
        return False
    visited.add(start)
    return any(
        _reaches(cast(ProtoMessage, field.type_node()), target, visited)
        for field in _eager_fields(start))


def is_recursive(message: ProtoMessage, field: ProtoMessageField) -> bool:
    """True if initializing field would recurse back into message.

    Such fields default to None instead of an initialized record.
    """
    node = field.type_node()
    return isinstance(node, ProtoMessage) and _reaches(node, message, set())


class _Field:
    """A message field together with the names used for it in generated code.
    """
    def __init__(self, module: '_ModuleGenerator', message: ProtoMessage,
                 field: ProtoMessageField):
        self.proto = field
        self.number = field.number()
        self.attr = identifiers.attribute_name(field.name())
        self.scalar: Optional[_ScalarType] = _SCALAR_TYPES.get(field.type())
        self.type_id: Optional[Identifier] = None
        self.key: Optional['_Field'] = None
        self.value: Optional['_Field'] = None

        if field.is_message() or field.is_enum():
            self.type_id = module.resolve(message, field)

        if field.is_map():
            entry = cast(ProtoMessage, field.type_node())
            self.key = _Field(module, entry, entry.map_key())
            self.value = _Field(module, entry, entry.map_value())

        self.lazy = (field.is_message() and not field.is_repeated()
                     and not field.has_presence()
                     and is_recursive(message, field))

        if module.options.json_use_proto_field_name:
            self.json_key = field.name()
        else:
            self.json_key = field.json_name()

        self.json_names: List[str] = []
        for name in (field.json_name(), field.name(), self.attr):
            if name not in self.json_names:
                self.json_names.append(name)

    @property
    def is_message(self) -> bool:
        return self.proto.is_message()

    @property
    def is_enum(self) -> bool:
        return self.proto.is_enum()

    @property
    def is_map(self) -> bool:
        return self.proto.is_map()

    @property
    def is_repeated(self) -> bool:
        return self.proto.is_repeated() and not self.proto.is_map()

    @property
    def nullable(self) -> bool:
        """True if the attribute defaults to None."""
        return self.proto.has_presence() or self.lazy


class _ModuleGenerator:
    """Generates the module for a single .proto file."""
    def __init__(self, table: IdentifierTable, proto_file_name: str,
                 options: GeneratorOptions):
        self.table = table
        self.options = options
        self._file = proto_file_name
        self._module = table.module_for_file(proto_file_name)
        self._imports: Set[str] = set()
        self._body = OutputFile(identifiers.output_file_name(proto_file_name))
        self._fields: Dict[ProtoMessage, List[_Field]] = {}

    # Names
    def resolve(self, message: ProtoNode,
                field: ProtoMessageField) -> Identifier:
        node = field.type_node()
        if node is None or node.type() not in (ProtoNode.Type.MESSAGE,
                                               ProtoNode.Type.ENUM):
            raise CodegenError('Field type is not defined in this request',
                               message, field)
        try:
            return self.table.lookup(node.full_name(), self._file)
        except UnknownIdentifierError as err:
            raise CodegenError(str(err), message, field) from err

    def ref(self, identifier: Identifier, attr: Optional[str] = None) -> str:
        """Returns an expression for a name generated for identifier."""
        if identifier.module != self._module:
            self._imports.add(identifier.module)
        return identifier.reference(attr or identifier.name, self._module)

    def _type(self, annotation: str) -> str:
        return annotation if self.options.typed else 'typing.Any'

    def fields(self, message: ProtoMessage) -> List[_Field]:
        """Supported fields of a message, in ascending field number order."""
        if message not in self._fields:
            fields = []
            for field in message.fields_by_number():
                if field.is_group():
                    _LOG.warning(
                        '%s: group field %s.%s is not supported; skipping it',
                        self._file, message.proto_path(), field.name())
                    continue
                fields.append(_Field(self, message, field))
            self._fields[message] = fields
        return self._fields[message]

    def _element_annotation(self, field: _Field) -> str:
        if field.type_id is not None:
            return self.ref(field.type_id)
        assert field.scalar is not None
        return field.scalar.annotation

    def _partial_annotation(self, field: _Field) -> str:
        element = self._element_annotation(field)
        if not field.is_message:
            return element
        type_id = cast(Identifier, field.type_id)
        return f'typing.Union[{element}, {self.ref(type_id, type_id.partial)}]'

    # Generation
    def generate(self) -> OutputFile:
        nodes = self.table.nodes_in_file(self._file)
        enums = [cast(ProtoEnum, n) for n in nodes if isinstance(n, ProtoEnum)]
        messages = [
            cast(ProtoMessage, n) for n in nodes
            if isinstance(n, ProtoMessage)
        ]

        for proto_enum in enums:
            self._generate_enum(proto_enum)

        for message in self._record_order(messages):
            self._generate_record(message)

        if self.options.typed:
            for message in messages:
                if not message.is_map_entry():
                    self._generate_partial(message)

        for message in messages:
            self._generate_codec(message)
            if not message.is_map_entry():
                self._generate_json_codec(message)

        return self._assemble()

    def _assemble(self) -> OutputFile:
        output = OutputFile(self._body.name())
        output.write_line('# THIS IS AN AUTOGENERATED FILE. DO NOT EDIT THIS '
                          'FILE DIRECTLY.')
        output.write_line(f'# Generated by {PLUGIN_NAME} {PLUGIN_VERSION} '
                          f'from {self._file}.')
        output.write_line('# pylint: skip-file')
        output.write_line(f'"""Records and codecs for {self._file}."""')
        output.write_line()
        output.write_line('from __future__ import annotations')
        output.write_line()
        output.write_line('import dataclasses')
        output.write_line('import enum')
        output.write_line('import typing')
        output.write_line()
        output.write_line(_RUNTIME_IMPORT)
        for module in sorted(self._imports):
            output.write_line(
                f'import {module} as {identifiers.module_alias(module)}')
        output.write_line()
        output.write_line()
        return _concatenate(output, self._body)

    def _record_order(self,
                      messages: List[ProtoMessage]) -> List[ProtoMessage]:
        """Orders records so eager field defaults are defined before use."""
        in_module = set(messages)
        sorter: TopologicalSorter = TopologicalSorter()
        for message in messages:
            sorter.add(
                message, *(cast(ProtoMessage, f.proto.type_node())
                           for f in self.fields(message)
                           if f.is_message and not f.is_repeated
                           and not f.is_map and not f.nullable
                           and f.proto.type_node() in in_module))
        try:
            return list(sorter.static_order())
        except CycleError as err:
            raise CodegenError('Message fields form a cycle',
                               cast(ProtoNode, err.args[1][0])) from err

    def _write_docstring(self, node: ProtoNode) -> None:
        """Writes a docstring naming the node, followed by its comments."""
        out = self._body
        comments = node.comments()
        if not comments:
            out.write_line(f'"""{node.proto_path()}"""')
            return

        out.write_line(f'"""{node.proto_path()}')
        out.write_line()
        escaped = comments.replace('\\', '\\\\').replace('"', '\\"')
        for line in escaped.splitlines():
            out.write_line(line)
        out.write_line('"""')

    def _write_comments(self, comments: str) -> None:
        for line in comments.splitlines():
            self._body.write_line(f'# {line}' if line else '#')

    def _generate_enum(self, proto_enum: ProtoEnum) -> None:
        identifier = self.table.for_node(proto_enum)
        values = proto_enum.values()
        if not values:
            raise CodegenError('Enum has no values', proto_enum)

        out = self._body
        out.write_line(f'class {identifier.name}(enum.IntEnum):')
        with out.indent():
            self._write_docstring(proto_enum)
            for name, number in values:
                self._write_comments(proto_enum.value_comments(name))
                out.write_line(
                    f'{identifiers.enum_member_name(name)} = {number}')
        out.write_line()
        out.write_line()

        names: Dict[int, str] = {}
        for name, number in values:
            names.setdefault(number, name)

        names_type = ': typing.Dict[int, str]' if self.options.typed else ''
        out.write_line(f'{identifier.names_table}{names_type} = {{')
        with out.indent():
            for number, name in names.items():
                out.write_line(f'{number}: {name!r},')
        out.write_line('}')

        values_type = ': typing.Dict[str, int]' if self.options.typed else ''
        out.write_line(f'{identifier.values_table}{values_type} = {{')
        with out.indent():
            for name, number in values:
                out.write_line(f'{name!r}: {number},')
        out.write_line('}')
        out.write_line()
        out.write_line()

    def _record_field(self, field: _Field) -> str:
        """Returns the record attribute declaration for a field."""
        element = self._element_annotation(field)

        if field.is_map:
            assert field.key is not None and field.value is not None
            annotation = (f'typing.Dict[{self._element_annotation(field.key)}, '
                          f'{self._element_annotation(field.value)}]')
            default = 'dataclasses.field(default_factory=dict)'
        elif field.is_repeated:
            annotation = f'typing.List[{element}]'
            default = 'dataclasses.field(default_factory=list)'
        elif field.nullable:
            annotation = f'typing.Optional[{element}]'
            default = 'None'
        elif field.is_message:
            annotation = element
            default = f'dataclasses.field(default_factory={element})'
        elif field.is_enum:
            annotation = element
            enum_node = cast(ProtoEnum, field.proto.type_node())
            member = identifiers.enum_member_name(enum_node.default_value()[0])
            default = f'{element}.{member}'
        else:
            assert field.scalar is not None
            annotation = element
            default = field.scalar.default

        return f'{field.attr}: {self._type(annotation)} = {default}'

    def _generate_record(self, message: ProtoMessage) -> None:
        identifier = self.table.for_node(message)
        out = self._body
        out.write_line('@dataclasses.dataclass')
        out.write_line(f'class {identifier.name}:')
        with out.indent():
            self._write_docstring(message)
            for field in self.fields(message):
                self._write_comments(field.proto.comments())
                out.write_line(self._record_field(field))
        out.write_line()
        out.write_line()

    def _generate_partial(self, message: ProtoMessage) -> None:
        identifier = self.table.for_node(message)
        fields = self.fields(message)
        out = self._body
        out.write_line(
            f'class {identifier.partial}(typing.TypedDict, total=False):')
        with out.indent():
            if not fields:
                out.write_line('pass')
            for field in fields:
                if field.is_map:
                    assert field.key is not None and field.value is not None
                    annotation = (
                        f'typing.Dict[{self._element_annotation(field.key)}, '
                        f'{self._partial_annotation(field.value)}]')
                elif field.is_repeated:
                    annotation = (
                        f'typing.List[{self._partial_annotation(field)}]')
                elif field.nullable:
                    annotation = (
                        f'typing.Optional[{self._partial_annotation(field)}]')
                else:
                    annotation = self._partial_annotation(field)
                out.write_line(f'{field.attr}: {annotation}')
        out.write_line()
        out.write_line()

    def _signature(self, name: str, params: List[str], returns: str) -> str:
        """Returns a def line, dropping annotations for untyped output."""
        if not self.options.typed:
            params = [
                p.split(':')[0] + ('=None' if p.endswith(' = None') else '')
                for p in params
            ]
            return f'def {name}({", ".join(params)}):'
        return f'def {name}({", ".join(params)}) -> {returns}:'

    @staticmethod
    def _oneof_condition(message_fields: List[_Field],
                         field: _Field) -> List[str]:
        """Conditions under which a oneof member is the one written.

        The first declared member that is set wins.
        """
        oneof = field.proto.oneof()
        if oneof is None:
            return []
        earlier = []
        for member in oneof.fields():
            if member is field.proto:
                break
            earlier.extend(f for f in message_fields if f.proto is member)
        return [f'msg.{f.attr} is None' for f in earlier]

    def _siblings(self, message_fields: List[_Field],
                  field: _Field) -> List[_Field]:
        oneof = field.proto.oneof()
        if oneof is None:
            return []
        return [
            f for f in message_fields
            if f.proto.oneof() is oneof and f is not field
        ]

    def _write_condition(self, message_fields: List[_Field], field: _Field,
                         json: bool) -> Optional[str]:
        if field.nullable:
            conditions = [f'msg.{field.attr} is not None']
            conditions += self._oneof_condition(message_fields, field)
            return ' and '.join(conditions)

        if json and self.options.json_emit_default_values:
            return None

        if field.is_message and not field.is_repeated and not field.is_map:
            if not json:
                return None
            type_id = cast(Identifier, field.type_id)
            return (f'msg.{field.attr} != '
                    f'{self.ref(type_id, type_id.codec)}.initialize()')

        return f'msg.{field.attr}'

    def _write_call(self, field: _Field) -> List[str]:
        """Statements writing a field to the BinaryWriter w."""
        attr = f'msg.{field.attr}'
        number = field.number

        if field.is_map:
            entry = self.table.for_node(cast(ProtoNode,
                                             field.proto.type_node()))
            return [
                f'for key, value in {attr}.items():',
                f'    w.write_message({number}, '
                f'{self.ref(entry)}(key=key, value=value), '
                f'{self.ref(entry, entry.codec)}._write)',
            ]

        if field.is_message:
            codec = self.ref(cast(Identifier, field.type_id),
                             cast(Identifier, field.type_id).codec)
            if field.is_repeated:
                return [
                    f'w.write_repeated_message({number}, {attr}, '
                    f'{codec}._write)'
                ]
            if field.nullable:
                return [f'w.write_message({number}, {attr}, {codec}._write)']
            return [
                f'w.write_message({number}, {attr}, {codec}._write, '
                'omit_empty=True)'
            ]

        method = 'enum' if field.is_enum else cast(_ScalarType,
                                                   field.scalar).method
        if field.is_repeated:
            if field.proto.is_packed():
                return [f'w.write_packed_{method}({number}, {attr})']
            if method in ('string', 'bytes'):
                return [f'w.write_repeated_{method}({number}, {attr})']
            return [
                f'for value in {attr}:',
                f'    w.write_{method}({number}, value)',
            ]
        return [f'w.write_{method}({number}, {attr})']

    def _read_value(self, field: _Field) -> str:
        """Expression reading one element of a non-message field from r."""
        if field.is_enum:
            enum_type = self.ref(cast(Identifier, field.type_id))
            return f'wire_format.enum_value({enum_type}, r.read_enum())'
        return f'r.read_{cast(_ScalarType, field.scalar).method}()'

    def _read_call(self, field: _Field) -> List[str]:
        """Statements reading the current field from r into msg."""
        attr = f'msg.{field.attr}'

        if field.is_map:
            entry = self.table.for_node(cast(ProtoNode,
                                             field.proto.type_node()))
            codec = self.ref(entry, entry.codec)
            return [
                f'entry = r.read_message({codec}.initialize(), '
                f'{codec}._read)',
                f'{attr}[entry.key] = entry.value',
            ]

        if field.is_message:
            codec = self.ref(cast(Identifier, field.type_id),
                             cast(Identifier, field.type_id).codec)
            if field.is_repeated:
                return [
                    f'{attr}.append(r.read_message({codec}.initialize(), '
                    f'{codec}._read))'
                ]
            if field.nullable:
                return [
                    f'{attr} = r.read_message({attr} if {attr} is not None '
                    f'else {codec}.initialize(), {codec}._read)'
                ]
            return [f'r.read_message({attr}, {codec}._read)']

        if field.is_repeated:
            if field.proto.type() in (
                    descriptor_pb2.FieldDescriptorProto.TYPE_STRING,
                    descriptor_pb2.FieldDescriptorProto.TYPE_BYTES):
                return [f'{attr}.append({self._read_value(field)})']
            if field.is_enum:
                enum_type = self.ref(cast(Identifier, field.type_id))
                return [
                    f'{attr}.extend(wire_format.enum_value({enum_type}, '
                    'value) for value in r.read_packed_enum())'
                ]
            method = cast(_ScalarType, field.scalar).method
            return [f'{attr}.extend(r.read_packed_{method}())']

        return [f'{attr} = {self._read_value(field)}']

    def _generate_codec(self, message: ProtoMessage) -> None:
        identifier = self.table.for_node(message)
        record = identifier.name
        codec = identifier.codec
        partial_type = (record if message.is_map_entry() else
                        f'typing.Union[{record}, {identifier.partial}]')
        values_type = (f'typing.Optional[{identifier.partial}]'
                       if not message.is_map_entry() else
                       'typing.Optional[typing.Mapping[str, typing.Any]]')
        fields = self.fields(message)

        out = self._body
        out.write_line(f'class {codec}:')
        with out.indent():
            out.write_line(
                f'"""Protobuf binary codec for {message.proto_path()}."""')
            out.write_line('@staticmethod')
            out.write_line(
                self._signature('encode', [f'msg: {partial_type}'], 'bytes'))
            with out.indent():
                out.write_line(f'if not isinstance(msg, {record}):')
                with out.indent():
                    out.write_line(f'msg = {codec}.initialize(msg)')
                out.write_line('w = writer.BinaryWriter()')
                out.write_line(f'{codec}._write(msg, w)')
                out.write_line('return w.result()')
            out.write_line()

            out.write_line('@staticmethod')
            out.write_line(
                self._signature('decode', ['data: bytes'], record))
            with out.indent():
                out.write_line(f'return {codec}._read({codec}.initialize(), '
                               'reader.BinaryReader(data))')
            out.write_line()

            self._generate_initialize(record, values_type, fields)

            out.write_line('@staticmethod')
            out.write_line(
                self._signature('_write',
                                [f'msg: {record}', 'w: writer.BinaryWriter'],
                                'None'))
            with out.indent():
                if not fields:
                    out.write_line('pass')
                for field in fields:
                    condition = self._write_condition(fields, field, False)
                    if condition is None:
                        out.write_lines(self._write_call(field))
                    else:
                        out.write_line(f'if {condition}:')
                        with out.indent():
                            out.write_lines(self._write_call(field))
            out.write_line()

            out.write_line('@staticmethod')
            out.write_line(
                self._signature('_read',
                                [f'msg: {record}', 'r: reader.BinaryReader'],
                                record))
            with out.indent():
                out.write_line('while r.next_field():')
                with out.indent():
                    if fields:
                        out.write_line('field_number = r.field_number()')
                    keyword = 'if'
                    for field in fields:
                        out.write_line(
                            f'{keyword} field_number == {field.number}:')
                        with out.indent():
                            out.write_lines(self._read_call(field))
                            for sibling in self._siblings(fields, field):
                                out.write_line(f'msg.{sibling.attr} = None')
                        keyword = 'elif'
                    if fields:
                        out.write_line('else:')
                        with out.indent():
                            out.write_line('r.skip_field()')
                    else:
                        out.write_line('r.skip_field()')
                out.write_line('return msg')
        out.write_line()
        out.write_line()

    def _generate_initialize(self, record: str, values_type: str,
                             fields: List[_Field]) -> None:
        out = self._body
        nested = []
        for field in fields:
            if field.is_map:
                assert field.value is not None
                if not field.value.is_message:
                    continue
                kind, type_id = 'MAP', cast(Identifier, field.value.type_id)
            elif field.is_message:
                kind = 'REPEATED' if field.is_repeated else 'SINGULAR'
                type_id = cast(Identifier, field.type_id)
            else:
                continue
            nested.append(f'{field.attr!r}: (partial.Nested.{kind}, '
                          f'{self.ref(type_id, type_id.codec)}.initialize),')

        out.write_line('@staticmethod')
        out.write_line(
            self._signature('initialize', [f'values: {values_type} = None'],
                            record))
        with out.indent():
            if not nested:
                out.write_line(f'return partial.apply({record}(), values)')
            else:
                out.write_line(f'return partial.apply({record}(), values, {{')
                with out.indent():
                    out.write_lines(nested)
                out.write_line('})')
        out.write_line()

    def _json_write_value(self, field: _Field, value: str) -> str:
        """Expression converting one element of a field to its JSON form."""
        if field.is_message:
            type_id = cast(Identifier, field.type_id)
            return f'{self.ref(type_id, type_id.json_codec)}._write({value})'
        if field.is_enum:
            type_id = cast(Identifier, field.type_id)
            return (f'json_format.serialize_enum({value}, '
                    f'{self.ref(type_id, type_id.names_table)})')
        scalar = cast(_ScalarType, field.scalar)
        if scalar.json_write:
            return f'{scalar.json_write}({value})'
        return value

    def _json_read_value(self, field: _Field, value: str) -> str:
        """Expression parsing one JSON element of a field."""
        if field.is_message:
            type_id = cast(Identifier, field.type_id)
            json_codec = self.ref(type_id, type_id.json_codec)
            return f'{json_codec}._read({value}, {json_codec}.initialize())'
        if field.is_enum:
            type_id = cast(Identifier, field.type_id)
            return (f'wire_format.enum_value({self.ref(type_id)}, '
                    f'json_format.parse_enum({value}, '
                    f'{self.ref(type_id, type_id.values_table)}))')
        return f'{cast(_ScalarType, field.scalar).json_read}({value})'

    def _json_write(self, field: _Field) -> str:
        attr = f'msg.{field.attr}'
        target = f'obj[{field.json_key!r}]'

        if field.is_map:
            assert field.key is not None and field.value is not None
            if field.key.proto.type() == (
                    descriptor_pb2.FieldDescriptorProto.TYPE_STRING):
                key = 'key'
            else:
                key = 'json_format.serialize_map_key(key)'
            return (f'{target} = {{{key}: '
                    f'{self._json_write_value(field.value, "value")} '
                    f'for key, value in {attr}.items()}}')

        if field.is_repeated:
            element = self._json_write_value(field, 'value')
            if element == 'value':
                return f'{target} = list({attr})'
            return f'{target} = [{element} for value in {attr}]'

        return f'{target} = {self._json_write_value(field, attr)}'

    def _json_read(self, field: _Field) -> List[str]:
        attr = f'msg.{field.attr}'

        if field.is_map:
            assert field.key is not None and field.value is not None
            key_type = field.key.proto.type()
            if key_type == descriptor_pb2.FieldDescriptorProto.TYPE_STRING:
                key = 'key'
            elif key_type == descriptor_pb2.FieldDescriptorProto.TYPE_BOOL:
                key = 'json_format.parse_bool_key(key)'
            else:
                key = self._json_read_value(field.key, 'key')
            return [
                f'for key, item in json_format.expect_object(value, '
                f'{field.proto.name()!r}).items():',
                f'    {attr}[{key}] = '
                f'{self._json_read_value(field.value, "item")}',
            ]

        if field.is_repeated:
            return [
                f'{attr} = [{self._json_read_value(field, "item")} '
                'for item in json_format.expect_list(value, '
                f'{field.proto.name()!r})]'
            ]

        if field.is_message:
            type_id = cast(Identifier, field.type_id)
            json_codec = self.ref(type_id, type_id.json_codec)
            if field.nullable:
                return [
                    f'{attr} = {json_codec}._read(value, {attr} if {attr} '
                    f'is not None else {json_codec}.initialize())'
                ]
            return [f'{json_codec}._read(value, {attr})']

        return [f'{attr} = {self._json_read_value(field, "value")}']

    def _generate_json_codec(self, message: ProtoMessage) -> None:
        identifier = self.table.for_node(message)
        record = identifier.name
        json_codec = identifier.json_codec
        fields = self.fields(message)

        out = self._body
        out.write_line(f'class {json_codec}:')
        with out.indent():
            out.write_line(
                f'"""Canonical JSON codec for {message.proto_path()}."""')
            out.write_line('@staticmethod')
            out.write_line(
                self._signature(
                    'encode',
                    [f'msg: typing.Union[{record}, {identifier.partial}]'],
                    'str'))
            with out.indent():
                out.write_line(f'if not isinstance(msg, {record}):')
                with out.indent():
                    out.write_line(f'msg = {json_codec}.initialize(msg)')
                out.write_line(
                    f'return json_format.dumps({json_codec}._write(msg))')
            out.write_line()

            out.write_line('@staticmethod')
            out.write_line(
                self._signature('decode', ['text: typing.Union[str, bytes]'],
                                record))
            with out.indent():
                out.write_line(
                    f'return {json_codec}._read(json_format.loads_value(text), '
                    f'{json_codec}.initialize())')
            out.write_line()

            out.write_line('@staticmethod')
            out.write_line(
                self._signature(
                    'initialize',
                    [f'values: typing.Optional[{identifier.partial}] = None'],
                    record))
            with out.indent():
                out.write_line(f'return {identifier.codec}.initialize(values)')
            out.write_line()

            out.write_line('@staticmethod')
            out.write_line(
                self._signature('_write', [f'msg: {record}'],
                                'typing.Dict[str, typing.Any]'))
            with out.indent():
                if self.options.typed:
                    out.write_line('obj: typing.Dict[str, typing.Any] = {}')
                else:
                    out.write_line('obj = {}')
                for field in fields:
                    condition = self._write_condition(fields, field, True)
                    if condition is None:
                        out.write_line(self._json_write(field))
                    else:
                        out.write_line(f'if {condition}:')
                        with out.indent():
                            out.write_line(self._json_write(field))
                out.write_line('return obj')
            out.write_line()

            out.write_line('@staticmethod')
            out.write_line(
                self._signature('_read', ['obj: typing.Any', f'msg: {record}'],
                                record))
            with out.indent():
                out.write_line(f'obj = json_format.expect_object(obj, '
                               f'{message.proto_path()!r})')
                for field in fields:
                    names = ', '.join(repr(name) for name in field.json_names)
                    out.write_line(f'value = json_format.field(obj, {names})')
                    out.write_line('if value is not None:')
                    with out.indent():
                        out.write_lines(self._json_read(field))
                        for sibling in self._siblings(fields, field):
                            out.write_line(f'msg.{sibling.attr} = None')
                out.write_line('return msg')
        out.write_line()
        out.write_line()


def _concatenate(first: OutputFile, second: OutputFile) -> OutputFile:
    output = OutputFile(first.name())
    content = (first.content() + second.content()).rstrip('\n')
    for line in content.split('\n'):
        output.write_line(line)
    return output


def process_proto_file(table: IdentifierTable, proto_file_name: str,
                       options: GeneratorOptions) -> List[OutputFile]:
    """Generates the Python module for one file of a request.

    Raises:
      CodegenError: The file uses a construct the generator cannot handle.
    """
    _LOG.debug('Generating %s', proto_file_name)
    generator = _ModuleGenerator(table, proto_file_name, options)
    return [generator.generate()]
