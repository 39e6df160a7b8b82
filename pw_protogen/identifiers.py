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
"""Maps fully-qualified protobuf type names to generated Python names.

An IdentifierTable is built once per code generation request from every file in
the request. It assigns each message and enum a module-level name in the module
generated for its file, flattening nested types (``Outer.Inner`` becomes
``Outer_Inner``) and appending ``_`` to names that would collide with Python
keywords, names the generated code imports, or the companion names generated
alongside each type. The table is read-only once built.
"""

import builtins
import dataclasses
import keyword
from typing import Dict, Iterable, List, Optional, Set

from google.protobuf import descriptor_pb2

from pw_protogen import proto_tree
from pw_protogen.proto_tree import ProtoNode

# Module that provides hand-written codecs for the well-known types.
WELL_KNOWN_TYPES_MODULE = 'pw_protogen.well_known_types'

WELL_KNOWN_FILES = frozenset([
    'google/protobuf/duration.proto',
    'google/protobuf/empty.proto',
    'google/protobuf/timestamp.proto',
])

GENERATED_SUFFIX = '_pb'

# Names bound at module scope or as function locals in every generated module.
RUNTIME_NAMES = frozenset([
    'annotations',
    'dataclasses',
    'enum',
    'json_format',
    'partial',
    'reader',
    'typing',
    'wire_format',
    'writer',
    'entry',
    'field_number',
    'item',
    'key',
    'msg',
    'obj',
    'r',
    'value',
    'values',
    'w',
])

# Attribute names that would shadow names used inside generated class bodies.
_RESERVED_ATTRIBUTES = frozenset(['dataclasses', 'typing', 'list', 'dict'])

_RESERVED_NAMES = frozenset(keyword.kwlist) | frozenset(
    dir(builtins)) | RUNTIME_NAMES


class UnknownIdentifierError(LookupError):
    """A type name is not declared by a file or its dependencies."""


def module_name(proto_file: str) -> str:
    """Returns the Python module generated for a .proto file.

    For example, ``foo/bar-baz.proto`` is generated as ``foo.bar_baz_pb`` and
    ``import/1x.proto`` as ``import_._1x_pb``.
    """
    stem = proto_file
    if stem.endswith('.proto'):
        stem = stem[:-len('.proto')]
    parts = [
        part.replace('-', '_').replace('.', '_') for part in stem.split('/')
    ]
    parts[-1] += GENERATED_SUFFIX
    return '.'.join(_package_component(part) for part in parts)


def _package_component(part: str) -> str:
    if keyword.iskeyword(part):
        return part + '_'
    if part[:1].isdigit():
        return '_' + part
    return part


def output_file_name(proto_file: str) -> str:
    return module_name(proto_file).replace('.', '/') + '.py'


def module_alias(module: str) -> str:
    """The name a generated module binds an imported module to."""
    return '_' + module.replace('.', '_')


def attribute_name(field_name: str) -> str:
    """The record attribute used for a field."""
    if keyword.iskeyword(field_name) or field_name in _RESERVED_ATTRIBUTES:
        return field_name + '_'
    return field_name


def enum_member_name(value_name: str) -> str:
    if keyword.iskeyword(value_name):
        return value_name + '_'
    return value_name


@dataclasses.dataclass(frozen=True)
class Identifier:
    """The generated-code identity of a message or enum.

    Attributes:
      name: Module-level name of the record or enum class.
      file: The file through which the type is visible. This is the declaring
          file unless the type was forwarded by a public import.
      package: The .proto package the type belongs to.
      module: Python module that defines name.
      public_import: The declaring file when the type is visible only through a
          public import of file; otherwise None.
      node: The schema node of the type.
    """
    name: str
    file: str
    package: str
    module: str
    public_import: Optional[str]
    node: ProtoNode

    @property
    def full_name(self) -> str:
        return self.node.full_name()

    @property
    def codec(self) -> str:
        return self.name + 'Codec'

    @property
    def json_codec(self) -> str:
        return self.name + 'JSONCodec'

    @property
    def partial(self) -> str:
        return self.name + 'Partial'

    @property
    def names_table(self) -> str:
        return self.name + '_NAMES'

    @property
    def values_table(self) -> str:
        return self.name + '_VALUES'

    def reference(self, attr: str, from_module: str) -> str:
        """Returns an expression naming attr of this type from from_module."""
        if from_module == self.module:
            return attr
        return f'{module_alias(self.module)}.{attr}'


def _candidate_names(node: ProtoNode, name: str) -> List[str]:
    if node.type() is ProtoNode.Type.ENUM:
        return [name, name + '_NAMES', name + '_VALUES']
    return [name, name + 'Codec', name + 'JSONCodec', name + 'Partial']


class IdentifierTable:
    """Identifiers for every message and enum in a code generation request."""
    def __init__(self,
                 proto_files: Iterable[descriptor_pb2.FileDescriptorProto],
                 emit_well_known_types: bool = False):
        self._files: Dict[str, descriptor_pb2.FileDescriptorProto] = {}
        for proto_file in proto_files:
            self._files[proto_file.name] = proto_file

        self._emit_well_known_types = emit_well_known_types
        self.root, self._package_roots = proto_tree.build_tree(
            self._files.values())

        self._by_node: Dict[ProtoNode, Identifier] = {}
        self._entries: Dict[str, List[Identifier]] = {}

        for proto_file in self._files.values():
            self._add_file(proto_file)

        for proto_file in self._files.values():
            self._forward_public_imports(proto_file)

    def file(self, name: str) -> descriptor_pb2.FileDescriptorProto:
        return self._files[name]

    def files(self) -> List[descriptor_pb2.FileDescriptorProto]:
        return list(self._files.values())

    def package_root(self, file_name: str) -> ProtoNode:
        return self._package_roots[file_name]

    def is_runtime_provided(self, file_name: str) -> bool:
        """True if a file's types come from the pw_protogen runtime."""
        return (file_name in WELL_KNOWN_FILES
                and not self._emit_well_known_types)

    def module_for_file(self, file_name: str) -> str:
        if self.is_runtime_provided(file_name):
            return WELL_KNOWN_TYPES_MODULE
        return module_name(file_name)

    def nodes_in_file(self, file_name: str) -> List[ProtoNode]:
        """Messages and enums declared in a file, in declaration order."""
        return [
            node for node in self._package_roots[file_name]
            if node.file() == file_name and node.type() in (
                ProtoNode.Type.MESSAGE, ProtoNode.Type.ENUM)
        ]

    def reserved_names(self, file_name: str) -> Set[str]:
        """Names a file's module binds before any of its own types."""
        reserved = set(_RESERVED_NAMES)
        for dependency in self._files[file_name].dependency:
            reserved.add(module_alias(self.module_for_file(dependency)))
        return reserved

    def _add_file(self, proto_file) -> None:
        taken = self.reserved_names(proto_file.name)
        module = self.module_for_file(proto_file.name)

        for node in self.nodes_in_file(proto_file.name):
            name = '_'.join(node.scoped_names())
            while any(candidate in taken
                      for candidate in _candidate_names(node, name)):
                name += '_'
            taken.update(_candidate_names(node, name))

            identifier = Identifier(name=name,
                                    file=proto_file.name,
                                    package=proto_file.package,
                                    module=module,
                                    public_import=None,
                                    node=node)
            self._by_node[node] = identifier
            self._entries.setdefault(node.full_name(), []).append(identifier)

    def _public_closure(self, file_name: str) -> List[str]:
        """Files whose types file_name re-exports through public imports."""
        found: List[str] = []
        pending = [file_name]
        while pending:
            proto_file = self._files.get(pending.pop())
            if proto_file is None:
                continue
            for index in proto_file.public_dependency:
                dependency = proto_file.dependency[index]
                if dependency not in found and dependency != file_name:
                    found.append(dependency)
                    pending.append(dependency)
        return found

    def _forward_public_imports(self, proto_file) -> None:
        for public_file in self._public_closure(proto_file.name):
            for entries in list(self._entries.values()):
                for entry in list(entries):
                    if (entry.file == public_file
                            and entry.public_import is None):
                        entries.append(
                            dataclasses.replace(entry,
                                                file=proto_file.name,
                                                public_import=public_file))

    def for_node(self, node: ProtoNode) -> Identifier:
        """Returns the identifier of a message or enum node."""
        try:
            return self._by_node[node]
        except KeyError:
            raise UnknownIdentifierError(
                f'Unknown identifier: {node.full_name()}') from None

    def lookup(self, full_name: str, from_file: str) -> Identifier:
        """Resolves a type name as seen from one file.

        The type must be declared in from_file or in one of its direct
        dependencies, including types those dependencies publicly import.

        Raises:
          UnknownIdentifierError: The type is not visible from from_file.
        """
        if not full_name.startswith('.'):
            full_name = '.' + full_name

        visible = {from_file}
        if from_file in self._files:
            visible.update(self._files[from_file].dependency)

        for entry in self._entries.get(full_name, []):
            if entry.file in visible:
                return entry

        raise UnknownIdentifierError(f'Unknown identifier: {full_name}')
