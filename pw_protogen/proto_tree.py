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
"""This module defines data structures for protobuf entities."""

import abc
import collections
import enum
import textwrap

from typing import (Callable, Dict, Iterable, Iterator, List, Optional, Tuple,
                    TypeVar)
from typing import cast

from google.protobuf import descriptor_pb2

T = TypeVar('T')  # pylint: disable=invalid-name

# Scalar types that may use the packed encoding when repeated.
PACKABLE_TYPES = frozenset([
    descriptor_pb2.FieldDescriptorProto.TYPE_DOUBLE,
    descriptor_pb2.FieldDescriptorProto.TYPE_FLOAT,
    descriptor_pb2.FieldDescriptorProto.TYPE_INT64,
    descriptor_pb2.FieldDescriptorProto.TYPE_UINT64,
    descriptor_pb2.FieldDescriptorProto.TYPE_INT32,
    descriptor_pb2.FieldDescriptorProto.TYPE_FIXED64,
    descriptor_pb2.FieldDescriptorProto.TYPE_FIXED32,
    descriptor_pb2.FieldDescriptorProto.TYPE_BOOL,
    descriptor_pb2.FieldDescriptorProto.TYPE_UINT32,
    descriptor_pb2.FieldDescriptorProto.TYPE_ENUM,
    descriptor_pb2.FieldDescriptorProto.TYPE_SFIXED32,
    descriptor_pb2.FieldDescriptorProto.TYPE_SFIXED64,
    descriptor_pb2.FieldDescriptorProto.TYPE_SINT32,
    descriptor_pb2.FieldDescriptorProto.TYPE_SINT64,
])


class ProtoNode(abc.ABC):
    """A ProtoNode represents an entity declared in a .proto file.

    Nodes form a tree beginning at a top-level (global) scope, descending into a
    hierarchy of .proto packages and the messages, enums and services defined
    within them. A single tree holds every file of a code generation request,
    so fields can refer to types declared in other files.
    """
    class Type(enum.Enum):
        """The type of a ProtoNode.

        PACKAGE is a component of a dotted .proto package name.
        MESSAGE maps to a record and its codecs in generated code.
        ENUM maps to an IntEnum at module scope.
        EXTERNAL represents a node referenced but not defined in the request.
        SERVICE represents an RPC service definition.
        """
        PACKAGE = 1
        MESSAGE = 2
        ENUM = 3
        EXTERNAL = 4
        SERVICE = 5

    def __init__(self, name: str, file: str = ''):
        self._name: str = name
        self._file: str = file
        self._children: Dict[str, 'ProtoNode'] = collections.OrderedDict()
        self._parent: Optional['ProtoNode'] = None
        self._comments: str = ''

    @abc.abstractmethod
    def type(self) -> 'ProtoNode.Type':
        """The type of the node."""

    def children(self) -> List['ProtoNode']:
        return list(self._children.values())

    def name(self) -> str:
        return self._name

    def file(self) -> str:
        """The .proto file which declares this node; empty for packages."""
        return self._file

    def comments(self) -> str:
        """Comments attached to the declaration in the .proto source."""
        return self._comments

    def set_comments(self, comments: str) -> None:
        self._comments = comments

    def proto_path(self) -> str:
        """Fully-qualified package path of the node."""
        path = '.'.join(self._attr_hierarchy(lambda node: node.name(), None))
        return path.lstrip('.')

    def full_name(self) -> str:
        """The name used for this node in descriptor type references."""
        return '.' + self.proto_path()

    def package(self) -> str:
        """The dotted .proto package that contains this node."""
        return '.'.join(
            node.name() for node in self._nodes_from_root()
            if node.type() is ProtoNode.Type.PACKAGE and node.name())

    def scoped_names(self) -> List[str]:
        """Names of this node and its enclosing messages, outermost first."""
        return [
            node.name() for node in self._nodes_from_root()
            if node.type() is not ProtoNode.Type.PACKAGE
        ]

    def _nodes_from_root(self) -> List['ProtoNode']:
        return list(self._attr_hierarchy(lambda node: node, None))

    def common_ancestor(self, other: 'ProtoNode') -> Optional['ProtoNode']:
        """Finds the earliest common ancestor of this node and other."""

        if other is None:
            return None

        own_depth = self.depth()
        other_depth = other.depth()
        diff = abs(own_depth - other_depth)

        if own_depth < other_depth:
            first: Optional['ProtoNode'] = self
            second: Optional['ProtoNode'] = other
        else:
            first = other
            second = self

        while diff > 0:
            assert second is not None
            second = second.parent()
            diff -= 1

        while first != second:
            if first is None or second is None:
                return None

            first = first.parent()
            second = second.parent()

        return first

    def depth(self) -> int:
        """Returns the depth of this node from the root."""
        depth = 0
        node = self._parent
        while node:
            depth += 1
            node = node.parent()
        return depth

    def add_child(self, child: 'ProtoNode') -> None:
        """Inserts a new node into the tree as a child of this node.

        Args:
          child: The node to insert.

        Raises:
          ValueError: This node does not allow nesting the given type of child,
              or already has a different child with the same name.
        """
        if not self._supports_child(child):
            raise ValueError('Invalid child %s for node of type %s' %
                             (child.type(), self.type()))

        existing = self._children.get(child.name())
        if existing is not None and existing is not child:
            raise ValueError(
                f'{child.name()} is defined in both {existing.file()} and '
                f'{child.file()}')

        # pylint: disable=protected-access
        if child._parent is not None:
            del child._parent._children[child.name()]

        child._parent = self
        self._children[child.name()] = child
        # pylint: enable=protected-access

    def find(self, path: str) -> Optional['ProtoNode']:
        """Finds a node within this node's subtree."""
        node = self

        # pylint: disable=protected-access
        for section in path.split('.'):
            child = node._children.get(section)
            if child is None:
                return None
            node = child
        # pylint: enable=protected-access

        return node

    def parent(self) -> Optional['ProtoNode']:
        return self._parent

    def __iter__(self) -> Iterator['ProtoNode']:
        """Iterates depth-first through all nodes in this node's subtree."""
        yield self
        for child_iterator in self._children.values():
            for child in child_iterator:
                yield child

    def __repr__(self) -> str:
        return f'{type(self).__name__}({self.proto_path()!r})'

    def _attr_hierarchy(self, attr_accessor: Callable[['ProtoNode'], T],
                        root: Optional['ProtoNode']) -> Iterator[T]:
        """Fetches node attributes at each level of the tree from the root.

        Args:
          attr_accessor: Function which extracts attributes from a ProtoNode.
          root: The node at which to terminate.

        Returns:
          An iterator to a list of the selected attributes from the root to the
          current node.
        """
        hierarchy = []
        node: Optional['ProtoNode'] = self
        while node is not None and node != root:
            hierarchy.append(attr_accessor(node))
            node = node.parent()
        return reversed(hierarchy)

    @abc.abstractmethod
    def _supports_child(self, child: 'ProtoNode') -> bool:
        """Returns True if child is a valid child type for the current node."""


class ProtoPackage(ProtoNode):
    """A protobuf package."""
    def type(self) -> ProtoNode.Type:
        return ProtoNode.Type.PACKAGE

    def _supports_child(self, child: ProtoNode) -> bool:
        return True


class ProtoEnum(ProtoNode):
    """Representation of an enum in a .proto file."""
    def __init__(self, name: str, file: str = ''):
        super().__init__(name, file)
        self._values: List[Tuple[str, int]] = []
        self._value_comments: Dict[str, str] = {}

    def type(self) -> ProtoNode.Type:
        return ProtoNode.Type.ENUM

    def values(self) -> List[Tuple[str, int]]:
        """(name, number) pairs in declaration order; numbers may repeat."""
        return list(self._values)

    def add_value(self, name: str, value: int, comments: str = '') -> None:
        self._values.append((name, value))
        if comments:
            self._value_comments[name] = comments

    def value_comments(self, name: str) -> str:
        return self._value_comments.get(name, '')

    def default_value(self) -> Tuple[str, int]:
        """The value a field of this enum holds when unset."""
        for name, number in self._values:
            if number == 0:
                return name, number
        return self._values[0]

    def _supports_child(self, child: ProtoNode) -> bool:
        # Enums cannot have nested children.
        return False


class ProtoOneof:
    """A oneof group: fields of a message of which at most one is set."""
    def __init__(self, name: str):
        self._name = name
        self._fields: List['ProtoMessageField'] = []

    def name(self) -> str:
        return self._name

    def fields(self) -> List['ProtoMessageField']:
        return list(self._fields)

    def add_field(self, field: 'ProtoMessageField') -> None:
        self._fields.append(field)


class ProtoMessage(ProtoNode):
    """Representation of a message in a .proto file."""
    def __init__(self, name: str, file: str = '', map_entry: bool = False):
        super().__init__(name, file)
        self._fields: List['ProtoMessageField'] = []
        self._oneofs: List[ProtoOneof] = []
        self._map_entry = map_entry

    def type(self) -> ProtoNode.Type:
        return ProtoNode.Type.MESSAGE

    def fields(self) -> List['ProtoMessageField']:
        return list(self._fields)

    def fields_by_number(self) -> List['ProtoMessageField']:
        return sorted(self._fields, key=lambda field: field.number())

    def add_field(self, field: 'ProtoMessageField') -> None:
        self._fields.append(field)

    def oneofs(self) -> List[ProtoOneof]:
        return list(self._oneofs)

    def add_oneof(self, oneof: ProtoOneof) -> None:
        self._oneofs.append(oneof)

    def is_map_entry(self) -> bool:
        return self._map_entry

    def map_key(self) -> 'ProtoMessageField':
        assert self._map_entry
        return next(f for f in self._fields if f.number() == 1)

    def map_value(self) -> 'ProtoMessageField':
        assert self._map_entry
        return next(f for f in self._fields if f.number() == 2)

    def _supports_child(self, child: ProtoNode) -> bool:
        return (child.type() == self.Type.ENUM
                or child.type() == self.Type.MESSAGE)


class ProtoService(ProtoNode):
    """Representation of a service in a .proto file."""
    def __init__(self, name: str, file: str = ''):
        super().__init__(name, file)
        self._methods: List['ProtoServiceMethod'] = []

    def type(self) -> ProtoNode.Type:
        return ProtoNode.Type.SERVICE

    def methods(self) -> List['ProtoServiceMethod']:
        return list(self._methods)

    def add_method(self, method: 'ProtoServiceMethod') -> None:
        self._methods.append(method)

    def _supports_child(self, child: ProtoNode) -> bool:
        return False


class ProtoExternal(ProtoNode):
    """A node from a different compilation unit.

    An external node is one that is referenced by a field but whose file is not
    part of the request. Its type is not known, so it does not have any members
    or additional data. Its purpose within the node graph is to provide
    namespace resolution between compile units.
    """
    def type(self) -> ProtoNode.Type:
        return ProtoNode.Type.EXTERNAL

    def _supports_child(self, child: ProtoNode) -> bool:
        return True


# This class is not a node and does not appear in the proto tree.
# Fields belong to proto messages and are processed separately.
class ProtoMessageField:
    """Representation of a field within a protobuf message."""
    def __init__(self,
                 field_name: str,
                 field_number: int,
                 field_type: int,
                 type_node: Optional[ProtoNode] = None,
                 repeated: bool = False,
                 json_name: Optional[str] = None,
                 oneof: Optional[ProtoOneof] = None,
                 optional: bool = False,
                 packed: bool = False,
                 comments: str = ''):
        self._field_name = field_name
        self._number: int = field_number
        self._type: int = field_type
        self._type_node: Optional[ProtoNode] = type_node
        self._repeated: bool = repeated
        self._json_name = json_name or self.lower_camel_case(field_name)
        self._oneof = oneof
        self._optional = optional
        self._packed = packed
        self._comments = comments

    def name(self) -> str:
        """The field name as written in the .proto file."""
        return self._field_name

    def json_name(self) -> str:
        return self._json_name

    def number(self) -> int:
        return self._number

    def type(self) -> int:
        return self._type

    def type_node(self) -> Optional[ProtoNode]:
        return self._type_node

    def is_repeated(self) -> bool:
        return self._repeated

    def is_packed(self) -> bool:
        return self._packed

    def comments(self) -> str:
        return self._comments

    def oneof(self) -> Optional[ProtoOneof]:
        return self._oneof

    def is_optional(self) -> bool:
        """True for proto3 fields declared with the optional keyword."""
        return self._optional

    def is_message(self) -> bool:
        return self._type == descriptor_pb2.FieldDescriptorProto.TYPE_MESSAGE

    def is_enum(self) -> bool:
        return self._type == descriptor_pb2.FieldDescriptorProto.TYPE_ENUM

    def is_group(self) -> bool:
        return self._type == descriptor_pb2.FieldDescriptorProto.TYPE_GROUP

    def is_map(self) -> bool:
        node = self._type_node
        return (self._repeated and isinstance(node, ProtoMessage)
                and node.is_map_entry())

    def has_presence(self) -> bool:
        """True if the field distinguishes unset from its default value."""
        return self._oneof is not None or self._optional

    @staticmethod
    def lower_camel_case(field_name: str) -> str:
        """Converts a field name to lowerCamelCase as protoc does."""
        result = []
        capitalize_next = False
        for char in field_name:
            if char == '_':
                capitalize_next = True
            elif capitalize_next:
                result.append(char.upper())
                capitalize_next = False
            else:
                result.append(char)
        return ''.join(result)


class ProtoServiceMethod:
    """A method defined in a protobuf service."""
    class Type(enum.Enum):
        UNARY = 'unary'
        SERVER_STREAMING = 'server_streaming'
        CLIENT_STREAMING = 'client_streaming'
        BIDIRECTIONAL_STREAMING = 'bidirectional_streaming'

    def __init__(self,
                 service: ProtoService,
                 name: str,
                 method_type: Type,
                 request_type: ProtoNode,
                 response_type: ProtoNode,
                 comments: str = ''):
        self._service = service
        self._name = name
        self._type = method_type
        self._request_type = request_type
        self._response_type = response_type
        self._comments = comments

    def service(self) -> ProtoService:
        return self._service

    def name(self) -> str:
        return self._name

    def type(self) -> Type:
        return self._type

    def server_streaming(self) -> bool:
        return self._type in (self.Type.SERVER_STREAMING,
                              self.Type.BIDIRECTIONAL_STREAMING)

    def client_streaming(self) -> bool:
        return self._type in (self.Type.CLIENT_STREAMING,
                              self.Type.BIDIRECTIONAL_STREAMING)

    def request_type(self) -> ProtoNode:
        return self._request_type

    def response_type(self) -> ProtoNode:
        return self._response_type

    def comments(self) -> str:
        return self._comments


# A SourceCodeInfo location path: alternating descriptor field numbers and
# indices leading from the FileDescriptorProto to a declaration.
SourcePath = Tuple[int, ...]

_FILE_MESSAGES = descriptor_pb2.FileDescriptorProto.MESSAGE_TYPE_FIELD_NUMBER
_FILE_ENUMS = descriptor_pb2.FileDescriptorProto.ENUM_TYPE_FIELD_NUMBER
_FILE_SERVICES = descriptor_pb2.FileDescriptorProto.SERVICE_FIELD_NUMBER
_MESSAGE_FIELDS = descriptor_pb2.DescriptorProto.FIELD_FIELD_NUMBER
_MESSAGE_NESTED = descriptor_pb2.DescriptorProto.NESTED_TYPE_FIELD_NUMBER
_MESSAGE_ENUMS = descriptor_pb2.DescriptorProto.ENUM_TYPE_FIELD_NUMBER
_ENUM_VALUES = descriptor_pb2.EnumDescriptorProto.VALUE_FIELD_NUMBER
_SERVICE_METHODS = descriptor_pb2.ServiceDescriptorProto.METHOD_FIELD_NUMBER


def _comment_text(location) -> str:
    """Joins the leading and trailing comments of a source location."""
    return '\n\n'.join(
        textwrap.dedent(comment).strip()
        for comment in (location.leading_comments, location.trailing_comments)
        if comment.strip())


def _source_comments(proto_file) -> Dict[SourcePath, str]:
    """Maps the source paths of a file's declarations to their comments."""
    comments: Dict[SourcePath, str] = {}
    for location in proto_file.source_code_info.location:
        text = _comment_text(location)
        if text:
            comments[tuple(location.path)] = text
    return comments


def _add_enum_fields(enum_node: ProtoNode, proto_enum, path: SourcePath,
                     comments: Dict[SourcePath, str]) -> None:
    """Adds fields from a protobuf enum descriptor to an enum node."""
    assert enum_node.type() == ProtoNode.Type.ENUM
    enum_node = cast(ProtoEnum, enum_node)

    enum_node.set_comments(comments.get(path, ''))
    for index, value in enumerate(proto_enum.value):
        enum_node.add_value(
            value.name, value.number,
            comments.get(path + (_ENUM_VALUES, index), ''))


def _create_external_nodes(root: ProtoNode, path: str) -> ProtoNode:
    """Creates external nodes for a path starting from the given root."""

    node = root
    for part in path.split('.'):
        child = node.find(part)
        if not child:
            child = ProtoExternal(part)
            node.add_child(child)
        node = child

    return node


def _find_or_create_node(global_root: ProtoNode, package_root: ProtoNode,
                         path: str) -> ProtoNode:
    """Searches the proto tree for a node by path, creating it if not found."""

    if path[0] == '.':
        # Fully qualified path.
        root_relative_path = path[1:]
        search_root = global_root
    else:
        root_relative_path = path
        search_root = package_root

    node = search_root.find(root_relative_path)
    if node is None:
        # Create nodes for field types that don't exist within this
        # compilation context, such as those imported from .proto files
        # missing from the request.
        node = _create_external_nodes(search_root, root_relative_path)

    return node


def _is_packed(proto_file, field) -> bool:
    if field.label != descriptor_pb2.FieldDescriptorProto.LABEL_REPEATED:
        return False
    if field.type not in PACKABLE_TYPES:
        return False
    if field.options.HasField('packed'):
        return field.options.packed
    # Repeated scalars are packed by default from proto3 on.
    return proto_file.syntax not in ('', 'proto2')


def _add_message_fields(proto_file, global_root: ProtoNode,
                        package_root: ProtoNode, message: ProtoNode,
                        proto_message, path: SourcePath,
                        comments: Dict[SourcePath, str]) -> None:
    """Adds fields from a protobuf message descriptor to a message node."""
    assert message.type() == ProtoNode.Type.MESSAGE
    message = cast(ProtoMessage, message)
    message.set_comments(comments.get(path, ''))

    oneofs = [ProtoOneof(decl.name) for decl in proto_message.oneof_decl]
    synthetic = set()

    type_node: Optional[ProtoNode]

    for index, field in enumerate(proto_message.field):
        if field.type_name:
            # The "type_name" member contains the global .proto path of the
            # field's type object, for example ".pw.protogen.test.KeyValuePair".
            # Try to find the node for this object within the current context.
            type_node = _find_or_create_node(global_root, package_root,
                                             field.type_name)
        else:
            type_node = None

        oneof: Optional[ProtoOneof] = None
        if field.HasField('oneof_index'):
            if field.proto3_optional:
                synthetic.add(field.oneof_index)
            else:
                oneof = oneofs[field.oneof_index]

        repeated = \
            field.label == descriptor_pb2.FieldDescriptorProto.LABEL_REPEATED
        message_field = ProtoMessageField(
            field.name,
            field.number,
            field.type,
            type_node,
            repeated,
            json_name=field.json_name if field.HasField('json_name') else None,
            oneof=oneof,
            optional=field.proto3_optional,
            packed=_is_packed(proto_file, field),
            comments=comments.get(path + (_MESSAGE_FIELDS, index), ''),
        )
        message.add_field(message_field)
        if oneof is not None:
            oneof.add_field(message_field)

    for index, oneof in enumerate(oneofs):
        if index not in synthetic:
            message.add_oneof(oneof)


def _add_service_methods(global_root: ProtoNode, package_root: ProtoNode,
                         service: ProtoNode, proto_service, path: SourcePath,
                         comments: Dict[SourcePath, str]) -> None:
    assert service.type() == ProtoNode.Type.SERVICE
    service = cast(ProtoService, service)
    service.set_comments(comments.get(path, ''))

    for index, method in enumerate(proto_service.method):
        if method.client_streaming and method.server_streaming:
            method_type = ProtoServiceMethod.Type.BIDIRECTIONAL_STREAMING
        elif method.client_streaming:
            method_type = ProtoServiceMethod.Type.CLIENT_STREAMING
        elif method.server_streaming:
            method_type = ProtoServiceMethod.Type.SERVER_STREAMING
        else:
            method_type = ProtoServiceMethod.Type.UNARY

        request_node = _find_or_create_node(global_root, package_root,
                                            method.input_type)
        response_node = _find_or_create_node(global_root, package_root,
                                             method.output_type)

        service.add_method(
            ProtoServiceMethod(
                service, method.name, method_type, request_node,
                response_node,
                comments.get(path + (_SERVICE_METHODS, index), '')))


def _populate_fields(proto_file, global_root: ProtoNode,
                     package_root: ProtoNode) -> None:
    """Traverses a proto file, adding all message and enum fields to a tree."""
    comments = _source_comments(proto_file)

    def populate_message(node, message, path):
        """Recursively populates nested messages and enums."""
        _add_message_fields(proto_file, global_root, package_root, node,
                            message, path, comments)

        for index, proto_enum in enumerate(message.enum_type):
            _add_enum_fields(node.find(proto_enum.name), proto_enum,
                             path + (_MESSAGE_ENUMS, index), comments)
        for index, msg in enumerate(message.nested_type):
            populate_message(node.find(msg.name), msg,
                             path + (_MESSAGE_NESTED, index))

    # Iterate through the proto file, populating top-level objects.
    for index, proto_enum in enumerate(proto_file.enum_type):
        enum_node = package_root.find(proto_enum.name)
        assert enum_node is not None
        _add_enum_fields(enum_node, proto_enum, (_FILE_ENUMS, index),
                         comments)

    for index, message in enumerate(proto_file.message_type):
        populate_message(package_root.find(message.name), message,
                         (_FILE_MESSAGES, index))

    for index, service in enumerate(proto_file.service):
        service_node = package_root.find(service.name)
        assert service_node is not None
        _add_service_methods(global_root, package_root, service_node, service,
                             (_FILE_SERVICES, index), comments)


def _build_hierarchy(proto_file, root: ProtoNode) -> ProtoNode:
    """Adds the nodes declared in a proto file to the tree under root.

    Returns the node of the file's package.
    """
    file_name = proto_file.name
    package_root = root

    if proto_file.package:
        for part in proto_file.package.split('.'):
            package = package_root.find(part)
            if package is None:
                package = ProtoPackage(part)
                package_root.add_child(package)
            package_root = package

    def build_message_subtree(proto_message):
        node = ProtoMessage(proto_message.name, file_name,
                            proto_message.options.map_entry)
        for proto_enum in proto_message.enum_type:
            node.add_child(ProtoEnum(proto_enum.name, file_name))
        for submessage in proto_message.nested_type:
            node.add_child(build_message_subtree(submessage))

        return node

    for proto_enum in proto_file.enum_type:
        package_root.add_child(ProtoEnum(proto_enum.name, file_name))

    for message in proto_file.message_type:
        package_root.add_child(build_message_subtree(message))

    for service in proto_file.service:
        package_root.add_child(ProtoService(service.name, file_name))

    return package_root


def build_tree(
    file_descriptor_protos: Iterable[descriptor_pb2.FileDescriptorProto]
) -> Tuple[ProtoNode, Dict[str, ProtoNode]]:
    """Constructs one tree of proto nodes from several file descriptors.

    Every file is added to the tree before any field is resolved, so fields may
    refer to types from any file in the list.

    Returns the global root node and a mapping of each file name to the node
    representing that file's package.
    """
    files = list(file_descriptor_protos)
    global_root = ProtoPackage('')
    package_roots: Dict[str, ProtoNode] = {}

    for proto_file in files:
        package_roots[proto_file.name] = _build_hierarchy(
            proto_file, global_root)

    for proto_file in files:
        _populate_fields(proto_file, global_root,
                         package_roots[proto_file.name])

    return global_root, package_roots

