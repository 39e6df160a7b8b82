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
"""Tests generating, importing and running Python protobuf modules."""

import contextlib
import json
import unittest
from types import ModuleType
from typing import Dict

from google.protobuf import descriptor_pb2

from proto_fixtures import (BOOL, BYTES, DOUBLE, ENUM, FLOAT, GROUP, INT32,
                            INT64, MESSAGE, SINT32, STRING, UINT64, enum,
                            field, generate, generated_modules, location,
                            map_entry, message, method, proto_file, service,
                            well_known_file)

from pw_protogen import codegen_py, well_known_types
from pw_protogen.config import GeneratorOptions
from pw_protogen.errors import ParseError, ValidationError
from pw_protogen.reader import MAX_NESTING_DEPTH
from pw_protogen.writer import BinaryWriter

_SCENARIO = proto_file('pwtest_scenario/hat.proto',
                       'scenario',
                       messages=[
                           message('Hat', [
                               field('inches', 1, INT32),
                               field('color', 2, STRING),
                               field('name', 3, STRING),
                           ])
                       ])

_SIZE = proto_file('pwtest_haberdasher/size.proto',
                   'haberdasher',
                   messages=[message('Size', [field('inches', 1, INT32)])],
                   enums=[enum('Color', 'RED', 'GREEN', 'BLUE')])

_CATALOG = proto_file(
    'pwtest_haberdasher/catalog.proto',
    'haberdasher',
    messages=[
        message(
            'Item',
            [
                field('inches', 1, INT32),
                field('color_name', 2, STRING),
                field('color', 3, ENUM, '.haberdasher.Color'),
                field('size', 4, MESSAGE, '.haberdasher.Size'),
                field('sizes', 5, INT32, repeated=True),
                field('stock',
                      6,
                      MESSAGE,
                      '.haberdasher.Item.StockEntry',
                      repeated=True),
                field('felt', 7, STRING, oneof_index=0),
                field('straw', 8, STRING, oneof_index=0),
                field('serial', 9, INT64, oneof_index=1,
                      proto3_optional=True),
                field('history',
                      10,
                      MESSAGE,
                      '.haberdasher.Size',
                      repeated=True),
                field('by_number',
                      11,
                      MESSAGE,
                      '.haberdasher.Item.ByNumberEntry',
                      repeated=True),
                field('logo', 12, BYTES),
                field('weight', 13, DOUBLE),
                field('palette', 14, ENUM, '.haberdasher.Color',
                      repeated=True),
                field('big', 15, UINT64),
                field('in_stock', 16, BOOL),
                field('ratio', 17, FLOAT),
                field('delta', 18, SINT32),
                field('made', 19, MESSAGE, '.google.protobuf.Timestamp'),
                field('boxed', 21, MESSAGE, '.haberdasher.Size',
                      oneof_index=0),
                field('class', 22, STRING),
                field('labels',
                      23,
                      MESSAGE,
                      '.haberdasher.Item.LabelsEntry',
                      repeated=True),
                field('trim', 24, MESSAGE, '.haberdasher.Item.Trim'),
            ],
            nested=[
                map_entry('StockEntry', STRING, INT32),
                map_entry('ByNumberEntry', INT32, MESSAGE,
                          '.haberdasher.Size'),
                map_entry('LabelsEntry', STRING, STRING),
                message('Trim', [field('ribbon', 1, STRING)]),
            ],
            oneofs=['material', '_serial'],
        ),
        message('Node', [
            field('next', 1, MESSAGE, '.haberdasher.Node'),
            field('value', 2, INT32),
        ]),
    ],
    dependencies=[
        'pwtest_haberdasher/size.proto',
        'google/protobuf/timestamp.proto',
    ],
)

_SHIRT_MESSAGES = [
    message('Shirt', [
        field('neck_size', 1, INT32),
        field('tags', 2, STRING, repeated=True),
        field('sleeve', 3, INT32, oneof_index=0, proto3_optional=True),
    ],
            oneofs=['_sleeve']),
]


def _nested_nodes(levels: int) -> bytes:
    data = b''
    for _ in range(levels):
        w = BinaryWriter()
        w.write_bytes(1, data)
        data = w.result()
    return data


class _GeneratedTestCase(unittest.TestCase):
    """Generates and imports the test schemas once per test class."""
    FILES = [
        _SCENARIO, _SIZE, _CATALOG,
        well_known_file('timestamp')
    ]
    OPTIONS = GeneratorOptions()

    modules: Dict[str, ModuleType]
    _stack: contextlib.ExitStack

    @classmethod
    def setUpClass(cls) -> None:
        cls._stack = contextlib.ExitStack()
        cls.modules = cls._stack.enter_context(
            generated_modules(cls.FILES, cls.OPTIONS))

    @classmethod
    def tearDownClass(cls) -> None:
        cls._stack.close()


class ScenarioTest(_GeneratedTestCase):
    """Tests the three-field Hat message end to end."""
    def setUp(self) -> None:
        self.mod = self.modules['pwtest_scenario/hat.proto']
        self.hat = self.mod.HatCodec.initialize({
            'inches': 3,
            'color': 'red',
            'name': 'top hat'
        })

    def test_binary_round_trip(self) -> None:
        data = self.mod.HatCodec.encode(self.hat)
        self.assertEqual(data, b'\x08\x03\x12\x03red\x1a\x07top hat')
        self.assertEqual(self.mod.HatCodec.decode(data), self.hat)

    def test_json(self) -> None:
        text = self.mod.HatJSONCodec.encode(self.hat)
        self.assertEqual(text, '{"inches":3,"color":"red","name":"top hat"}')
        self.assertEqual(self.mod.HatJSONCodec.decode(text), self.hat)

    def test_encode_accepts_partial(self) -> None:
        self.assertEqual(self.mod.HatCodec.encode({'inches': 3}), b'\x08\x03')
        self.assertEqual(self.mod.HatJSONCodec.encode({'name': 'x'}),
                         '{"name":"x"}')

    def test_record_is_plain_dataclass(self) -> None:
        self.assertEqual(self.hat, self.mod.Hat(3, 'red', 'top hat'))
        self.assertEqual(repr(self.mod.Hat()),
                         "Hat(inches=0, color='', name='')")


class CatalogTest(_GeneratedTestCase):
    """Tests a message using every kind of field."""
    def setUp(self) -> None:
        self.mod = self.modules['pwtest_haberdasher/catalog.proto']
        self.size_mod = self.modules['pwtest_haberdasher/size.proto']
        self.codec = self.mod.ItemCodec
        self.json_codec = self.mod.ItemJSONCodec
        color = self.size_mod.Color
        self.item = self.codec.initialize({
            'inches': 7,
            'color_name': 'red',
            'color': color.GREEN,
            'size': {
                'inches': 3
            },
            'sizes': [1, 2, 300],
            'stock': {
                'a': 1,
                'b': 2
            },
            'straw': 'wheat',
            'serial': 0,
            'history': [{
                'inches': 1
            }, {}],
            'by_number': {
                5: {
                    'inches': 5
                }
            },
            'logo': b'\x00\xff',
            'weight': 1.5,
            'palette': [color.BLUE, color.RED],
            'big': 2**64 - 1,
            'in_stock': True,
            'ratio': 0.5,
            'delta': -3,
            'made': {
                'seconds': 10,
                'nanos': 5
            },
            'class_': 'first',
            'labels': {
                'x': 'y'
            },
            'trim': {
                'ribbon': 'silk'
            },
        })

    def test_initialize_defaults(self) -> None:
        item = self.codec.initialize()
        self.assertEqual(item, self.mod.Item())
        self.assertEqual(item.size, self.size_mod.Size())
        self.assertIs(item.color, self.size_mod.Color.RED)
        self.assertEqual(item.made, well_known_types.Timestamp())
        self.assertEqual(item.trim, self.mod.Item_Trim())
        self.assertIsNone(item.serial)
        self.assertIsNone(item.felt)
        self.assertIsNone(item.boxed)
        self.assertEqual(item.sizes, [])
        self.assertEqual(item.stock, {})

    def test_initialize_does_not_share_defaults(self) -> None:
        first = self.codec.initialize()
        first.sizes.append(1)
        first.size.inches = 4
        self.assertEqual(self.codec.initialize().sizes, [])
        self.assertEqual(self.codec.initialize().size.inches, 0)

    def test_defaults_encode_empty(self) -> None:
        self.assertEqual(self.codec.encode(self.codec.initialize()), b'')
        self.assertEqual(self.json_codec.encode(self.codec.initialize()),
                         '{}')

    def test_binary_round_trip(self) -> None:
        self.assertEqual(self.codec.decode(self.codec.encode(self.item)),
                         self.item)

    def test_json_round_trip(self) -> None:
        text = self.json_codec.encode(self.item)
        self.assertEqual(self.json_codec.decode(text), self.item)

    def test_json_encoding(self) -> None:
        obj = json.loads(self.json_codec.encode(self.item))
        self.assertEqual(obj['colorName'], 'red')
        self.assertEqual(obj['color'], 'GREEN')
        self.assertEqual(obj['big'], '18446744073709551615')
        self.assertEqual(obj['serial'], '0')
        self.assertEqual(obj['logo'], 'AP8=')
        self.assertEqual(obj['palette'], ['BLUE', 'RED'])
        self.assertEqual(obj['byNumber'], {'5': {'inches': 5}})
        self.assertEqual(obj['made'], '1970-01-01T00:00:10.000000005Z')
        self.assertEqual(obj['inStock'], True)
        self.assertEqual(obj['class'], 'first')
        self.assertEqual(obj['history'], [{'inches': 1}, {}])
        self.assertNotIn('felt', obj)

    def test_json_field_order(self) -> None:
        text = self.json_codec.encode({
            'big': 5,
            'logo': b'\x01',
            'sizes': [1, 2],
            'color': self.size_mod.Color.GREEN,
            'color_name': 'red',
            'inches': 3,
        })
        self.assertEqual(
            text, '{"inches":3,"colorName":"red","color":"GREEN",'
            '"sizes":[1,2],"logo":"AQ==","big":"5"}')

    def test_json_accepts_both_names(self) -> None:
        camel = self.json_codec.decode('{"colorName":"x","inStock":true}')
        snake = self.json_codec.decode('{"color_name":"x","in_stock":true}')
        self.assertEqual(camel, snake)
        self.assertEqual(camel.color_name, 'x')
        self.assertTrue(camel.in_stock)

    def test_json_default_values_read_as_absent(self) -> None:
        self.assertEqual(
            self.json_codec.decode(
                '{"inches":0,"colorName":"","sizes":[],"felt":null}'),
            self.codec.initialize())

    def test_json_ignores_unknown_keys(self) -> None:
        self.assertEqual(
            self.json_codec.decode('{"inches":1,"unknownKey":{"a":[1]}}'),
            self.codec.initialize({'inches': 1}))

    def test_json_number_forms(self) -> None:
        item = self.json_codec.decode(
            '{"inches":"12","big":18446744073709551615,"weight":"NaN",'
            '"color":2,"logo":"-_8"}')
        self.assertEqual(item.inches, 12)
        self.assertEqual(item.big, 2**64 - 1)
        self.assertNotEqual(item.weight, item.weight)
        self.assertIs(item.color, self.size_mod.Color.BLUE)
        self.assertEqual(item.logo, b'\xfb\xff')

    def test_unknown_binary_fields_are_skipped(self) -> None:
        data = self.codec.encode(self.item)
        unknown = b'\x98\x06\x01' + b'\xa2\x06\x02hi'
        self.assertEqual(self.codec.decode(unknown + data + unknown),
                         self.codec.decode(data))

    def test_map_encoding(self) -> None:
        data = self.codec.encode({'labels': {'a': 'x', 'b': 'y'}})
        self.assertEqual(
            data, b'\xba\x01\x06\x0a\x01a\x12\x01x'
            b'\xba\x01\x06\x0a\x01b\x12\x01y')
        reordered = (b'\xba\x01\x06\x0a\x01b\x12\x01y'
                     b'\xba\x01\x06\x0a\x01a\x12\x01x')
        self.assertEqual(self.codec.decode(reordered).labels, {
            'a': 'x',
            'b': 'y'
        })

    def test_map_last_entry_wins(self) -> None:
        data = (b'\x32\x05\x0a\x01a\x10\x01'
                b'\x32\x05\x0a\x01a\x10\x02')
        self.assertEqual(self.codec.decode(data).stock, {'a': 2})

    def test_map_entry_with_missing_key_and_value(self) -> None:
        self.assertEqual(self.codec.decode(b'\x32\x00').stock, {'': 0})

    def test_json_map_keys(self) -> None:
        item = self.json_codec.decode(
            '{"byNumber":{"-1":{"inches":2}},"stock":{"a":3}}')
        self.assertEqual(item.by_number, {-1: self.size_mod.Size(2)})
        self.assertEqual(item.stock, {'a': 3})

    def test_repeated_accepts_packed_and_unpacked(self) -> None:
        self.assertEqual(self.codec.encode({'sizes': [1, 2]}),
                         b'\x2a\x02\x01\x02')
        self.assertEqual(self.codec.decode(b'\x28\x01\x28\x02').sizes, [1, 2])
        self.assertEqual(
            self.codec.decode(b'\x2a\x02\x01\x02\x28\x03').sizes, [1, 2, 3])

    def test_singular_message_merges(self) -> None:
        item = self.codec.decode(b'\x22\x02\x08\x01\x22\x00')
        self.assertEqual(item.size.inches, 1)

    def test_oneof_first_declared_member_is_encoded(self) -> None:
        item = self.codec.initialize({'felt': 'f', 'straw': 's'})
        decoded = self.codec.decode(self.codec.encode(item))
        self.assertEqual(decoded.felt, 'f')
        self.assertIsNone(decoded.straw)
        self.assertEqual(json.loads(self.json_codec.encode(item)),
                         {'felt': 'f'})

    def test_oneof_last_member_on_wire_wins(self) -> None:
        item = self.codec.decode(b'\x3a\x01f\x42\x01s')
        self.assertIsNone(item.felt)
        self.assertEqual(item.straw, 's')

        item = self.codec.decode(b'\x42\x01s\xaa\x01\x02\x08\x09')
        self.assertIsNone(item.straw)
        self.assertEqual(item.boxed, self.size_mod.Size(9))

    def test_oneof_empty_message_member_is_encoded(self) -> None:
        item = self.codec.initialize({'boxed': {}})
        self.assertEqual(self.codec.encode(item), b'\xaa\x01\x00')
        self.assertEqual(self.codec.decode(b'\xaa\x01\x00').boxed,
                         self.size_mod.Size())

    def test_optional_default_is_encoded(self) -> None:
        self.assertEqual(self.codec.encode({'serial': 0}), b'\x48\x00')
        self.assertEqual(self.codec.decode(b'\x48\x00').serial, 0)
        self.assertIsNone(self.codec.decode(b'').serial)

    def test_unknown_enum_values_are_kept(self) -> None:
        item = self.codec.decode(b'\x18\x07')
        self.assertEqual(item.color, 7)
        self.assertEqual(self.codec.encode(item), b'\x18\x07')
        self.assertEqual(self.json_codec.encode(item), '{"color":7}')

    def test_negative_int32_field(self) -> None:
        data = self.codec.encode({'inches': -1})
        self.assertEqual(data, b'\x08' + b'\xff' * 9 + b'\x01')
        self.assertEqual(self.codec.decode(data).inches, -1)

    def test_recursive_message_is_lazy(self) -> None:
        node_codec = self.mod.NodeCodec
        self.assertIsNone(node_codec.initialize().next)
        chain = node_codec.initialize({
            'value': 1,
            'next': {
                'value': 2,
                'next': {
                    'value': 3
                }
            }
        })
        self.assertEqual(chain.next.next.value, 3)
        self.assertIsNone(chain.next.next.next)
        self.assertEqual(node_codec.decode(node_codec.encode(chain)), chain)
        self.assertEqual(
            self.mod.NodeJSONCodec.decode(self.mod.NodeJSONCodec.encode(chain)),
            chain)

    def test_nesting_limit(self) -> None:
        node_codec = self.mod.NodeCodec
        json_codec = self.mod.NodeJSONCodec

        chain = self.mod.Node()
        for value in range(MAX_NESTING_DEPTH):
            chain = self.mod.Node(next=chain, value=value + 1)
        self.assertEqual(node_codec.decode(node_codec.encode(chain)), chain)
        self.assertEqual(json_codec.decode(json_codec.encode(chain)), chain)

        with self.assertRaises(ParseError):
            node_codec.decode(_nested_nodes(600))
        with self.assertRaises(ParseError):
            json_codec.decode('{"next":' * 600 + '{}' + '}' * 600)

    def test_invalid_values_are_rejected(self) -> None:
        with self.assertRaises(ValidationError):
            self.codec.encode({'inches': 2**31})
        with self.assertRaises(ValidationError):
            self.codec.encode({'inches': 1.5})
        with self.assertRaises(ValidationError):
            self.codec.encode({'colour': 'red'})
        with self.assertRaises(ValidationError):
            self.codec.encode({'color_name': 5})

    def test_malformed_input(self) -> None:
        with self.assertRaises(ParseError):
            self.codec.decode(b'\x08')
        with self.assertRaises(ParseError):
            self.codec.decode(b'\x22\x05\x08')
        with self.assertRaises(ParseError):
            self.json_codec.decode('{"inches":"abc"}')
        with self.assertRaises(ParseError):
            self.json_codec.decode('[]')
        with self.assertRaises(ParseError):
            self.json_codec.decode('{"sizes":5}')
        with self.assertRaises(ParseError):
            self.json_codec.decode('{"color":"PURPLE"}')
        with self.assertRaises(ParseError):
            self.json_codec.decode('{"made":"yesterday"}')

    def test_map_entries_have_no_json_codec(self) -> None:
        self.assertTrue(hasattr(self.mod, 'Item_StockEntryCodec'))
        self.assertFalse(hasattr(self.mod, 'Item_StockEntryJSONCodec'))
        self.assertFalse(hasattr(self.mod, 'Item_StockEntryPartial'))

    def test_enum_tables(self) -> None:
        self.assertEqual(self.size_mod.Color_NAMES, {
            0: 'RED',
            1: 'GREEN',
            2: 'BLUE'
        })
        self.assertEqual(self.size_mod.Color_VALUES['BLUE'], 2)


class OptionsTest(_GeneratedTestCase):
    """Tests the JSON generator options."""
    FILES = [proto_file('pwtest_tailor/shirt.proto', messages=_SHIRT_MESSAGES)]
    OPTIONS = GeneratorOptions(json_emit_default_values=True,
                               json_use_proto_field_name=True)

    def test_defaults_are_emitted_with_proto_names(self) -> None:
        mod = self.modules['pwtest_tailor/shirt.proto']
        self.assertEqual(mod.ShirtJSONCodec.encode(mod.Shirt()),
                         '{"neck_size":0,"tags":[]}')

    def test_both_names_still_accepted(self) -> None:
        mod = self.modules['pwtest_tailor/shirt.proto']
        self.assertEqual(
            mod.ShirtJSONCodec.decode('{"neckSize":2,"sleeve":0}'),
            mod.Shirt(neck_size=2, sleeve=0))


class UntypedTest(_GeneratedTestCase):
    """Tests modules generated without annotations."""
    FILES = [
        proto_file('pwtest_untyped/shirt.proto', messages=_SHIRT_MESSAGES)
    ]
    OPTIONS = GeneratorOptions(language='python-untyped')

    def test_round_trip(self) -> None:
        mod = self.modules['pwtest_untyped/shirt.proto']
        shirt = mod.ShirtCodec.initialize({'neck_size': 15, 'tags': ['a']})
        self.assertEqual(mod.ShirtCodec.decode(mod.ShirtCodec.encode(shirt)),
                         shirt)
        self.assertEqual(mod.ShirtJSONCodec.encode(shirt),
                         '{"neckSize":15,"tags":["a"]}')

    def test_no_partials_or_annotations(self) -> None:
        mod = self.modules['pwtest_untyped/shirt.proto']
        self.assertFalse(hasattr(mod, 'ShirtPartial'))
        (output, ) = generate(self.FILES, options=self.OPTIONS)
        self.assertNotIn(' -> ', output.content())
        self.assertIn('def initialize(values=None):', output.content())


class KeywordPathTest(_GeneratedTestCase):
    """Tests files whose directories are not valid Python identifiers."""
    FILES = [
        proto_file('pwtest_paths/import/1st.proto',
                   'paths',
                   messages=[message('Brim', [field('width', 1, INT32)])]),
        proto_file('pwtest_paths/class/hat.proto',
                   'paths',
                   messages=[
                       message('Hat', [
                           field('brim', 1, MESSAGE, '.paths.Brim'),
                       ])
                   ],
                   dependencies=['pwtest_paths/import/1st.proto']),
    ]

    def test_modules_import(self) -> None:
        brim_mod = self.modules['pwtest_paths/import/1st.proto']
        hat_mod = self.modules['pwtest_paths/class/hat.proto']
        self.assertEqual(brim_mod.__name__, 'pwtest_paths.import_._1st_pb')
        self.assertEqual(hat_mod.__name__, 'pwtest_paths.class_.hat_pb')

        hat = hat_mod.HatCodec.decode(b'\x0a\x02\x08\x03')
        self.assertEqual(hat.brim, brim_mod.Brim(width=3))


_COMMENTED = proto_file(
    'pwtest_comments/hat.proto',
    'comments',
    messages=[
        message('Hat', [
            field('inches', 1, INT32),
            field('shape', 2, ENUM, '.comments.Shape'),
        ]),
    ],
    enums=[enum('Shape', 'ROUND', 'SQUARE')],
    services=[
        service('Shop', [method('Buy', '.comments.Hat', '.comments.Hat')]),
    ],
    locations=[
        location([4, 0],
                 leading=(' A hat with a "\\"""" in its name.\n'
                          '\n Second line.\n')),
        location([4, 0, 2, 0], leading=' Measured around the head.\n'),
        location([5, 0], leading=' Outline of a hat.\n'),
        location([5, 0, 2, 1], trailing=' Four corners.\n'),
        location([6, 0], leading=' Not generated.\n'),
    ],
)


class CommentsTest(_GeneratedTestCase):
    """Tests carrying .proto comments into generated modules."""
    FILES = [_COMMENTED]

    def setUp(self) -> None:
        self.mod = self.modules['pwtest_comments/hat.proto']
        (output, ) = generate(self.FILES)
        self.content = output.content()

    def test_record_docstring(self) -> None:
        doc = self.mod.Hat.__doc__
        self.assertIn('comments.Hat', doc)
        self.assertIn('A hat with a "\\"""" in its name.', doc)
        self.assertIn('Second line.', doc)

    def test_enum_docstring(self) -> None:
        self.assertIn('Outline of a hat.', self.mod.Shape.__doc__)

    def test_field_and_value_comments(self) -> None:
        self.assertIn(
            '    # Measured around the head.\n'
            '    inches: int = 0\n', self.content)
        self.assertIn('    # Four corners.\n    SQUARE = 1\n', self.content)

    def test_uncommented_docstrings_stay_one_line(self) -> None:
        (output, ) = generate([_SIZE])
        self.assertIn('    """haberdasher.Size"""\n', output.content())

    def test_services_are_not_generated(self) -> None:
        self.assertNotIn('Not generated', self.content)
        self.assertFalse(hasattr(self.mod, 'Shop'))
        hat = self.mod.HatCodec.decode(b'\x08\x07\x10\x01')
        self.assertEqual(hat, self.mod.Hat(inches=7,
                                           shape=self.mod.Shape.SQUARE))


class GeneratedTextTest(unittest.TestCase):
    """Tests the text of generated modules."""
    def test_header_and_imports(self) -> None:
        outputs = generate([_SIZE, _CATALOG, well_known_file('timestamp')],
                           to_generate=['pwtest_haberdasher/catalog.proto'])
        self.assertEqual([o.name() for o in outputs],
                         ['pwtest_haberdasher/catalog_pb.py'])
        content = outputs[0].content()
        self.assertTrue(
            content.startswith('# THIS IS AN AUTOGENERATED FILE. DO NOT EDIT '
                               'THIS FILE DIRECTLY.\n'))
        self.assertIn('pwtest_haberdasher/catalog.proto', content)
        self.assertIn(
            'import pw_protogen.well_known_types as '
            '_pw_protogen_well_known_types\n', content)
        self.assertIn(
            'import pwtest_haberdasher.size_pb as '
            '_pwtest_haberdasher_size_pb\n', content)

    def test_nested_records_precede_their_users(self) -> None:
        (output, ) = generate([_SIZE, _CATALOG, well_known_file('timestamp')],
                              to_generate=['pwtest_haberdasher/catalog.proto'])
        content = output.content()
        self.assertLess(content.index('class Item_Trim:'),
                        content.index('class Item:'))

    def test_group_fields_are_skipped(self) -> None:
        old = proto_file('pwtest_old/old.proto',
                         'old',
                         messages=[
                             message('Old', [
                                 field('id', 1, INT32),
                                 field('data', 2, GROUP, '.old.Old.Data'),
                             ],
                                     nested=[message('Data')])
                         ],
                         syntax='proto2')
        with self.assertLogs('pw_protogen.codegen_py', 'WARNING'):
            (output, ) = generate([old])
        self.assertIn('class Old_Data:', output.content())
        self.assertNotIn('\n    data: ', output.content())

    def test_undefined_type(self) -> None:
        broken = proto_file('pwtest_broken/broken.proto',
                            'pkg',
                            messages=[
                                message('Broken', [
                                    field('thing', 1, MESSAGE,
                                          '.missing.Thing'),
                                ])
                            ])
        with self.assertRaises(codegen_py.CodegenError) as context:
            generate([broken])
        self.assertEqual(
            context.exception.formatted_message().splitlines()[1:],
            ['    at pkg.Broken', '    in field thing'])

    def test_type_outside_dependencies(self) -> None:
        files = [
            proto_file('pwtest_a/a.proto', 'a', messages=[message('A')]),
            proto_file('pwtest_b/b.proto',
                       'b',
                       messages=[
                           message('B', [field('a', 1, MESSAGE, '.a.A')]),
                       ]),
        ]
        with self.assertRaises(codegen_py.CodegenError):
            generate(files, to_generate=['pwtest_b/b.proto'])

    def test_emit_well_known_types(self) -> None:
        (output, ) = generate([well_known_file('duration')],
                              options=GeneratorOptions(
                                  emit_well_known_types=True))
        self.assertEqual(output.name(), 'google/protobuf/duration_pb.py')
        self.assertIn('class Duration:', output.content())

    def test_recursion_detection(self) -> None:
        files = [_SIZE, _CATALOG, well_known_file('timestamp')]
        outputs = generate(files,
                           to_generate=['pwtest_haberdasher/catalog.proto'])
        content = outputs[0].content()
        self.assertIn('next: typing.Optional[Node] = None', content)
        self.assertIn(
            'size: _pwtest_haberdasher_size_pb.Size = '
            'dataclasses.field('
            'default_factory=_pwtest_haberdasher_size_pb.Size)', content)


class WellKnownTypesTest(unittest.TestCase):
    """Tests the runtime-provided well-known types."""
    def test_timestamp(self) -> None:
        codec = well_known_types.TimestampJSONCodec
        ts = codec.decode('"2021-05-04T01:02:03.5Z"')
        self.assertEqual(ts.nanos, 500000000)
        self.assertEqual(codec.encode(ts), '"2021-05-04T01:02:03.500Z"')
        binary = well_known_types.TimestampCodec
        self.assertEqual(binary.decode(binary.encode(ts)), ts)

    def test_duration(self) -> None:
        codec = well_known_types.DurationJSONCodec
        self.assertEqual(codec.encode({'seconds': -2, 'nanos': -10}),
                         '"-2.000000010s"')
        self.assertEqual(codec.decode('"3s"'), well_known_types.Duration(3))

    def test_empty(self) -> None:
        self.assertEqual(well_known_types.EmptyJSONCodec.encode({}), '{}')
        self.assertEqual(well_known_types.EmptyCodec.decode(b'\x08\x01'),
                         well_known_types.Empty())

    def test_descriptor_matches(self) -> None:
        proto = descriptor_pb2.FieldDescriptorProto(name='x', number=3)
        data = proto.SerializeToString()
        self.assertEqual(well_known_types.EmptyCodec.decode(data),
                         well_known_types.Empty())


if __name__ == '__main__':
    unittest.main()
