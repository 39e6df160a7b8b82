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
"""Applies caller-supplied partial values to freshly initialized records.

Generated initialize() functions accept a mapping of attribute names to values.
Nested message values may themselves be mappings; they are converted to
records with the nested type's initialize().
"""

import dataclasses
import enum
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from pw_protogen.errors import ValidationError

Initializer = Callable[[Mapping[str, Any]], Any]


class Nested(enum.Enum):
    """How a message-typed attribute holds its values."""
    SINGULAR = 0
    REPEATED = 1
    MAP = 2


NestedFields = Dict[str, Tuple[Nested, Initializer]]


def _convert(value: Any, initialize: Initializer) -> Any:
    if isinstance(value, Mapping):
        return initialize(value)
    return value


def apply(msg: Any,
          values: Optional[Mapping[str, Any]],
          nested: Optional[NestedFields] = None) -> Any:
    """Overlays values onto msg and returns it.

    Raises ValidationError if values is not a mapping or names an attribute the
    record does not have.
    """
    if values is None:
        return msg

    if not isinstance(values, Mapping):
        raise ValidationError(
            f'Expected a mapping to initialize {type(msg).__name__}, got '
            f'{type(values).__name__}')

    known = {f.name for f in dataclasses.fields(msg)}
    nested = nested or {}

    for name, value in values.items():
        if name not in known:
            raise ValidationError(
                f'{type(msg).__name__} has no field named {name!r}')

        if name in nested and value is not None:
            kind, initialize = nested[name]
            if kind is Nested.SINGULAR:
                value = _convert(value, initialize)
            elif kind is Nested.REPEATED:
                value = [_convert(item, initialize) for item in value]
            else:
                value = {
                    key: _convert(item, initialize)
                    for key, item in value.items()
                }
        elif isinstance(value, list):
            value = list(value)
        elif isinstance(value, dict):
            value = dict(value)

        setattr(msg, name, value)

    return msg
