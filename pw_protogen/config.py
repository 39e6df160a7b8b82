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
"""Code generator options and the YAML config file they may be loaded from.

Options are resolved in this order, later sources overriding earlier ones:

1. The defaults of GeneratorOptions.
2. A YAML config file, named by the ``--config-file`` plugin parameter or the
   ``PW_PROTOGEN_CONFIG_FILE`` environment variable. The file either holds a
   ``pw_protogen:`` section or is marked with ``config_title: pw_protogen``.

   ::

      ---
      config_title: pw_protogen
      language: python-untyped
      json_emit_default_values: true

3. Options passed to the plugin through protoc's ``--pwpy_opt``.
"""

import dataclasses
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

_LOG = logging.getLogger(__name__)

CONFIG_TITLE = 'pw_protogen'
ENVIRONMENT_VAR = 'PW_PROTOGEN_CONFIG_FILE'

LANGUAGES = ('python', 'python-untyped')


class MissingConfigTitle(Exception):
    """Exception for when an existing YAML file is missing config_title."""


class InvalidConfig(Exception):
    """A config file or plugin parameter holds an unusable option."""


@dataclasses.dataclass
class GeneratorOptions:
    """Options that control the text of generated modules.

    None of these change the wire format produced by the generated code.
    language only selects between annotated and unannotated output.
    """
    language: str = 'python'
    emit_well_known_types: bool = False
    json_emit_default_values: bool = False
    json_use_proto_field_name: bool = False

    def __post_init__(self) -> None:
        if self.language not in LANGUAGES:
            raise InvalidConfig(
                f'Unsupported language {self.language!r}; expected one of '
                f'{", ".join(LANGUAGES)}')

    @property
    def typed(self) -> bool:
        return self.language == 'python'

    def updated(self, values: Dict[str, Any]) -> 'GeneratorOptions':
        """Returns a copy of these options with values applied."""
        known = {f.name for f in dataclasses.fields(self)}
        for key in values:
            if key not in known:
                raise InvalidConfig(f'Unknown {CONFIG_TITLE} option {key!r}')
        return dataclasses.replace(self, **values)


def _load_config_from_string(file_contents: str) -> List[Dict[str, Any]]:
    return [cfg for cfg in yaml.safe_load_all(file_contents) if cfg]


def load_config_file(file_path: Path) -> Dict[str, Any]:
    """Loads the pw_protogen section of a YAML config file."""
    config: Dict[str, Any] = {}

    for cfg in _load_config_from_string(file_path.read_text()):
        if not isinstance(cfg, dict):
            raise InvalidConfig(f'{file_path} does not hold a YAML mapping')

        if CONFIG_TITLE in cfg:
            config.update(cfg[CONFIG_TITLE] or {})
            continue

        if cfg.get('config_title', False) == CONFIG_TITLE:
            config.update(
                (key, value) for key, value in cfg.items()
                if key != 'config_title')
            continue

        raise MissingConfigTitle(
            f'\n\nThe config file "{file_path}" is missing the '
            f'expected "config_title: {CONFIG_TITLE}" setting.')

    _LOG.debug('Loaded %s options from %s', CONFIG_TITLE, file_path)
    return config


def find_config_file(config_file: Optional[Path]) -> Optional[Path]:
    """Returns the config file to load, if any.

    An explicit path takes precedence over the environment variable.
    """
    if config_file is None:
        environment_config = os.environ.get(ENVIRONMENT_VAR)
        if not environment_config:
            return None
        config_file = Path(environment_config)

    config_file = Path(os.path.expandvars(str(config_file.expanduser())))
    if not config_file.is_file():
        raise FileNotFoundError(f'Cannot load config file: {config_file}')
    return config_file


def load_options(config_file: Optional[Path] = None,
                 overrides: Optional[Dict[str, Any]] = None
                 ) -> GeneratorOptions:
    """Resolves GeneratorOptions from defaults, a config file and overrides.

    Args:
      config_file: Explicit YAML file to load. Falls back to the file named by
          PW_PROTOGEN_CONFIG_FILE.
      overrides: Options that take precedence over the file. Entries whose
          value is None are ignored.
    """
    options = GeneratorOptions()

    path = find_config_file(config_file)
    if path is not None:
        options = options.updated(load_config_file(path))

    if overrides:
        options = options.updated(
            {key: value
             for key, value in overrides.items() if value is not None})

    return options
