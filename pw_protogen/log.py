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
"""Tools for configuring Python logging in pw_protogen tools.

protoc reads plugin responses from stdout, so all logs go to stderr.
"""

import logging
import sys
from typing import NamedTuple, Optional, TextIO


class _LogLevel(NamedTuple):
    level: int
    ascii: str


# Shorten all the log levels to 3 characters for column-aligned logs.
_LOG_LEVELS = (
    _LogLevel(logging.CRITICAL, 'CRT'),
    _LogLevel(logging.ERROR,    'ERR'),
    _LogLevel(logging.WARNING,  'WRN'),
    _LogLevel(logging.INFO,     'INF'),
    _LogLevel(logging.DEBUG,    'DBG'),
)  # yapf: disable

_STDERR_HANDLER: Optional[logging.Handler] = None


def install(level: int = logging.INFO,
            stream: Optional[TextIO] = None,
            hide_timestamp: bool = False) -> logging.Handler:
    """Configures the root logger to write pw_protogen logs to stderr.

    Calling install() again replaces the handler added by the previous call.
    """
    global _STDERR_HANDLER  # pylint: disable=global-statement

    timestamp_fmt = '' if hide_timestamp else '%(asctime)s '
    formatter = logging.Formatter(timestamp_fmt + '%(levelname)s %(message)s',
                                  '%Y%m%d %H:%M:%S')

    root = logging.getLogger()
    if _STDERR_HANDLER is not None:
        root.removeHandler(_STDERR_HANDLER)

    handler = logging.StreamHandler(sys.stderr if stream is None else stream)
    handler.setLevel(level)
    handler.setFormatter(formatter)
    root.addHandler(handler)
    _STDERR_HANDLER = handler

    # Set the log level on the root logger to 1, so logs that all logs
    # propagated from child loggers are handled.
    root.setLevel(1)

    for log_level in _LOG_LEVELS:
        logging.addLevelName(log_level.level, log_level.ascii)

    return handler
