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
"""Exceptions raised by the pw_protogen runtime and generated code."""


class Error(Exception):
    """Base class for pw_protogen errors."""


class ValidationError(Error, ValueError):
    """A value passed to an encoder is not representable in its field type.

    This indicates a programming error in the caller; it is never raised for
    untrusted input.
    """


class ParseError(Error):
    """Binary or JSON input is malformed.

    Parse errors are expected for untrusted input and do not necessarily
    indicate a bug.
    """


class SerializeError(Error):
    """A successfully parsed message cannot be written in the requested form."""


class UnsupportedError(Error):
    """The requested output format or message type is not supported."""
