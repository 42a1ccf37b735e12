# Copyright (c) 2020 Intel Corporation
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""Helpers to read pseudo-files exposed by the kernel (procfs, cgroupfs)."""
import logging
from typing import Iterator, List, Optional, TextIO

from cgmon.logger import TRACE

log = logging.getLogger(__name__)

# Capacity of a single line read from kernel files.
MAX_LINE_LENGTH = 8192


class LineTooLongError(ValueError):
    """Line does not fit into the capacity of bounded reader."""
    pass


def read_bounded_lines(f: TextIO, max_line_length: int = MAX_LINE_LENGTH) -> Iterator[str]:
    """Yields lines (without trailing newline) of already opened file.

    Lines longer than max_line_length are never truncated silently,
    LineTooLongError is raised instead.
    """
    while True:
        line = f.readline(max_line_length + 1)
        if not line:
            return
        if len(line) > max_line_length and not line.endswith('\n'):
            raise LineTooLongError(
                'line longer than %i characters found in %r' % (
                    max_line_length, getattr(f, 'name', f)))
        yield line.rstrip('\n')


def parse_unsigned(raw_value: str, max_value: Optional[int] = None) -> int:
    """Parse decimal unsigned integer, can raise ValueError."""
    raw_value = raw_value.strip()
    if not (raw_value.isascii() and raw_value.isdigit()):
        raise ValueError('%r is not an unsigned integer' % raw_value)
    value = int(raw_value)
    if max_value is not None and value > max_value:
        raise ValueError('%r exceeds maximum value %i' % (raw_value, max_value))
    return value


def read_integer(path: str, max_value: Optional[int] = None) -> int:
    """Reads file with single unsigned decimal integer.

    Can raise OSError or ValueError.
    """
    with open(path) as f:
        raw_value = f.read()
    log.log(TRACE, 'read %s=%r', path, raw_value)
    return parse_unsigned(raw_value, max_value)


class CumulativeFile:
    """File with cumulative values that is kept open between reads.

    It is opened on first read and rewound before every next one. When
    the first open fails the file is marked as closed and never reopened
    (reads return None from then on).
    """

    def __init__(self, path: str, max_line_length: int = MAX_LINE_LENGTH):
        self.path = path
        self.max_line_length = max_line_length
        self._file = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def open(self) -> bool:
        """Returns False if file cannot be used anymore."""
        if self._closed:
            return False
        if self._file is None:
            try:
                self._file = open(self.path)
            except OSError as e:
                log.warning('Cannot open %r (%s)! Reading it is disabled.', self.path, e)
                self._closed = True
                return False
        return True

    def read_lines(self) -> Optional[List[str]]:
        """Can raise OSError or LineTooLongError."""
        if not self.open():
            return None
        self._file.seek(0)
        return list(read_bounded_lines(self._file, self.max_line_length))

    def read_first_line(self) -> Optional[str]:
        """Can raise OSError or LineTooLongError."""
        if not self.open():
            return None
        self._file.seek(0)
        return next(read_bounded_lines(self._file, self.max_line_length), '')

    def close(self):
        if self._file is not None:
            self._file.close()
            self._file = None
        self._closed = True
