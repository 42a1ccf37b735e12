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
"""
Memory statistics of cgroup based on memory controller.

See https://www.kernel.org/doc/Documentation/cgroup-v1/memory.txt
"""
import logging
from typing import List, Optional, Tuple

from cgmon.cgroups import LimitReader, CgroupResource
from cgmon.files import CumulativeFile, read_integer, parse_unsigned
from cgmon.logger import TRACE
from cgmon.metrics import SECTION_MEMORY_STATS
from cgmon.reporting import Reporter

log = logging.getLogger(__name__)

# Only cgroup-total values are collected (hierarchical sums including sub-cgroups).
TOTAL_PREFIX = 'total_'
FAILCNT = 'failcnt'


def sanitize_memory_stat_line(line: str) -> str:
    line = line.split('\n', 1)[0]
    return line.replace('(', '_').replace(')', '').replace(':', '')


def parse_memory_stat_line(line: str) -> Optional[Tuple[str, int]]:
    """Returns (label, value) for "total_" lines (label without the prefix)
    or None for other lines. Can raise ValueError for malformed "total_" lines."""
    if not line.startswith(TOTAL_PREFIX):
        return None

    fields = sanitize_memory_stat_line(line).split()
    if len(fields) != 2:
        raise ValueError('expected "label value" got %r' % line)
    label, raw_value = fields

    label = label[len(TOTAL_PREFIX):]
    if not label:
        raise ValueError('empty label in %r' % line)
    return label, parse_unsigned(raw_value)


def parse_memory_stat(lines: List[str]) -> List[Tuple[str, int]]:
    stats = []
    for line in lines:
        try:
            stat = parse_memory_stat_line(line)
        except ValueError as e:
            log.log(TRACE, 'Ignoring memory.stat line: %s', e)
            continue
        if stat is not None:
            stats.append(stat)
    return stats


class MemoryStatSampler:

    def __init__(self, limits: LimitReader):
        self._limits = limits
        self._stat_file: Optional[CumulativeFile] = None

    def sample(self, reporter: Reporter):
        """Reports memory.stat totals and memory.failcnt."""
        if not self._limits.enabled:
            return

        if self._stat_file is None:
            self._stat_file = CumulativeFile(
                self._limits.paths.memory_file(CgroupResource.MEMORY_STAT))

        try:
            lines = self._stat_file.read_lines()
        except (OSError, ValueError) as e:
            log.debug('Cannot read %r (%s) - skipping.', self._stat_file.path, e)
            return
        if lines is None:
            return

        failcnt = None
        try:
            failcnt = read_integer(self._limits.paths.memory_file(CgroupResource.MEMORY_FAILCNT))
        except (OSError, ValueError) as e:
            log.log(TRACE, 'memory.failcnt unavailable: %s', e)

        reporter.section(SECTION_MEMORY_STATS)
        for label, value in parse_memory_stat(lines):
            reporter.integer(label, value)
        if failcnt is not None:
            reporter.integer(FAILCNT, failcnt)
        reporter.section_end()
