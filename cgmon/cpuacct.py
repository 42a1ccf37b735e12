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
Per-cpu utilization of cgroup based on cpuacct controller.

Newer kernels split per-cpu accounting into user and system mode:

    <cpuacct>/cpuacct.usage_percpu_sys
    <cpuacct>/cpuacct.usage_percpu_user

but older ones (e.g. CentOS 7) provide only combined counters:

    <cpuacct>/cpuacct.usage_percpu

Every file contains single line with nanosecond counters, one per cpu.
See https://www.kernel.org/doc/Documentation/cgroup-v1/cpuacct.txt
"""
import logging
import os
from typing import List, Optional, Tuple

from dataclasses import dataclass
from enum import Enum

from cgmon.cgroups import LimitReader, CgroupResource
from cgmon.files import CumulativeFile, parse_unsigned
from cgmon.logger import TRACE
from cgmon.metrics import SECTION_CPUACCT_STATS
from cgmon.reporting import Reporter

log = logging.getLogger(__name__)

# Shorter intervals give too inaccurate percentages.
MIN_ELAPSED_SECONDS = 0.1
NANOSECONDS_PER_SECOND = 1e9
MAX_COUNTER_VALUE = 2 ** 64 - 1


class CpuacctFormat(Enum):
    SPLIT_USER_SYS = 'split_user_sys'
    COMBINED_ONLY = 'combined_only'


class CoreState(Enum):
    UNINITIALIZED = 'uninitialized'  # no previous (non-zero) counters
    WARMED = 'warmed'  # previous counters available, nothing computed yet
    ACTIVE = 'active'  # utilization already computed


@dataclass
class CoreCounters:
    user_ns: int = 0
    sys_ns: int = 0
    state: CoreState = CoreState.UNINITIALIZED


def parse_counters(line: str) -> List[int]:
    """Parses line of space separated nanosecond counters, can raise ValueError."""
    return [parse_unsigned(value, MAX_COUNTER_VALUE) for value in line.split()]


def calculate_percent(delta_ns: int, elapsed_seconds: float) -> float:
    # Not clamped: accounting skew can give values slightly above 100.
    return 100 * float(delta_ns) / (elapsed_seconds * NANOSECONDS_PER_SECOND)


class CpuUtilizationSampler:

    def __init__(self, limits: LimitReader):
        self._limits = limits
        self._format: Optional[CpuacctFormat] = None
        self._user_file: Optional[CumulativeFile] = None
        self._sys_file: Optional[CumulativeFile] = None
        self._closed = False
        self.cores: List[CoreCounters] = []

    @property
    def format(self) -> Optional[CpuacctFormat]:
        return self._format

    @property
    def closed(self) -> bool:
        return self._closed

    def _detect_format(self):
        """Picks files layout once and opens them (they are kept open)."""
        paths = self._limits.paths
        sys_path = paths.cpuacct_file(CgroupResource.CPUACCT_USAGE_PERCPU_SYS)
        if os.path.exists(sys_path):
            self._format = CpuacctFormat.SPLIT_USER_SYS
            self._user_file = CumulativeFile(
                paths.cpuacct_file(CgroupResource.CPUACCT_USAGE_PERCPU_USER))
            self._sys_file = CumulativeFile(sys_path)
        else:
            self._format = CpuacctFormat.COMBINED_ONLY
            self._user_file = CumulativeFile(
                paths.cpuacct_file(CgroupResource.CPUACCT_USAGE_PERCPU))
        log.debug('Using %s cpuacct per-cpu counters from %r.',
                  self._format.value, paths.cpuacct)

        files = [self._user_file] if self._sys_file is None else [self._user_file, self._sys_file]
        if not all(f.open() for f in files):
            log.warning('Cannot open cpuacct counters - cpu utilization will not be reported!')
            self._closed = True

    def _read_counters(self) -> Optional[Tuple[List[int], Optional[List[int]]]]:
        try:
            user_counters = parse_counters(self._user_file.read_first_line())
            sys_counters = None
            if self._sys_file is not None:
                sys_counters = parse_counters(self._sys_file.read_first_line())
        except (OSError, ValueError) as e:
            log.debug('Cannot read cpuacct counters (%s) - skipping.', e)
            return None

        if not user_counters:
            log.debug('No cpuacct counters found - skipping.')
            return None
        if sys_counters is not None and len(sys_counters) != len(user_counters):
            log.debug('Number of user (%i) and sys (%i) cpuacct counters differ - skipping.',
                      len(user_counters), len(sys_counters))
            return None
        return user_counters, sys_counters

    def _assure_cpus_number(self, cpus: int) -> bool:
        """Learns number of cpus. On change all previous counters are dropped
        and learning starts again on next sample."""
        if not self.cores:
            self.cores = [CoreCounters() for _ in range(cpus)]
            log.debug('Learned number of cpus in cpuacct counters: %i', cpus)
            return True
        if cpus != len(self.cores):
            log.debug('Number of cpus in cpuacct counters changed from %i to %i - '
                      'resetting counters.', len(self.cores), cpus)
            self.cores = []
            return False
        return True

    def _update_core(self, core: CoreCounters, user_ns: int, sys_ns: Optional[int],
                     elapsed_seconds: float, emit: bool
                     ) -> Optional[Tuple[float, Optional[float]]]:
        """Stores new counters and returns (user, sys) percentages when possible."""
        split = sys_ns is not None
        went_backwards = user_ns < core.user_ns or (split and sys_ns < core.sys_ns)

        percents = None
        if went_backwards:
            log.debug('cpuacct counters decreased (cgroup reset?) - new baseline stored.')
        elif (core.state != CoreState.UNINITIALIZED and emit and
              elapsed_seconds > MIN_ELAPSED_SECONDS):
            user_percent = calculate_percent(user_ns - core.user_ns, elapsed_seconds)
            sys_percent = None
            if split:
                sys_percent = calculate_percent(sys_ns - core.sys_ns, elapsed_seconds)
            percents = user_percent, sys_percent
            core.state = CoreState.ACTIVE

        core.user_ns = user_ns
        core.sys_ns = sys_ns if split else 0
        if user_ns == 0 or (split and sys_ns == 0):
            core.state = CoreState.UNINITIALIZED
        elif core.state == CoreState.UNINITIALIZED:
            core.state = CoreState.WARMED
        return percents

    def sample(self, elapsed_seconds: float, emit: bool, reporter: Reporter):
        """Updates counters and (if emit) reports per cpu utilization since last sample."""
        if not self._limits.enabled or self._closed:
            return

        if self._format is None:
            self._detect_format()
            if self._closed:
                return

        counters = self._read_counters()
        if counters is None:
            return
        user_counters, sys_counters = counters

        if not self._assure_cpus_number(len(user_counters)):
            return

        cpus_percents = []
        for cpu, core in enumerate(self.cores):
            percents = self._update_core(
                core, user_counters[cpu],
                sys_counters[cpu] if sys_counters is not None else None,
                elapsed_seconds, emit)
            if percents is not None:
                cpus_percents.append((cpu, percents))

        log.log(TRACE, 'cpuacct utilization (elapsed=%.3fs): %r', elapsed_seconds, cpus_percents)
        if not cpus_percents:
            return

        reporter.section(SECTION_CPUACCT_STATS)
        for cpu, (user_percent, sys_percent) in cpus_percents:
            reporter.sub('cpu%i' % cpu)
            reporter.double('user', user_percent)
            if sys_percent is not None:
                reporter.double('sys', sys_percent)
            reporter.sub_end()
        reporter.section_end()
