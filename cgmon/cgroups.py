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
import logging
import os
from typing import Optional, FrozenSet

from dataclasses import dataclass
from enum import Enum

from cgmon.files import read_integer
from cgmon.logger import trace
from cgmon.metrics import SECTION_CONFIG
from cgmon.mounts import MountResolver
from cgmon.platforms import decode_listformat, encode_listformat, MAX_CPU_ID
from cgmon.reporting import Reporter

log = logging.getLogger(__name__)

MAX_MEMORY_LIMIT_BYTES = 2 ** 64 - 1


class CgroupController(str, Enum):
    MEMORY = 'memory'
    CPUACCT = 'cpu,cpuacct'
    # Order of controllers in mount options differs across distributions.
    CPUACCT_REVERSED = 'cpuacct,cpu'
    CPUSET = 'cpuset'

    def __repr__(self):
        return repr(self.value)


class CgroupResource(str, Enum):
    CPUACCT_USAGE_PERCPU = 'cpuacct.usage_percpu'
    CPUACCT_USAGE_PERCPU_USER = 'cpuacct.usage_percpu_user'
    CPUACCT_USAGE_PERCPU_SYS = 'cpuacct.usage_percpu_sys'
    CPUSET_CPUS = 'cpuset.cpus'
    MEMORY_LIMIT = 'memory.limit_in_bytes'
    MEMORY_STAT = 'memory.stat'
    MEMORY_FAILCNT = 'memory.failcnt'

    def __repr__(self):
        return repr(self.value)


class SubsystemState(Enum):
    DISABLED = 'disabled'
    ENABLED = 'enabled'


@dataclass(frozen=True)
class CgroupPaths:
    memory: str
    cpuacct: str
    cpuset: str

    def memory_file(self, resource: CgroupResource) -> str:
        return os.path.join(self.memory, resource)

    def cpuacct_file(self, resource: CgroupResource) -> str:
        return os.path.join(self.cpuacct, resource)

    def cpuset_file(self, resource: CgroupResource) -> str:
        return os.path.join(self.cpuset, resource)


@dataclass(frozen=True)
class LimitSnapshot:
    memory_limit_bytes: int
    allowed_cpus: FrozenSet[int]


class LimitReader:
    """Reads static limits (memory ceiling and allowed cpus) of cgroup
    the process is running in.

    Cgroup mode is enabled only if memory, cpuacct and cpuset controllers are
    found and both limits are valid. Otherwise it stays disabled and
    no cpu is restricted.
    """

    def __init__(self, mount_resolver: MountResolver):
        self._mount_resolver = mount_resolver
        self._state = SubsystemState.DISABLED
        self.paths: Optional[CgroupPaths] = None
        self.snapshot: Optional[LimitSnapshot] = None

    @property
    def state(self) -> SubsystemState:
        return self._state

    @property
    def enabled(self) -> bool:
        return self._state == SubsystemState.ENABLED

    @trace(log)
    def init(self) -> bool:
        self._state = SubsystemState.DISABLED
        self.paths = None
        self.snapshot = None

        memory_path = self._mount_resolver.resolve(CgroupController.MEMORY)
        if memory_path is None:
            log.debug("Could not find the 'memory' cgroup path. Cgroup mode disabled.")
            return False

        cpuacct_path = self._mount_resolver.resolve(CgroupController.CPUACCT)
        if cpuacct_path is None:
            cpuacct_path = self._mount_resolver.resolve(CgroupController.CPUACCT_REVERSED)
            if cpuacct_path is None:
                log.debug("Could not find the 'cpuacct' cgroup path. Cgroup mode disabled.")
                return False

        cpuset_path = self._mount_resolver.resolve(CgroupController.CPUSET)
        if cpuset_path is None:
            log.debug("Could not find the 'cpuset' cgroup path. Cgroup mode disabled.")
            return False

        paths = CgroupPaths(memory=memory_path, cpuacct=cpuacct_path, cpuset=cpuset_path)

        try:
            memory_limit_bytes = read_integer(paths.memory_file(CgroupResource.MEMORY_LIMIT),
                                              max_value=MAX_MEMORY_LIMIT_BYTES)
        except (OSError, ValueError) as e:
            log.debug("Could not read the memory limit from 'memory' cgroup (%s). "
                      "Cgroup mode disabled.", e)
            return False

        try:
            with open(paths.cpuset_file(CgroupResource.CPUSET_CPUS)) as f:
                allowed_cpus = decode_listformat(f.read(), max_value=MAX_CPU_ID)
        except (OSError, ValueError) as e:
            log.debug("Could not read the CPUs from 'cpuset' cgroup (%s). "
                      "Cgroup mode disabled.", e)
            return False

        if memory_limit_bytes == 0:
            log.debug("Invalid memory limit (0) in 'memory' cgroup. Cgroup mode disabled.")
            return False

        if not allowed_cpus:
            log.debug("No CPUs assigned to 'cpuset' cgroup. Cgroup mode disabled.")
            return False

        self.paths = paths
        self.snapshot = LimitSnapshot(memory_limit_bytes=memory_limit_bytes,
                                      allowed_cpus=frozenset(allowed_cpus))
        self._state = SubsystemState.ENABLED
        log.debug('Found cpuset cgroup limiting to CPUs: %s', encode_listformat(allowed_cpus))
        log.debug('Found memory cgroup limiting to bytes: %i', memory_limit_bytes)
        return True

    def is_allowed_cpu(self, cpu: int) -> bool:
        if not self.enabled:
            return True
        return cpu in self.snapshot.allowed_cpus

    def report_config(self, reporter: Reporter):
        """Reports discovered mount points and limits (only in cgroup mode)."""
        if not self.enabled:
            return

        reporter.section(SECTION_CONFIG)
        reporter.string('memory_path', self.paths.memory)
        reporter.string('cpuacct_path', self.paths.cpuacct)
        reporter.string('cpuset_path', self.paths.cpuset)
        reporter.string('cpus', encode_listformat(set(self.snapshot.allowed_cpus)))
        reporter.integer('memory_limit_bytes', self.snapshot.memory_limit_bytes)
        reporter.section_end()
