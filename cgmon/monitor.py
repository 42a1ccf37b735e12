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

from cgmon.cgroups import LimitReader
from cgmon.cpuacct import CpuUtilizationSampler
from cgmon.logger import trace
from cgmon.memory import MemoryStatSampler
from cgmon.mounts import MountResolver, MOUNTS_PATH
from cgmon.reporting import Reporter

log = logging.getLogger(__name__)


class CgroupMonitor:
    """Owns all the state needed to monitor cgroup of single process:
    discovered limits and counters of both samplers.

    initialize() is expected to be called once and then sample() once per
    interval (never concurrently).
    """

    def __init__(self, mounts_path: str = MOUNTS_PATH):
        self.limits = LimitReader(MountResolver(mounts_path))
        self.cpu_sampler = CpuUtilizationSampler(self.limits)
        self.memory_sampler = MemoryStatSampler(self.limits)

    @trace(log)
    def initialize(self) -> bool:
        return self.limits.init()

    @property
    def enabled(self) -> bool:
        return self.limits.enabled

    def is_allowed_cpu(self, cpu: int) -> bool:
        return self.limits.is_allowed_cpu(cpu)

    def sample(self, elapsed_seconds: float, emit: bool, reporter: Reporter):
        """With emit=False only cpu counters are updated (warm-up)."""
        if emit:
            self.limits.report_config(reporter)
            self.memory_sampler.sample(reporter)
        self.cpu_sampler.sample(elapsed_seconds, emit, reporter)
