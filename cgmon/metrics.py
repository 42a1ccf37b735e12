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
from typing import Dict, Union, Optional

from dataclasses import dataclass, field
from enum import Enum

log = logging.getLogger(__name__)

# Sections of hierarchical reports (see cgmon.reporting).
SECTION_CONFIG = 'cgroup_config'
SECTION_CPUACCT_STATS = 'cgroup_cpuacct_stats'
SECTION_MEMORY_STATS = 'cgroup_memory_stats'

# Label used for sub-sections of given section (e.g. cpu="3" for "cpu3" sub-section).
DEFAULT_SECTION_LEVEL = 'group'
SECTION_LEVELS = {
    SECTION_CPUACCT_STATS: 'cpu',
}


class MetricName(str, Enum):
    # --- Static limits (cgroup_config section) ---
    CGROUP_CONFIG_INFO = 'cgroup_config_info'
    CGROUP_CONFIG_MEMORY_LIMIT_BYTES = 'cgroup_config_memory_limit_bytes'

    # --- cpuacct based (cgroup_cpuacct_stats section) ---
    CGROUP_CPUACCT_STATS_USER = 'cgroup_cpuacct_stats_user'
    CGROUP_CPUACCT_STATS_SYS = 'cgroup_cpuacct_stats_sys'

    # --- memory controller based (cgroup_memory_stats section) ---
    # Other metrics from this section are named after memory.stat keys.
    CGROUP_MEMORY_STATS_FAILCNT = 'cgroup_memory_stats_failcnt'

    def __repr__(self):
        return repr(self.value)

    def __str__(self):
        return self.value


for key_name, value_name in MetricName.__members__.items():
    assert key_name == value_name.upper(), 'metric name mismatch %s' % key_name


class MetricType(str, Enum):
    GAUGE = 'gauge'  # arbitrary value (can go up and down)
    COUNTER = 'counter'  # monotonically increasing counter

    def __repr__(self):
        return repr(self.value)

    def __str__(self):
        return self.value


MetricValue = Union[float, int]


class MetricUnit(str, Enum):
    BYTES = 'bytes'
    PERCENT = 'percent'
    NUMERIC = 'numeric'

    def __repr__(self):
        return repr(self.value)

    def __str__(self):
        return self.value


@dataclass
class MetricMetadata:
    help: str
    type: MetricType
    unit: MetricUnit


# Structure linking a metric with its type and help.
METRICS_METADATA: Dict[MetricName, MetricMetadata] = {
    MetricName.CGROUP_CONFIG_INFO:
        MetricMetadata(
            'Cgroup controllers mount points and allowed cpus (encoded as labels).',
            MetricType.GAUGE,
            MetricUnit.NUMERIC,
        ),
    MetricName.CGROUP_CONFIG_MEMORY_LIMIT_BYTES:
        MetricMetadata(
            'Memory limit of cgroup based on memory.limit_in_bytes.',
            MetricType.GAUGE,
            MetricUnit.BYTES,
        ),
    MetricName.CGROUP_CPUACCT_STATS_USER:
        MetricMetadata(
            'Percentage of time spent by cgroup tasks in user mode on given cpu '
            '(or in any mode if kernel does not split cpuacct.usage_percpu).',
            MetricType.GAUGE,
            MetricUnit.PERCENT,
        ),
    MetricName.CGROUP_CPUACCT_STATS_SYS:
        MetricMetadata(
            'Percentage of time spent by cgroup tasks in system mode on given cpu.',
            MetricType.GAUGE,
            MetricUnit.PERCENT,
        ),
    MetricName.CGROUP_MEMORY_STATS_FAILCNT:
        MetricMetadata(
            'Number of times memory usage hit the cgroup limit (memory.failcnt).',
            MetricType.COUNTER,
            MetricUnit.NUMERIC,
        ),
}


@dataclass
class Metric:
    name: Union[str, MetricName]
    value: MetricValue
    labels: Dict[str, str] = field(default_factory=dict)
    unit: Optional[MetricUnit] = None
    type: Optional[MetricType] = None
    help: Optional[str] = None

    @staticmethod
    def create_metric_with_metadata(name, value, labels=None):
        metric = Metric(
            name=name,
            value=value,
            labels=labels or dict(),
        )
        if name in METRICS_METADATA:
            metric.type = METRICS_METADATA[name].type
            metric.help = METRICS_METADATA[name].help
            metric.unit = METRICS_METADATA[name].unit
        return metric
