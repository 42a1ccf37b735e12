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
Hierarchical emission contract used by samplers to publish their figures.

Samplers open a named section, emit scalar key-value pairs (optionally
grouped in named sub-sections, e.g. one per cpu) and close the section.
How the figures are finally represented depends on the Reporter implementation.
"""
import abc
import logging
from typing import Dict, List, Optional

from cgmon.logger import TRACE
from cgmon.metrics import Metric, MetricValue, SECTION_LEVELS, DEFAULT_SECTION_LEVEL

log = logging.getLogger(__name__)


class ReportingError(Exception):
    """Sections or sub-sections were opened or closed out of order."""
    pass


class Reporter(abc.ABC):

    @abc.abstractmethod
    def section(self, name: str) -> None:
        ...

    @abc.abstractmethod
    def section_end(self) -> None:
        ...

    @abc.abstractmethod
    def sub(self, name: str) -> None:
        ...

    @abc.abstractmethod
    def sub_end(self) -> None:
        ...

    @abc.abstractmethod
    def string(self, key: str, value: str) -> None:
        ...

    @abc.abstractmethod
    def integer(self, key: str, value: int) -> None:
        ...

    @abc.abstractmethod
    def double(self, key: str, value: float) -> None:
        ...


class MetricsReporter(Reporter):
    """Converts emitted figures into metrics.

    - numeric value becomes metric named "<section>_<key>",
    - sub-section name is attached as label (label name depends on section, e.g.
      for cgroup_cpuacct_stats section sub-section "cpu3" gives label cpu="3"),
    - string values of a section are gathered as labels of "<section>_info" metric
      with value 1.
    """

    def __init__(self, labels: Optional[Dict[str, str]] = None):
        self.metrics: List[Metric] = []
        self._labels = dict(labels or {})
        self._section: Optional[str] = None
        self._sub: Optional[str] = None
        self._info_labels: Dict[str, str] = {}

    def section(self, name: str) -> None:
        if self._section is not None:
            raise ReportingError('cannot open section %r: section %r not closed' % (
                name, self._section))
        self._section = name
        self._info_labels = {}

    def section_end(self) -> None:
        self._assure_section()
        if self._sub is not None:
            raise ReportingError('cannot close section %r: sub-section %r not closed' % (
                self._section, self._sub))
        if self._info_labels:
            self.metrics.append(Metric.create_metric_with_metadata(
                name='%s_info' % self._section,
                value=1,
                labels=dict(self._labels, **self._info_labels),
            ))
        log.log(TRACE, 'section %r reported', self._section)
        self._section = None
        self._info_labels = {}

    def sub(self, name: str) -> None:
        self._assure_section()
        if self._sub is not None:
            raise ReportingError('cannot open sub-section %r: sub-section %r not closed' % (
                name, self._sub))
        self._sub = name

    def sub_end(self) -> None:
        if self._sub is None:
            raise ReportingError('no sub-section to close')
        self._sub = None

    def string(self, key: str, value: str) -> None:
        self._assure_section()
        if self._sub is not None:
            key = '%s_%s' % (self._sub, key)
        self._info_labels[key] = str(value)

    def integer(self, key: str, value: int) -> None:
        self._add(key, int(value))

    def double(self, key: str, value: float) -> None:
        self._add(key, float(value))

    def _assure_section(self):
        if self._section is None:
            raise ReportingError('no section opened')

    def _sub_label(self):
        level = SECTION_LEVELS.get(self._section, DEFAULT_SECTION_LEVEL)
        if self._sub.startswith(level) and len(self._sub) > len(level):
            return level, self._sub[len(level):]
        return level, self._sub

    def _add(self, key: str, value: MetricValue):
        self._assure_section()
        labels = dict(self._labels)
        if self._sub is not None:
            level, label_value = self._sub_label()
            labels[level] = label_value
        self.metrics.append(Metric.create_metric_with_metadata(
            name='%s_%s' % (self._section, key),
            value=value,
            labels=labels,
        ))
