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
Storages receive the metrics gathered in a single iteration. The only built-in one,
LogStorage, writes them as Prometheus text (exposition format 0.0.4) to stderr or a file.
"""
import abc
import itertools
import logging
import os
import pathlib
import re
import sys
import time
from typing import Dict, Iterable, List, Optional, Tuple, Union

from dataclasses import dataclass

from cgmon import logger
from cgmon.config import Path
from cgmon.metrics import Metric, MetricType

log = logging.getLogger(__name__)


class Storage(abc.ABC):

    @abc.abstractmethod
    def store(self, metrics: List[Metric]) -> None:
        """Stores metrics of one iteration; may raise FailedDeliveryException."""
        ...


class FailedDeliveryException(Exception):
    """Metrics could not be written to the destination."""


class InconvertibleToPrometheusExpositionFormat(Exception):
    """Metrics cannot be expressed as Prometheus text."""


@dataclass
class LogStorage(Storage):
    """rst
    Writes metrics as Prometheus text to stderr or to a file.

    - ``output_filename``: file to append metrics to; stderr when empty
    - ``overwrite``: keep only the latest iteration in ``output_filename``,
      the file is replaced atomically (requires ``output_filename``)
    - ``include_timestamp``: append a millisecond timestamp to each sample,
      by default only when not in ``overwrite`` mode
    """
    output_filename: Optional[Path] = None
    overwrite: bool = False
    include_timestamp: Optional[bool] = None

    def __post_init__(self):
        if self.overwrite and self.output_filename is None:
            raise ValueError('overwrite mode requires output_filename to be set!')
        if self.include_timestamp is None:
            self.include_timestamp = not self.overwrite

        self._output = None
        if self.output_filename is None:
            self._output = sys.stderr
        else:
            log.info('metrics will be written to: %r (overwrite=%s)',
                     self.output_filename, self.overwrite)
            if not self.overwrite:
                self._output = open(self.output_filename, 'a')

    @property
    def _destination(self) -> str:
        return self.output_filename or 'stderr'

    def store(self, metrics):
        log.debug('storing %d metrics to %s', len(metrics), self._destination)
        log.log(logger.TRACE, 'metrics: %r', metrics)

        convertable, error_message = is_convertable_to_prometheus_exposition_format(metrics)
        if not convertable:
            log.error('metrics cannot be converted to prometheus text: %s', error_message)
            raise InconvertibleToPrometheusExpositionFormat(error_message)

        timestamp = get_current_time() if self.include_timestamp else None
        text = convert_to_prometheus_exposition_format(metrics, timestamp)
        log.log(logger.TRACE, 'metrics as text: %r', text)

        try:
            if self.overwrite:
                self._replace_file(text)
            else:
                print(text, file=self._output, flush=True)
        except OSError as e:
            raise FailedDeliveryException(
                'cannot write metrics to %r: %s' % (self._destination, e)) from e

    def _replace_file(self, text: str):
        # Readers never see a partially written file.
        target = pathlib.Path(self.output_filename)
        temporary = target.with_suffix('.tmp')
        with open(temporary, 'w', encoding='utf-8') as f:
            f.write(text)
        os.replace(temporary, target)


DEFAULT_STORAGE = LogStorage()


def get_current_time() -> str:
    """Milliseconds since unix epoch."""
    return str(int(time.time() * 1000))


# Name rules as in prometheus_client.
_METRIC_NAME_RE = re.compile(r'^[a-zA-Z_:][a-zA-Z0-9_:]*$')
_LABEL_NAME_RE = re.compile(r'^[a-zA-Z_][a-zA-Z0-9_]*$')
_RESERVED_LABEL_PREFIX = '__'
_ALLOWED_TYPES = (MetricType.GAUGE, MetricType.COUNTER)


def _metric_problem(metric: Metric) -> Optional[str]:
    if not _METRIC_NAME_RE.match(metric.name):
        return 'invalid metric name %r' % metric.name
    for label_name, label_value in metric.labels.items():
        if not _LABEL_NAME_RE.match(label_name):
            return 'invalid label name %r in metric %r' % (label_name, metric.name)
        if label_name.startswith(_RESERVED_LABEL_PREFIX):
            return 'reserved label name %r in metric %r' % (label_name, metric.name)
        if not isinstance(label_value, str):
            return 'label %r of metric %r is %s, expected str' % (
                label_name, metric.name, type(label_value).__name__)
    if metric.type is not None and metric.type not in _ALLOWED_TYPES:
        return 'unsupported type %r of metric %r' % (metric.type, metric.name)
    if isinstance(metric.value, bool) or not isinstance(metric.value, (int, float)):
        return 'value of metric %r is %s, expected a number' % (
            metric.name, type(metric.value).__name__)
    return None


def is_convertable_to_prometheus_exposition_format(metrics: List[Metric]) -> Tuple[bool, str]:
    """Returns (True, '') or (False, description of the first offending metric).

    Only gauge and counter types are accepted.
    """
    for metric in metrics:
        problem = _metric_problem(metric)
        if problem is not None:
            return False, problem
    return True, ''


def _natural_key(labels: Dict[str, str]):
    # cpu="2" goes before cpu="10".
    return sorted((name, (0, int(value), '') if value.isascii() and value.isdigit()
                   else (1, 0, value))
                  for name, value in labels.items())


def group_metrics_by_name(metrics: Iterable[Metric]) -> List[Tuple[str, List[Metric]]]:
    """Groups metrics by name (sorted), samples in a group ordered by labels."""
    by_name = sorted(metrics, key=lambda metric: str(metric.name))
    return [(name, sorted(group, key=lambda metric: _natural_key(metric.labels)))
            for name, group in itertools.groupby(by_name, key=lambda metric: str(metric.name))]


def _escape_help(text: str) -> str:
    return text.replace('\\', r'\\').replace('\n', r'\n')


def _escape_label_value(text: str) -> str:
    return _escape_help(text).replace('"', r'\"')


def _format_value(value: Union[int, float]) -> str:
    # repr keeps full float precision.
    if isinstance(value, float):
        return repr(value)
    return str(value)


def _format_sample(metric: Metric, timestamp: Optional[str]) -> str:
    labels = ','.join('%s="%s"' % (name, _escape_label_value(value))
                      for name, value in sorted(metric.labels.items()))
    fields = [str(metric.name) + ('{%s}' % labels if labels else ''), _format_value(metric.value)]
    if timestamp is not None:
        fields.append(timestamp)
    return ' '.join(fields) + '\n'


def convert_to_prometheus_exposition_format(metrics: List[Metric],
                                            timestamp: Optional[str] = None) -> str:
    """Returns metrics as Prometheus text. HELP and TYPE are taken from the first
    metric of each group; groups with HELP are separated by an empty line."""
    lines = []
    for index, (name, group) in enumerate(group_metrics_by_name(metrics)):
        head = group[0]
        if head.help:
            if index > 0:
                lines.append('\n')
            lines.append('# HELP %s %s\n' % (name, _escape_help(head.help)))
        if head.type:
            lines.append('# TYPE %s %s\n' % (name, head.type))
        lines.extend(_format_sample(metric, timestamp) for metric in group)
    return ''.join(lines)
