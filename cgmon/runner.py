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
import abc
import logging
import time
from typing import Dict, Optional

from cgmon.config import Numeric, Path, Str
from cgmon.logger import TRACE
from cgmon.monitor import CgroupMonitor
from cgmon.mounts import MOUNTS_PATH
from cgmon.reporting import MetricsReporter
from cgmon.storage import (DEFAULT_STORAGE, FailedDeliveryException,
                           InconvertibleToPrometheusExpositionFormat, Storage)

log = logging.getLogger(__name__)


class Runner(abc.ABC):
    """Base class for main loop of cgmon."""

    @abc.abstractmethod
    def run(self) -> int:
        """Returns exit code."""
        ...


class MonitorRunner(Runner):
    """rst

    MonitorRunner discovers cgroup limits of the process once and then
    periodically samples cgroup cpu and memory accounting, storing results
    in metrics storage component.

    - ``storage``: **type** = `DEFAULT_STORAGE`

        Storage to store cgroup metrics.
        (defaults to DEFAULT_STORAGE/LogStorage to output for standard error)

    - ``interval``: **Numeric(0,60)** = *1.*

        Iteration duration in seconds.

    - ``iterations``: **int** = *0*

        Number of emitting iterations after which runner stops
        (0 means run forever).

    - ``mounts_path``: **Path(absolute=True)** = */proc/self/mounts*

        Mount table used to find cgroup controllers.

    - ``extra_labels``: **Dict[Str, Str]** = *None*

        Additional labels attached to every stored metric.
    """

    def __init__(
            self,
            storage: Storage = DEFAULT_STORAGE,
            interval: Numeric(0, 60) = 1.,
            iterations: int = 0,
            mounts_path: Path(absolute=True) = MOUNTS_PATH,
            extra_labels: Optional[Dict[Str, Str]] = None,
    ):
        self._storage = storage
        self._interval = interval
        self._iterations = iterations
        self._monitor = CgroupMonitor(mounts_path)
        self._extra_labels = {k: str(v) for k, v in
                              extra_labels.items()} if extra_labels else dict()
        log.debug('Extra labels: %r', self._extra_labels)
        self._last_iteration = time.monotonic()  # Used internally by wait function.
        self._last_sample = self._last_iteration

    def _wait(self):
        """Decides how long one iteration should take.
        Additionally calculate residual time, based on time already taken by iteration.
        """
        now = time.monotonic()
        iteration_duration = now - self._last_iteration

        residual_time = max(0., self._interval - iteration_duration)
        time.sleep(residual_time)
        self._last_iteration = time.monotonic()

    def _initialize(self) -> Optional[int]:
        if not self._monitor.initialize():
            log.error('Cgroup limits cannot be discovered (see debug log for details) - exiting!')
            return 1

        # Establish counters baseline, nothing is stored.
        self._monitor.sample(0., False, MetricsReporter())
        self._last_sample = time.monotonic()
        self._last_iteration = self._last_sample
        return None

    def _iterate(self):
        self._wait()

        now = time.monotonic()
        elapsed = now - self._last_sample
        self._last_sample = now

        reporter = MetricsReporter(labels=self._extra_labels)
        self._monitor.sample(elapsed, True, reporter)
        log.debug('Collected %d metrics (elapsed=%.3fs).', len(reporter.metrics), elapsed)
        log.log(TRACE, 'Metrics: %r', reporter.metrics)

        try:
            self._storage.store(reporter.metrics)
        except (FailedDeliveryException, InconvertibleToPrometheusExpositionFormat) as e:
            log.error('Cannot store metrics (error=%s) - skip this iteration!', e)

    def run(self) -> int:
        """Loop that samples cgroup counters and stores them.
        Returns 1 when cgroup limits are not available.
        """
        error_code = self._initialize()
        if error_code is not None:
            return error_code

        iteration = 0
        while True:
            self._iterate()
            iteration += 1

            if self._iterations and iteration >= self._iterations:
                break

        return 0
