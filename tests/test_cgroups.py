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
from unittest.mock import patch, Mock

import pytest

from cgmon.cgroups import LimitReader, SubsystemState, CgroupPaths, LimitSnapshot
from cgmon.mounts import MountResolver
from cgmon.reporting import MetricsReporter
from tests.testing import create_open_mock, assert_metric, cgroup_mounts

MOUNTS = '/proc/self/mounts'
MEMORY_LIMIT = '/sys/fs/cgroup/memory/memory.limit_in_bytes'
CPUSET_CPUS = '/sys/fs/cgroup/cpuset/cpuset.cpus'


def _init_with(memory_limit='1073741824\n', cpus='0-1,3\n', **mounts):
    limits = LimitReader(MountResolver(MOUNTS))
    with patch('builtins.open', create_open_mock({
        MOUNTS: cgroup_mounts(**mounts),
        MEMORY_LIMIT: memory_limit,
        CPUSET_CPUS: cpus,
    })):
        limits.init()
    return limits


def test_init():
    limits = _init_with()
    assert limits.enabled
    assert limits.state == SubsystemState.ENABLED
    assert limits.paths == CgroupPaths(memory='/sys/fs/cgroup/memory',
                                       cpuacct='/sys/fs/cgroup/cpu,cpuacct',
                                       cpuset='/sys/fs/cgroup/cpuset')
    assert limits.snapshot == LimitSnapshot(memory_limit_bytes=1073741824,
                                            allowed_cpus=frozenset({0, 1, 3}))


def test_init_reversed_cpuacct_controllers():
    limits = _init_with(cpuacct='/sys/fs/cgroup/cpuacct,cpu', cpuacct_controllers='cpuacct,cpu')
    assert limits.enabled
    assert limits.paths.cpuacct == '/sys/fs/cgroup/cpuacct,cpu'


@pytest.mark.parametrize('missing_controller', ['memory', 'cpuacct', 'cpuset'])
def test_init_missing_controller(missing_controller):
    limits = _init_with(**{missing_controller: None})
    assert not limits.enabled
    assert limits.state == SubsystemState.DISABLED
    assert limits.paths is None
    assert limits.snapshot is None


@pytest.mark.parametrize('memory_limit', [
    '0\n',
    '',
    '-1\n',
    'max\n',
    '18446744073709551616\n',
    '\u0661\u0662\u0663\n',
    None,
])
def test_init_invalid_memory_limit(memory_limit):
    assert not _init_with(memory_limit=memory_limit).enabled


def test_init_max_memory_limit():
    limits = _init_with(memory_limit='18446744073709551615\n')
    assert limits.enabled
    assert limits.snapshot.memory_limit_bytes == 2 ** 64 - 1


@pytest.mark.parametrize('cpus', [
    '\n',
    '3-1\n',
    '0-1,x\n',
    '\u0663\n',
    '0-2147483647\n',
    None,
])
def test_init_invalid_cpus(cpus):
    assert not _init_with(cpus=cpus).enabled


def test_init_is_all_or_nothing_on_reinit():
    limits = _init_with()
    assert limits.enabled
    with patch('builtins.open', create_open_mock({
        MOUNTS: cgroup_mounts(),
        MEMORY_LIMIT: '0\n',
        CPUSET_CPUS: '0\n',
    })):
        assert not limits.init()
    assert limits.snapshot is None


def test_init_resolves_controllers_in_order():
    mount_resolver = Mock(spec=MountResolver)
    mount_resolver.resolve.return_value = None
    limits = LimitReader(mount_resolver)
    assert not limits.init()
    mount_resolver.resolve.assert_called_once_with('memory')


def test_is_allowed_cpu_disabled():
    limits = _init_with(memory=None)
    assert all(limits.is_allowed_cpu(cpu) for cpu in (0, 1, 2, 3, 1000))


def test_is_allowed_cpu_enabled():
    limits = _init_with()
    assert [cpu for cpu in range(5) if limits.is_allowed_cpu(cpu)] == [0, 1, 3]


def test_report_config():
    limits = _init_with()
    reporter = MetricsReporter()
    limits.report_config(reporter)
    assert_metric(reporter.metrics, 'cgroup_config_memory_limit_bytes', {}, 1073741824)
    assert_metric(reporter.metrics, 'cgroup_config_info', dict(
        memory_path='/sys/fs/cgroup/memory',
        cpuacct_path='/sys/fs/cgroup/cpu,cpuacct',
        cpuset_path='/sys/fs/cgroup/cpuset',
        cpus='0,1,3',
    ), 1)


def test_report_config_disabled():
    limits = _init_with(cpuset=None)
    reporter = MetricsReporter()
    limits.report_config(reporter)
    assert reporter.metrics == []
