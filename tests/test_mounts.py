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
from unittest.mock import patch, mock_open

import pytest

from cgmon.mounts import MountResolver, ControllerMount
from tests.testing import create_open_mock, relative_module_path

MOUNTS = '/proc/self/mounts'


def _mounts_fixture(name):
    with open(relative_module_path(__file__, 'fixtures/%s' % name)) as f:
        return f.read()


@pytest.mark.parametrize('mounts_fixture, controller, expected_path', [
    ('mounts-docker.txt', 'memory', '/sys/fs/cgroup/memory'),
    ('mounts-docker.txt', 'cpuset', '/sys/fs/cgroup/cpuset'),
    ('mounts-docker.txt', 'cpu,cpuacct', '/sys/fs/cgroup/cpu,cpuacct'),
    ('mounts-docker.txt', 'cpuacct,cpu', None),
    ('mounts-docker.txt', 'hugetlb', None),
    ('mounts-lxc.txt', 'memory', '/sys/fs/cgroup/memory/lxc/container1'),
    ('mounts-lxc.txt', 'cpuset', '/sys/fs/cgroup/cpuset/lxc/container1'),
    ('mounts-lxc.txt', 'cpu,cpuacct', None),
    ('mounts-lxc.txt', 'cpuacct,cpu', '/sys/fs/cgroup/cpuacct,cpu/lxc/container1'),
    ('mounts-host.txt', 'memory', None),
    ('mounts-host.txt', 'cpuset', None),
])
def test_resolve(mounts_fixture, controller, expected_path):
    with patch('builtins.open', create_open_mock({MOUNTS: _mounts_fixture(mounts_fixture)})):
        assert MountResolver(MOUNTS).resolve(controller) == expected_path


@patch('builtins.open', create_open_mock({
    MOUNTS: 'proc /proc proc rw,nosuid 0 0\n'
            'cgroup /sys/fs/cgroup/cpuset cgroup rw,cpuset 0 0\n'
}))
def test_resolve_mount():
    assert MountResolver(MOUNTS).resolve_mount('cpuset') == \
        ControllerMount('cpuset', '/sys/fs/cgroup/cpuset')


@pytest.mark.parametrize('malformed_record', [
    'proc /proc proc rw 0',
    'proc /proc proc rw 0 0 extra',
    '',
])
def test_resolve_malformed_record_before_match_aborts(malformed_record):
    body = ('sysfs /sys sysfs rw 0 0\n' +
            malformed_record + '\n' +
            'cgroup /sys/fs/cgroup/cpuset cgroup rw,cpuset 0 0\n')
    with patch('builtins.open', create_open_mock({MOUNTS: body})):
        assert MountResolver(MOUNTS).resolve('cpuset') is None


def test_resolve_malformed_record_after_match_is_not_reached():
    body = ('cgroup /sys/fs/cgroup/cpuset cgroup rw,cpuset 0 0\n'
            'broken record\n')
    with patch('builtins.open', create_open_mock({MOUNTS: body})):
        assert MountResolver(MOUNTS).resolve('cpuset') == '/sys/fs/cgroup/cpuset'


def test_resolve_too_long_line(tmp_path):
    mounts = tmp_path / 'mounts'
    mounts.write_text('cgroup /sys/fs/cgroup/cpuset cgroup rw,%s,cpuset 0 0\n' % ('x' * 9000))
    assert MountResolver(str(mounts)).resolve('cpuset') is None


@patch('builtins.open', create_open_mock({MOUNTS: None}))
def test_resolve_unreadable_mount_table():
    assert MountResolver(MOUNTS).resolve('memory') is None


def test_resolve_ignores_non_cgroup_fs_spec():
    body = 'cgroup2 /sys/fs/cgroup/unified cgroup2 rw,nsdelegate,memory 0 0\n'
    with patch('builtins.open', create_open_mock({MOUNTS: body})):
        assert MountResolver(MOUNTS).resolve('memory') is None


def test_resolve_result_is_cached():
    open_mock = mock_open(read_data='cgroup /sys/fs/cgroup/memory cgroup rw,memory 0 0\n')
    with patch('builtins.open', open_mock):
        resolver = MountResolver(MOUNTS)
        assert resolver.resolve('memory') == '/sys/fs/cgroup/memory'
        assert resolver.resolve('memory') == '/sys/fs/cgroup/memory'
        assert resolver.resolve('cpuset') is None
        assert resolver.resolve('cpuset') is None
    assert open_mock.call_count == 2
