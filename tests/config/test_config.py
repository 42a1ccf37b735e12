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
import pytest

from cgmon import config
from cgmon import components
from cgmon.config import ConfigLoadError
from cgmon.runner import MonitorRunner
from cgmon.storage import LogStorage
from tests.testing import relative_module_path


@pytest.fixture(autouse=True)
def registered_components():
    components.register_components(extra_components=[])


def test_config_monitor_runner():
    data = config.load_config(relative_module_path(__file__, 'test_config_runner.yaml'))

    assert data['loggers'] == {'cgmon': 'debug'}
    runner = data['runner']
    assert isinstance(runner, MonitorRunner)
    assert runner._interval == 2
    assert runner._iterations == 5
    assert runner._extra_labels == {'host': 'node1'}
    assert isinstance(runner._storage, LogStorage)
    assert runner._storage.overwrite
    assert not runner._storage.include_timestamp


def test_config_component_without_arguments():
    runner = config._parse('runner: !MonitorRunner\n')['runner']
    assert isinstance(runner, MonitorRunner)
    assert runner._interval == 1.


def test_config_missing_file():
    with pytest.raises(ConfigLoadError, match='Cannot find configuration file'):
        config.load_config('/not/existing/config.yaml')


def test_config_unknown_tag():
    test_config_path = relative_module_path(__file__, 'test_config_unknown_tag.yaml')
    with pytest.raises(ConfigLoadError, match='MonitorRunner'):
        config.load_config(test_config_path)


def test_config_invalid_value():
    test_config_path = relative_module_path(__file__, 'test_config_invalid_interval.yaml')
    with pytest.raises(ConfigLoadError, match='interval'):
        config.load_config(test_config_path)


@pytest.mark.parametrize('yaml_body, expected_exception_msg', [
    ('runner: !MonitorRunner\n  mounts_path: proc/self/mounts\n', 'mounts_path'),
    ('runner: !MonitorRunner\n  extra_labels: [host]\n', 'extra_labels'),
    ('runner: !MonitorRunner\n  storage: stderr\n', 'storage'),
    ('runner: !MonitorRunner\n  unknown: 1\n', 'Cannot instantiate'),
    ('storage: !LogStorage\n  overwrite: true\n', 'overwrite'),
])
def test_config_improper_components(yaml_body, expected_exception_msg):
    with pytest.raises(ConfigLoadError, match=expected_exception_msg):
        config._parse(yaml_body)
