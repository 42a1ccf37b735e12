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
import json
from unittest.mock import mock_open, patch

from cgmon import components
from cgmon import config
from cgmon.metrics import Metric
from cgmon.runner import MonitorRunner

yaml_config = '''
runner: !MonitorRunner
  storage: !JSONStorage
    indent: 2
'''


@patch('cgmon.config.exists', return_value=True)
@patch('cgmon.config.open', mock_open(read_data=yaml_config))
def test_register_extra_components(*mocks):
    components.register_components(extra_components=['example.json_storage:JSONStorage'])
    runner = config.load_config('/etc/cgmon/config.yaml')['runner']
    assert isinstance(runner, MonitorRunner)
    assert type(runner._storage).__name__ == 'JSONStorage'
    assert runner._storage.indent == 2


def test_json_storage(capsys):
    from example.json_storage import JSONStorage
    JSONStorage().store([Metric(name='cgroup_memory_stats_cache', value=1,
                                labels={'host': 'node1'})])
    assert json.loads(capsys.readouterr().out) == [
        {'name': 'cgroup_memory_stats_cache', 'labels': {'host': 'node1'}, 'value': 1}]
