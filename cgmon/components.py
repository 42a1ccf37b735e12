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
from importlib.metadata import EntryPoint
from typing import List

from cgmon import config
from cgmon import runner
from cgmon import storage

REGISTERED_COMPONENTS = [
    runner.MonitorRunner,
    storage.LogStorage,
]


def register_components(extra_components: List[str]):
    for component in REGISTERED_COMPONENTS:
        config.register(component)

    for component in extra_components:
        # Load external class ignored its requirements.
        ep = EntryPoint(name='external_cls', value=component, group='cgmon.components')
        cls = ep.load()
        config.register(cls)
