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
from dataclasses import dataclass
from cgmon.storage import Storage
import json
import logging
import sys

log = logging.getLogger(__name__)


@dataclass
class JSONStorage(Storage):
    """Prints one json document per iteration. Register with: -r example.json_storage:JSONStorage
    """

    indent: int = 0

    def store(self, metrics):
        log.debug('dumping %d metrics', len(metrics))
        json.dump([dict(name=metric.name, labels=metric.labels, value=metric.value)
                   for metric in metrics], sys.stdout, indent=self.indent or None)
        print(flush=True)
