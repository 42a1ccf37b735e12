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
import inspect
from typing import Dict, List, Optional, Union

import pytest

from cgmon.config import assure_type, ValidationError, Path, Numeric, Str
from cgmon.storage import Storage, LogStorage


@pytest.mark.parametrize('value, expected_type', [
    (1, int),
    (True, bool),
    (None, Optional[bool]),
    (False, Optional[bool]),
    (1, Numeric(0, 60)),
    (0.5, Numeric(0, 60)),
    ('node1', Str),
    ('node1', Str()),
    ({'host': 'node1'}, Dict[Str, Str]),
    ({}, Dict[Str, Str]),
    (None, Optional[Dict[Str, Str]]),
    ({'host': 'node1'}, Optional[Dict[Str, Str]]),
    ('metrics.prom', Path),
    ('/tmp/metrics.prom', Optional[Path]),
    (None, Optional[Path]),
    ('/proc/self/mounts', Path(absolute=True)),
    (LogStorage(), Storage),
])
def test_assure_type_good(value, expected_type):
    assure_type(value, expected_type)


@pytest.mark.parametrize('value, expected_type, expected_exception_msg', [
    (1.5, int, 'improper type'),
    ('1', Numeric(0, 60), 'Invalid type'),
    (True, Numeric(0, 60), 'Number expected'),
    (61, Numeric(0, 60), 'Maximum value'),
    (-1, Numeric(0, 60), 'Minimum value'),
    (2.5, Optional[bool], 'improper type'),
    ('x' * 5, Str(max_size=4), 'too long'),
    ({'host': 1}, Dict[Str, Str], 'invalid item'),
    ({1: 'node1'}, Dict[Str, Str], 'invalid item'),
    (['host'], Dict[Str, Str], 'Invalid type'),
    ('../metrics.prom', Path(), 'parent directory'),
    ('/tmp/../etc/passwd', Path(), 'parent directory'),
    ('metrics.prom', Path(absolute=True), 'Absolute path'),
    ('/tmp/metrics.prom', Path(max_size=3), 'too long'),
    ('stderr', Storage, 'improper type'),
    (1, inspect.Parameter.empty, 'missing type'),
    ([1], List[int], 'unsupported generic'),
    (1, Union[int, str], 'unsupported union'),
])
def test_assure_type_invalid(value, expected_type, expected_exception_msg):
    with pytest.raises(ValidationError, match=expected_exception_msg):
        assure_type(value, expected_type)
