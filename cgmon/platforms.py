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
import logging
from importlib import metadata
from typing import Set

log = logging.getLogger(__name__)

# 0-based logical processor number (matches the value of "processor" in /proc/cpuinfo)
CpuId = int

# Highest logical processor number accepted in cpuset lists (signed 32 bit int).
MAX_CPU_ID = 2 ** 31 - 1
# Upper bound of CONFIG_NR_CPUS, no cpuset can hold more processors.
MAX_CPUS = 8192

_version = None


def get_cgmon_version():
    """Returns information about cgmon version."""
    global _version
    if _version is None:
        try:
            _version = metadata.version('cgmon')
        except metadata.PackageNotFoundError:
            log.warning("Version is not available. "
                        "Probably package metadata does not exist "
                        "(cgmon is not installed).")
            _version = "unknown_version"

    return _version


class ListFormatError(ValueError):
    """Improper "List Format" value."""
    pass


def _decode_listformat_item(item: str, max_value: int) -> int:
    item = item.strip()
    if not (item.isascii() and item.isdigit()):
        raise ListFormatError('%r is not a non-negative integer' % item)
    value = int(item)
    if value > max_value:
        raise ListFormatError('%i is out of range [0, %i]' % (value, max_value))
    return value


def decode_listformat(value: str, max_value: int = MAX_CPU_ID,
                      max_cpus: int = MAX_CPUS) -> Set[int]:
    """Parse "List Format" as describe by man cpuset(7) e.g. "0-1,3".

    Every number has to be in range [0, max_value] and ranges must be
    ascending and the whole list may name at most max_cpus processors,
    otherwise ListFormatError (ValueError) is raised.
    Empty value (e.g. cgroup without any cpus assigned) decodes to empty set.
    """
    cores = set()

    value = value.strip()
    if not value:
        return set()

    for r in value.split(','):
        boundaries = r.split('-')

        if len(boundaries) == 1:
            cores.add(_decode_listformat_item(boundaries[0], max_value))
        elif len(boundaries) == 2:
            start = _decode_listformat_item(boundaries[0], max_value)
            end = _decode_listformat_item(boundaries[1], max_value)
            if start > end:
                raise ListFormatError('improper range %r: %i > %i' % (r, start, end))
            if end - start + 1 > max_cpus - len(cores):
                raise ListFormatError('range %r exceeds %i cpus' % (r, max_cpus))
            cores.update(range(start, end + 1))
        else:
            raise ListFormatError('improper range %r' % r)

    return cores


def encode_listformat(ints: Set[int]) -> str:
    """ Encode as "List Format" man cpuset(7) list of ints as comma separated list of cpus.
    Assumptions:
    - returned list is sorted and always comma separated.
    """
    assert all(isinstance(i, int) for i in ints), 'simple type check'
    return ','.join(map(str, sorted(ints)))
