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
Discovery of cgroup controllers mount points based on process own mount table.

Every record of /proc/self/mounts (see man fstab(5)) is composed of six fields:

    fs_spec  fs_file  fs_vfstype  fs_mntops  fs_freq  fs_passno

e.g. under Docker:

    cgroup /sys/fs/cgroup/cpuset cgroup ro,nosuid,nodev,noexec,relatime,cpuset 0 0

or under LXC:

    cgroup /sys/fs/cgroup/cpuset/lxc/container1 cgroup rw,nosuid,nodev,noexec,relatime,cpuset 0 0

fs_file tells where to find values of the cgroup, fs_mntops carries
the names of controllers.
"""
import logging
from typing import Dict, Optional

from dataclasses import dataclass

from cgmon.files import read_bounded_lines, LineTooLongError

log = logging.getLogger(__name__)

MOUNTS_PATH = '/proc/self/mounts'
MOUNT_RECORD_FIELDS = 6
CGROUP_FS_SPEC = 'cgroup'


@dataclass(frozen=True)
class ControllerMount:
    controller_name: str
    mount_path: str


class MountResolver:
    """Maps controller names to mount paths.

    Every controller is looked up at most once, later calls return the cached
    result (including "not found").
    """

    def __init__(self, mounts_path: str = MOUNTS_PATH):
        self.mounts_path = mounts_path
        self._mounts: Dict[str, Optional[ControllerMount]] = {}

    def resolve(self, controller: str) -> Optional[str]:
        """Returns mount path of given controller or None if not found."""
        mount = self.resolve_mount(controller)
        if mount is None:
            return None
        return mount.mount_path

    def resolve_mount(self, controller: str) -> Optional[ControllerMount]:
        if controller not in self._mounts:
            self._mounts[controller] = self._find_mount(controller)
        return self._mounts[controller]

    def _find_mount(self, controller: str) -> Optional[ControllerMount]:
        try:
            with open(self.mounts_path) as f:
                for line in read_bounded_lines(f):
                    fields = line.split()

                    # Any malformed record invalidates the whole mount table.
                    if len(fields) != MOUNT_RECORD_FIELDS:
                        log.debug('Improper record in %r (got %i fields): %r - '
                                  'cannot look for %r controller.',
                                  self.mounts_path, len(fields), line, controller)
                        return None

                    fs_spec, fs_file, _, fs_mntops, _, _ = fields
                    if fs_spec == CGROUP_FS_SPEC and controller in fs_mntops:
                        if not fs_file or fs_file == '/':
                            log.debug('Process is not running under %r cgroup.', controller)
                            return None
                        log.debug('Found %r cgroup at %r.', controller, fs_file)
                        return ControllerMount(controller, fs_file)

        except LineTooLongError as e:
            log.debug('Cannot parse %r: %s', self.mounts_path, e)
            return None
        except OSError as e:
            log.debug('Cannot read %r: %s', self.mounts_path, e)
            return None

        log.debug('Cgroup %r not found in %r.', controller, self.mounts_path)
        return None
