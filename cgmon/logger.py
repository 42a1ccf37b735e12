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
Logging setup: every configured package gets its own colored stdout handler.
Levels come from the ``loggers`` section of the configuration file and from
``-l [package:]level`` command line options (the latter take precedence).
"""
import functools
import logging
import sys
import time
from typing import Dict, List

import colorlog


TRACE = 9
DEFAULT_MODULE = 'cgmon'

_LOG_FORMAT = ('%(asctime)s %(log_color)s%(levelname)-8s%(reset)s'
               ' %(blue)s[%(name)s]%(reset)s %(message)s')
_LOG_COLORS = dict(colorlog.default_log_colors, TRACE='cyan')

log = logging.getLogger(__name__)


class LoggersConfigurationError(ValueError):
    pass


def parse_loggers_from_list(log_levels_list: List[str]) -> Dict[str, str]:
    """Turns ['debug', 'cgmon.cpuacct:trace'] into
    {'cgmon': 'debug', 'cgmon.cpuacct': 'trace'}."""
    loggers = {}
    for entry in log_levels_list:
        package, separator, level = entry.rpartition(':')
        if not separator:
            package = DEFAULT_MODULE
        elif not package or ':' in package:
            raise LoggersConfigurationError(
                'Logger level from command line must be given as [package:]level, got %r!'
                % entry)
        loggers[package] = level
    return loggers


def configure_loggers_from_dict(loggers: Dict[str, str]):
    for package_name, level in loggers.items():
        init_logging(level, package_name=package_name)


def _level_number(level: str) -> int:
    number = logging.getLevelName(level.upper())
    if not isinstance(number, int):
        raise LoggersConfigurationError('Unknown logging level %r!' % level)
    return number


def init_logging(level: str, package_name: str):
    logging.addLevelName(TRACE, 'TRACE')
    logging.captureWarnings(True)
    level_number = _level_number(level)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(colorlog.ColoredFormatter(fmt=_LOG_FORMAT, log_colors=_LOG_COLORS))

    # Reinitialization replaces previous handler of this package.
    package_logger = logging.getLogger(package_name)
    package_logger.handlers.clear()
    package_logger.addHandler(handler)
    package_logger.propagate = False
    package_logger.setLevel(level_number)

    log.debug('level of %r set to %s', package_name, logging.getLevelName(level_number))
    package_logger.log(TRACE, 'trace messages enabled')


def trace(log):
    """Logs (at TRACE level) arguments, result and duration of every call, e.g.:

        @trace(log)
        def read_limit(path): ...

        [TRACE] cgmon.cgroups: -> read_limit(args=('/sys/fs/cgroup/memory',), kw={})
        [TRACE] cgmon.cgroups: <- read_limit(...) = 1073741824 (time=0.00s)
    """
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kw):
            start = time.monotonic()
            log.log(TRACE, '-> %s(args=%r, kw=%r)', func.__name__, args, kw)
            result = func(*args, **kw)
            log.log(TRACE, '<- %s(...) = %r (time=%.2fs)',
                    func.__name__, result, time.monotonic() - start)
            return result
        return wrapper
    return decorator
