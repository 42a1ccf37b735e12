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
Main entry point.

Responsible for configuration and prepare components
and start main loop from Runner.
"""
import argparse
import logging

import os
import stat

from cgmon import components
from cgmon import config
from cgmon import logger
from cgmon import platforms
from cgmon.config import assure_type
from cgmon.runner import Runner

log = logging.getLogger('cgmon.main')


def valid_config_file(config):
    if not os.path.isabs(config):
        log.error(
            'Error: The config path is not valid. The path must be absolute.')
        exit(1)

    file_owner_uid = os.stat(config).st_uid
    user_uid = os.getuid()
    if user_uid != file_owner_uid and user_uid != 0:
        log.error(
            'Error: The config is not valid. User is not owner of the config or is not root.')
        exit(1)

    mode = stat.S_IMODE(os.stat(config).st_mode)
    other_write_mode = mode & 0b10  # Check if other class write mode flag is set.

    if other_write_mode:
        log.error(
            'Error: The config is not valid. It does not have correct ACLs. '
            'Only owner should be able to write (Hint: try chmod og-rwto fix the problem).'
        )
        exit(1)


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument(
        '-c', '--config',
        help="Configuration", default=None, required=True)
    parser.add_argument(
        '-l',
        '--log-level',
        help='Log level for modules (by default for cgmon) in [module:]level form,'
             'where level can be one of: CRITICAL,ERROR,WARNING,INFO,DEBUG,TRACE'
             'Example -l debug -l example:debug. Defaults to cgmon:INFO.'
             'Can be overridden at runtime with config.yaml "loggers" section.',
        default=[],
        action='append',
        dest='levels',
    )
    parser.add_argument(
        '-r', '--register', action='append', dest='components',
        help="Register additional components in config", default=[])
    parser.add_argument(
        '-v', '--version', action='version', version=platforms.get_cgmon_version(),
        help="Show version")

    args = parser.parse_args()

    # Initialize logging subsystem from command line options.
    try:
        log_levels = logger.parse_loggers_from_list(args.levels)
        log_levels_copy_with_default = dict(**log_levels)
        log_levels_copy_with_default.setdefault(logger.DEFAULT_MODULE, 'info')
        logger.configure_loggers_from_dict(log_levels_copy_with_default)
    except logger.LoggersConfigurationError as e:
        log.error('Error: Improper log level! : %s', e)
        exit(1)

    log.debug('started PID=%r', os.getpid())
    log.info('Version cgmon: %s', platforms.get_cgmon_version())

    # Register internal & external components.
    components.register_components(extra_components=args.components)

    valid_config_file(args.config)

    # Initialize all necessary objects.
    try:
        configuration = config.load_config(args.config)
    except config.ConfigLoadError as e:
        log.error('Error: Cannot load config file! : %s', e)
        if log.getEffectiveLevel() <= logging.DEBUG:
            log.exception('Detailed exception:')
        exit(1)

    assure_type(configuration, dict)

    for key in configuration:
        if key != 'loggers' and key != 'runner':
            log.error('Error: Unknown fields in configuration '
                      'file! Possible are: \'loggers\', '
                      '\'runner\'')
            exit(1)

    assert 'runner' in configuration, 'Improper config - missing runner instance!'

    # Configure loggers using configuration file.
    if 'loggers' in configuration:
        log_levels_config = configuration['loggers']
        if not isinstance(log_levels_config, dict):
            log.error('Loggers configuration error: log levels are mapping from logger name to'
                      'log level!')
            exit(1)
        # Merge config from cmd line and config file.
        # Overwrite config file values with values provided from command line.
        log_levels = dict(log_levels_config, **log_levels)
        try:
            logger.configure_loggers_from_dict(log_levels)
        except logger.LoggersConfigurationError as e:
            log.error('Loggers configuration error: %s', e)
            exit(1)

    # Extract main loop component.
    runner = configuration['runner']
    assure_type(runner, Runner)

    # Prepare and run the "main loop".
    exit_code = runner.run()
    exit(exit_code)


if __name__ == '__main__':
    main()
