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

from setuptools import setup

install_requires = [
    'ruamel.yaml>=0.15',
    'colorlog>=3.1',
]

packages = ['cgmon']

setup(
    name='cgmon',
    version='0.1.0',
    author='Intel',
    description='Cgroup limits and utilization monitor',
    classifiers=[
        'Development Status :: 2 - Pre-Alpha',
        'Environment :: Console',
        'Intended Audience :: System Administrators',
        'Operating System :: POSIX :: Linux',
        'Programming Language :: Python :: 3',
        'Topic :: System :: Monitoring',
    ],
    install_requires=install_requires,
    extras_require={
        'test': ['pytest'],
    },
    packages=packages,
    python_requires=">=3.8",
    entry_points={
        'console_scripts': [
            'cgmon=cgmon.main:main',
        ],
    },
)
