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
import os

from cgmon.metrics import METRICS_METADATA


METRICS_DOC_PATH = 'docs/metrics.rst'

INTRO = """
================================
Available metrics
================================

Metrics named after ``memory.stat`` keys (``cgroup_memory_stats_<key>``, e.g.
``cgroup_memory_stats_cache``) are reported as well, but without type and help.

"""


def generate_docs():
    header = ('Name', 'Type', 'Unit', 'Help')
    rows = [(str(metric), str(metadata.type), str(metadata.unit), metadata.help)
            for metric, metadata in METRICS_METADATA.items()]

    widths = [max(len(row[column]) for row in rows + [header]) for column in range(len(header))]
    border = ' '.join('=' * width for width in widths)

    def format_row(row):
        return ' '.join(cell.ljust(width) for cell, width in zip(row, widths)).rstrip()

    lines = [border, format_row(header), border]
    lines.extend(format_row(row) for row in rows)
    lines.append(border)
    return '\n'.join(lines) + '\n'


if __name__ == '__main__':
    os.makedirs(os.path.dirname(METRICS_DOC_PATH), exist_ok=True)
    with open(METRICS_DOC_PATH, 'w') as f:
        f.write(INTRO)
        f.write(generate_docs())
