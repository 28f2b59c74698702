# RoadDAN - Phone-sensor vehicle calibration and road roughness mapping
# Copyright (C) 2024 RoadDAN Contributors
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with this program. If not, see <https://www.gnu.org/licenses/>.

from setuptools import setup, find_packages

setup(
    name='roaddan',
    version='1.0.0',
    description='Phone-sensor vehicle calibration and road roughness mapping',
    author='RoadDAN Contributors',
    license='AGPL-3.0',
    packages=find_packages(exclude=['test', 'test.*']),
    py_modules=['config', 'roaddan_calibrate'],
    install_requires=[
        'numpy',
        'scipy',
        'pynmea2',
        'pygeohash',
    ],
    extras_require={
        'test': ['pytest'],
    },
    entry_points={
        'console_scripts': ['roaddan-calibrate=roaddan_calibrate:main'],
    },
    python_requires='>=3.8',
)
