#!/usr/bin/env python3
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

"""Input format parsers: recorded sessions, NMEA."""

from .nmea_handler import (
    convert_nmea_to_milliseconds,
    extract_gps_fixes,
    calculate_gps_frequency,
)
from .session_handler import Session, load_session

__all__ = [
    # NMEA functions
    'convert_nmea_to_milliseconds',
    'extract_gps_fixes',
    'calculate_gps_frequency',
    # Session functions
    'Session',
    'load_session',
]
