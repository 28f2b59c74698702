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

"""
Localization strings for RoadDAN.
English language dictionary for user-facing messages.
"""

# Error messages
ERRORS = {
    'file_not_found': "File not found: {file_path}",
    'invalid_session': "Invalid session file: {reason}",
    'invalid_nmea': "No usable RMC sentences in NMEA file: {file_path}",
    'calibration_failed': "Calibration failed: {reason}",
    'store_failed': "Could not update the road store: {reason}",
    'session_id_required': "--session-id is required when --store is used",
}

# Warnings - results are unreliable
WARNINGS = {
    'no_gps': "No GPS data: forward direction cannot be learned and no road segments were produced",
    'low_confidence': "Low calibration confidence ({confidence:.0%}): orientation may be wrong",
}

# Cautions - results usable with care
CAUTIONS = {
    'no_magnetometer': "No magnetometer data: heading cross-checks are unavailable",
    'few_forward_updates': "Only {count} forward-learning samples (at least {minimum} recommended): drive with more acceleration or braking",
    'sample_rate': "Measured sample rate {rate:.1f} Hz differs from the expected {expected} Hz",
    'short_session': "Short session ({duration:.1f} s): estimates may not have converged",
    'no_segments': "GPS present but no road segment had a valid position",
}
