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
NMEA file handler - GPS track extraction from NMEA logs.
"""
import pynmea2
import logging
import os
import sys
from datetime import datetime

import numpy as np

# Add parent directory to path for config import
PARENT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if PARENT_DIR not in sys.path:
    sys.path.insert(0, PARENT_DIR)

import config
from core.structures import GPSFix

logger = logging.getLogger('nmea_handler')


def convert_nmea_to_milliseconds(msg, date=None):
    """
    Returns message time in milliseconds from epoch.

    ``date`` is used when the sentence carries no date of its own (void RMC).
    """
    try:
        if getattr(msg, 'timestamp', None) is None:
            return None
        msg_date = getattr(msg, 'datestamp', None) or date or datetime.now().date()
        dt = datetime.combine(msg_date, msg.timestamp)
        return int(dt.timestamp() * 1000)
    except (ValueError, AttributeError, TypeError) as e:
        logger.error(f"Error converting NMEA time: {e}")
    return None


def _rmc_to_fix(msg, timestamp_ms):
    knots_to_mps = getattr(config, 'KNOTS_TO_MPS', 0.514444)

    knots = msg.spd_over_grnd if msg.spd_over_grnd not in (None, '') else 0.0
    mps = float(knots) * knots_to_mps

    # Void status means the receiver has no position
    if msg.status == 'A':
        lat, lng = msg.latitude, msg.longitude
    else:
        lat, lng = 0.0, 0.0

    return GPSFix(
        mph=mps * config.MPS_TO_MPH,
        kph=mps * config.MPS_TO_KPH,
        mps=mps,
        lat=lat,
        lng=lng,
        timestamp=float(timestamp_ms),
    )


def extract_gps_fixes(file_path):
    """
    Extracts the GPS track from the RMC sentences of an NMEA file.

    Args:
        file_path: path to NMEA file

    Returns:
        list of GPSFix in file order

    Raises:
        ValueError: if the file holds no usable RMC sentence
    """
    fixes = []
    current_date = None

    with open(file_path, 'r') as f:
        lines = f.readlines()

    for line in lines:
        orig_line = line.strip()
        if not orig_line.startswith('$'):
            continue
        try:
            msg = pynmea2.parse(orig_line)
        except pynmea2.ParseError as e:
            logger.debug(f"NMEA line parse error: {orig_line} - {str(e)}")
            continue

        if msg.sentence_type != 'RMC':
            continue

        if getattr(msg, 'datestamp', None):
            current_date = msg.datestamp

        timestamp_ms = convert_nmea_to_milliseconds(msg, current_date)
        if timestamp_ms is None:
            logger.debug(f"Skipped RMC without time: {orig_line}")
            continue

        try:
            fixes.append(_rmc_to_fix(msg, timestamp_ms))
        except (ValueError, TypeError) as e:
            logger.debug(f"Skipped malformed RMC: {orig_line} - {str(e)}")

    if not fixes:
        raise ValueError(f"No RMC message found in file {file_path}")

    logger.info(f"Extracted {len(fixes)} GPS fixes from {file_path}")
    return fixes


def calculate_gps_frequency(fixes):
    """
    GPS update rate in Hz from the median interval between fix timestamps.

    Returns 0 with fewer than two fixes or no positive interval.
    """
    if len(fixes) < 2:
        return 0

    timestamps = np.array([fix.timestamp for fix in fixes], dtype=float)
    intervals = np.diff(timestamps)
    intervals = intervals[intervals > 0]
    if len(intervals) == 0:
        return 0

    return round(1000 / float(np.median(intervals)), 2)
