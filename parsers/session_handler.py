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
Recorded session handler - loads the JSON written by the phone recorder.
"""
import json
import logging
import os
import sys
from dataclasses import dataclass, field
from typing import List, Optional

# Add parent directory to path for core import
PARENT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if PARENT_DIR not in sys.path:
    sys.path.insert(0, PARENT_DIR)

from core.structures import Vector3D, GPSFix, as_gps_fixes

logger = logging.getLogger('session_handler')


@dataclass
class Session:
    session_id: Optional[str]
    accel: List[Vector3D] = field(default_factory=list)
    gyro: List[Vector3D] = field(default_factory=list)
    mag: List[Vector3D] = field(default_factory=list)
    gps: List[GPSFix] = field(default_factory=list)
    start_time: Optional[float] = None
    end_time: Optional[float] = None


def _vectors(raw, key):
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValueError(f"'{key}' must be a list")
    vectors = []
    for i, sample in enumerate(raw):
        try:
            vectors.append(Vector3D(
                x=float(sample['x']),
                y=float(sample['y']),
                z=float(sample['z']),
                timestamp=float(sample['timestamp']) if sample.get('timestamp') is not None else None,
            ))
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(f"Malformed sample {i} in '{key}': {e}")
    return vectors


def load_session(file_path):
    """
    Loads a recorded session.

    Args:
        file_path: path to the session JSON (accelerometerData, gyroscopeData,
                   magnetometerData, gpsData, optional sessionId)

    Returns:
        Session

    Raises:
        ValueError: if the file is not valid JSON or lacks accelerometer data
    """
    try:
        with open(file_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(f"File {file_path} is not valid JSON: {e}")

    if not isinstance(data, dict):
        raise ValueError(f"File {file_path} does not contain a session object")
    if 'accelerometerData' not in data:
        raise ValueError(f"File {file_path} has no accelerometerData")

    gps_raw = data.get('gpsData') or []
    if not isinstance(gps_raw, list):
        raise ValueError("'gpsData' must be a list")
    try:
        gps = as_gps_fixes(gps_raw)
    except (AttributeError, TypeError, ValueError) as e:
        raise ValueError(f"Malformed gpsData: {e}")

    session = Session(
        session_id=data.get('sessionId'),
        accel=_vectors(data.get('accelerometerData'), 'accelerometerData'),
        gyro=_vectors(data.get('gyroscopeData'), 'gyroscopeData'),
        mag=_vectors(data.get('magnetometerData'), 'magnetometerData'),
        gps=gps,
        start_time=data.get('startTime'),
        end_time=data.get('endTime'),
    )

    logger.info(
        f"Loaded session {session.session_id}: {len(session.accel)} accel, "
        f"{len(session.gyro)} gyro, {len(session.mag)} mag, {len(session.gps)} GPS samples"
    )
    return session
