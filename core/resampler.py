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
GPS resampling module.

Brings the ~1 Hz GPS track up to the phone sensor rate and derives the
GPS acceleration used as ground truth by the orientation tracker.
"""
import logging
from dataclasses import dataclass

import numpy as np

try:
    from .. import config
except ImportError:
    import config

from .filters import recursive_smooth, exponential_moving_average
from .structures import MS_TO_S

logger = logging.getLogger(__name__)


@dataclass
class ResampledGPS:
    """GPS channels aligned to the sensor sample grid (all arrays of length N)."""
    speed: np.ndarray             # linearly interpolated speed, m/s
    speed_mph: np.ndarray
    lat: np.ndarray
    lng: np.ndarray
    timestamp: np.ndarray         # interpolated fix timestamp, ms
    speed_smoothed: np.ndarray    # recursive (α=0.5) 1 Hz smoothing, interpolated
    speed_filtered: np.ndarray    # orientation-alpha EMA at 1 Hz, interpolated
    speed_raw: np.ndarray         # stepped 1 Hz speed, no interpolation
    accel: np.ndarray             # clamped and smoothed GPS acceleration, m/s²
    delta_time: np.ndarray        # stepped time between consecutive fixes, s
    timestamp_seconds: np.ndarray  # stepped fix timestamp, s
    fix_valid: np.ndarray         # both blended fixes carry a position
    fix_count: int


def _source_positions(gps_length, target_length):
    """Fractional source index r = (i / N) * len for every target index i."""
    return np.arange(target_length, dtype=float) / target_length * gps_length


def interpolate_to_length(values, target_length):
    """
    Linearly interpolate a 1 Hz series onto ``target_length`` samples.

    For target index i, ``r = (i / N) * len(values)``; the result blends
    ``values[floor(r)]`` and ``values[min(floor(r) + 1, len - 1)]`` by
    ``r - floor(r)``. An empty series gives zeros.

    Args:
        values: source series
        target_length: number of output samples

    Returns:
        np.ndarray of length target_length
    """
    values = np.asarray(values, dtype=float)
    if target_length <= 0:
        return np.zeros(0)
    if len(values) == 0:
        return np.zeros(target_length)

    positions = _source_positions(len(values), target_length)
    # np.interp holds the last value beyond the final source index
    return np.interp(positions, np.arange(len(values), dtype=float), values)


def blended_fix_mask(has_fix, target_length):
    """
    True where both source fixes blended into a target sample carry a position.

    Interpolating between a real fix and a "no fix" (0, 0) gives a point that
    lies on neither, so such samples are treated as having no fix.
    """
    has_fix = np.asarray(has_fix, dtype=bool)
    if target_length <= 0:
        return np.zeros(0, dtype=bool)
    if len(has_fix) == 0:
        return np.zeros(target_length, dtype=bool)

    prev_index = np.floor(_source_positions(len(has_fix), target_length)).astype(int)
    prev_index = np.minimum(prev_index, len(has_fix) - 1)
    next_index = np.minimum(prev_index + 1, len(has_fix) - 1)
    return has_fix[prev_index] & has_fix[next_index]


def step_to_length(values, target_length):
    """Repeat each source value over its share of samples (zero-order hold)."""
    values = np.asarray(values, dtype=float)
    if target_length <= 0:
        return np.zeros(0)
    if len(values) == 0:
        return np.zeros(target_length)

    indices = np.floor(_source_positions(len(values), target_length)).astype(int)
    indices = np.minimum(indices, len(values) - 1)
    return values[indices]


def gps_acceleration(speed, sample_rate=None, window=None, accel_min=None, accel_max=None):
    """
    GPS acceleration from a sensor-rate speed track.

    Central difference over ±window samples where the window fits, backward
    difference at the edges, 0 at the first sample. The result is clamped to
    physical vehicle limits and smoothed recursively (α=0.5, starting from 0).

    Args:
        speed: smoothed speed at sensor rate, m/s
        sample_rate: sensor rate in Hz (default: config.SAMPLE_RATE_HZ)
        window: half-window in samples (default: config.GPS_ACCEL_WINDOW)
        accel_min: braking clamp, m/s² (default: config.GPS_ACCEL_MIN)
        accel_max: acceleration clamp, m/s² (default: config.GPS_ACCEL_MAX)

    Returns:
        np.ndarray of accelerations, m/s²
    """
    if sample_rate is None:
        sample_rate = getattr(config, 'SAMPLE_RATE_HZ', 60)
    if window is None:
        window = getattr(config, 'GPS_ACCEL_WINDOW', 30)
    if accel_min is None:
        accel_min = getattr(config, 'GPS_ACCEL_MIN', -10.8)
    if accel_max is None:
        accel_max = getattr(config, 'GPS_ACCEL_MAX', 4.9)

    speed = np.asarray(speed, dtype=float)
    n = len(speed)
    accel = np.zeros(n)
    if n < 2:
        return accel

    # Edge samples - simple backward difference
    accel[1:] = np.diff(speed) * sample_rate

    # Central difference where the full window fits
    if n > 2 * window:
        central_dt = (2 * window) / sample_rate
        accel[window:n - window] = (speed[2 * window:] - speed[:n - 2 * window]) / central_dt

    accel = np.clip(accel, accel_min, accel_max)
    return recursive_smooth(accel, weight=getattr(config, 'GPS_SPEED_SMOOTHING', 0.5), initial=0.0)


def detect_significant_accel(gps_accel, threshold=None):
    """Boolean mask of samples where |GPS acceleration| exceeds the threshold."""
    if threshold is None:
        threshold = getattr(config, 'SIGNIFICANT_ACCEL_THRESHOLD', 0.2)
    return np.abs(np.asarray(gps_accel, dtype=float)) > threshold


def resample_gps(gps_fixes, target_length, orientation_alpha=None, sample_rate=None):
    """
    Resample a GPS track to the sensor sample grid.

    Args:
        gps_fixes: list of GPSFix (~1 Hz)
        target_length: number of sensor samples N
        orientation_alpha: EMA coefficient (weight of the previous value) for
                           the 1 Hz filtered speed (default: config.DEFAULT_ORIENTATION_ALPHA)
        sample_rate: sensor rate in Hz (default: config.SAMPLE_RATE_HZ)

    Returns:
        ResampledGPS
    """
    if orientation_alpha is None:
        orientation_alpha = getattr(config, 'DEFAULT_ORIENTATION_ALPHA', 0.95)
    if sample_rate is None:
        sample_rate = getattr(config, 'SAMPLE_RATE_HZ', 60)

    n_fix = len(gps_fixes)
    mps = np.empty(n_fix, dtype=float)
    mph = np.empty(n_fix, dtype=float)
    lats = np.empty(n_fix, dtype=float)
    lngs = np.empty(n_fix, dtype=float)
    times_ms = np.empty(n_fix, dtype=float)
    has_fix = np.empty(n_fix, dtype=bool)
    for k, fix in enumerate(gps_fixes):
        mps[k] = fix.mps
        mph[k] = fix.mph
        lats[k] = fix.lat
        lngs[k] = fix.lng
        times_ms[k] = fix.timestamp
        has_fix[k] = fix.has_fix

    if n_fix == 0:
        logger.warning("No GPS fixes: GPS-derived channels degrade to zero")

    # 1 Hz smoothing before interpolation
    smoothed_mps = recursive_smooth(mps, weight=getattr(config, 'GPS_SPEED_SMOOTHING', 0.5))
    filtered_mps = exponential_moving_average(mps, 1.0 - orientation_alpha)

    delta_time = np.zeros(n_fix)
    if n_fix > 1:
        delta_time[1:] = np.diff(times_ms) / MS_TO_S

    speed_smoothed = interpolate_to_length(smoothed_mps, target_length)

    return ResampledGPS(
        speed=interpolate_to_length(mps, target_length),
        speed_mph=interpolate_to_length(mph, target_length),
        lat=interpolate_to_length(lats, target_length),
        lng=interpolate_to_length(lngs, target_length),
        timestamp=interpolate_to_length(times_ms, target_length),
        speed_smoothed=speed_smoothed,
        speed_filtered=interpolate_to_length(filtered_mps, target_length),
        speed_raw=step_to_length(mps, target_length),
        accel=gps_acceleration(speed_smoothed, sample_rate=sample_rate),
        delta_time=step_to_length(delta_time, target_length),
        timestamp_seconds=step_to_length(times_ms / MS_TO_S, target_length),
        fix_valid=blended_fix_mask(has_fix, target_length),
        fix_count=n_fix,
    )
