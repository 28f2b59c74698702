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
Road roughness module.

DAN (Delta Acceleration Noise) and DON (Delta Orientation Noise) are the
exponentially decayed RMS of the raw sensor deviation from its low-passed
baseline. RoadDAN/RoadDON average them over 1-second blocks; each block
boundary with a GPS position becomes a geohash-tagged RoadDANSegment.
"""
import logging

import numpy as np
import pygeohash

try:
    from .. import config
except ImportError:
    import config

from .filters import recursive_smooth
from .structures import RoadDANSegment

logger = logging.getLogger(__name__)


def deviation_magnitude(raw, filtered):
    """Per-sample Euclidean norm of ``raw - filtered`` for (N, 3) arrays."""
    raw = np.asarray(raw, dtype=float)
    filtered = np.asarray(filtered, dtype=float)
    if len(raw) == 0:
        return np.zeros(0)
    return np.linalg.norm(raw - filtered, axis=1)


def decayed_rms(deviation, decay):
    """
    Exponentially decayed root mean square.

    ``ms[i] = decay * ms[i-1] + (1 - decay) * dev[i]**2``, ``ms[0] = dev[0]**2``

    Args:
        deviation: per-sample deviation magnitudes
        decay: weight of the previous mean square (0-1)

    Returns:
        np.ndarray of sqrt(ms)
    """
    deviation = np.asarray(deviation, dtype=float)
    if len(deviation) == 0:
        return np.zeros(0)
    mean_square = recursive_smooth(deviation ** 2, weight=1.0 - decay)
    return np.sqrt(mean_square)


def block_averages(values, block_size=None):
    """
    Average ``values`` over consecutive blocks and hold each average.

    A block closes on every sample where ``(i + 1) % block_size == 0``; the
    block's mean is held from that sample until the next boundary. Samples
    before the first boundary hold ``values[0]``.

    Args:
        values: per-sample series (DAN or DON)
        block_size: samples per block (default: config.ROAD_SEGMENT_SAMPLES)

    Returns:
        tuple: (held series, boundary indices, block averages)
    """
    if block_size is None:
        block_size = getattr(config, 'ROAD_SEGMENT_SAMPLES', 60)

    values = np.asarray(values, dtype=float)
    n = len(values)
    if n == 0:
        return np.zeros(0), np.zeros(0, dtype=int), np.zeros(0)

    n_blocks = n // block_size
    averages = values[:n_blocks * block_size].reshape(n_blocks, block_size).mean(axis=1)
    boundaries = np.arange(1, n_blocks + 1) * block_size - 1

    held = np.full(n, values[0])
    for boundary, average in zip(boundaries, averages):
        held[boundary:] = average

    return held, boundaries, averages


def geocode_segments(boundaries, averages, gps, precision=None):
    """
    Turn RoadDAN block averages into geotagged road segments.

    A boundary is geotagged only where the resampled GPS has a valid fix
    (``fix_valid`` and ``lat != 0 or lng != 0``); other blocks are skipped.

    Args:
        boundaries: sample indices of the block boundaries
        averages: RoadDAN value of each block
        gps: ResampledGPS aligned to the sensor samples
        precision: geohash length (default: config.GEOHASH_PRECISION)

    Returns:
        list of RoadDANSegment
    """
    if precision is None:
        precision = getattr(config, 'GEOHASH_PRECISION', 8)

    segments = []
    for boundary, average in zip(boundaries, averages):
        lat = float(gps.lat[boundary])
        lng = float(gps.lng[boundary])
        if not gps.fix_valid[boundary] or (lat == 0 and lng == 0):
            continue

        segment = RoadDANSegment(
            geohash8=pygeohash.encode(lat, lng, precision=precision),
            lat=lat,
            lng=lng,
            road_dan=float(average),
            speed_mph=float(gps.speed_mph[boundary]),
            timestamp=float(gps.timestamp[boundary]),
        )
        logger.debug(
            f"RoadDAN segment {segment.geohash8}: DAN={segment.road_dan:.3f}, "
            f"speed={segment.speed_mph:.1f} mph"
        )
        segments.append(segment)

    return segments
