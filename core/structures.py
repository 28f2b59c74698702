#!/usr/bin/env python3
# RoadDAN - Phone-sensor vehicle calibration and road roughness mapping
# Copyright (C) 2024 RoadDAN Contributors
#
# Shared data-structure definitions used across the calibration pipeline.
# Centralising these keeps the sensor layouts in one place and makes the data
# flow between parsers, core and storage easier to follow.

"""
Core data types used in the RoadDAN pipeline.

Sensor sample (``Vector3D``)
----------------------------
One 3-axis reading in the phone's native coordinate frame::

    accelerometer  x, y, z in m/s², gravity included
    gyroscope      x, y, z in rad/s
    magnetometer   x = compass heading in degrees (0-360), y/z = tilt

GPS fix (``GPSFix``)
--------------------
One ~1 Hz position/speed sample. ``lat == 0 and lng == 0`` means "no fix"
and such fixes are never geocoded.

Road segment (``RoadDANSegment``)
---------------------------------
One geotagged 1-second RoadDAN block produced by ``core.roughness``.

Inside the pipeline, sensor streams are handled as ``(N, 3)`` float arrays;
``as_vector_array`` converts any of the accepted input shapes.
"""
from dataclasses import dataclass
from typing import Optional

import numpy as np

try:
    from .. import config
except ImportError:
    import config

# Vector array column indices
AXIS_X = 0
AXIS_Y = 1
AXIS_Z = 2

# Unit conversion constants
MS_TO_S = 1000.0  # milliseconds to seconds conversion factor
RAD_TO_DEG = 180.0 / np.pi
DEG_TO_RAD = np.pi / 180.0


@dataclass(frozen=True)
class Vector3D:
    x: float
    y: float
    z: float
    timestamp: Optional[float] = None


@dataclass(frozen=True)
class GPSFix:
    mph: float
    kph: float
    mps: float
    lat: float
    lng: float
    timestamp: float

    @property
    def has_fix(self):
        return self.lat != 0 or self.lng != 0


@dataclass(frozen=True)
class RoadDANSegment:
    geohash8: str
    lat: float
    lng: float
    road_dan: float
    speed_mph: float
    timestamp: float

    def to_dict(self):
        """Serialise with the camelCase field names used by the road map."""
        return {
            'geohash8': self.geohash8,
            'lat': self.lat,
            'lng': self.lng,
            'roadDAN': self.road_dan,
            'speedMph': self.speed_mph,
            'timestamp': self.timestamp,
        }


def _sample_to_row(sample):
    if isinstance(sample, Vector3D):
        return (sample.x, sample.y, sample.z)
    if isinstance(sample, dict):
        return (sample.get('x', 0.0), sample.get('y', 0.0), sample.get('z', 0.0))
    return tuple(sample[:3])


def as_vector_array(samples):
    """
    Convert a sensor stream to an ``(N, 3)`` float array.

    Args:
        samples: sequence of Vector3D, dicts with x/y/z keys, 3-sequences,
                 or an array-like of shape (N, 3). None is treated as empty.

    Returns:
        np.ndarray of shape (N, 3)

    Raises:
        ValueError: if the data cannot be laid out as N rows of 3 values
    """
    if samples is None:
        return np.zeros((0, 3), dtype=float)
    if isinstance(samples, np.ndarray):
        arr = np.asarray(samples, dtype=float)
    else:
        if len(samples) == 0:
            return np.zeros((0, 3), dtype=float)
        arr = np.array([_sample_to_row(s) for s in samples], dtype=float)
    if arr.size == 0:
        return np.zeros((0, 3), dtype=float)
    if arr.ndim != 2 or arr.shape[1] != 3:
        raise ValueError(f"Sensor data must have shape (N, 3), got {arr.shape}")
    return arr


def extract_timestamps(samples):
    """Return sample timestamps as a float array, NaN where a sample has none."""
    if samples is None or isinstance(samples, np.ndarray):
        n = 0 if samples is None else len(samples)
        return np.full(n, np.nan)
    timestamps = np.full(len(samples), np.nan)
    for i, sample in enumerate(samples):
        if isinstance(sample, Vector3D):
            ts = sample.timestamp
        elif isinstance(sample, dict):
            ts = sample.get('timestamp')
        else:
            ts = None
        if ts is not None:
            timestamps[i] = float(ts)
    return timestamps


def gps_fix_from_mps(mps, lat=0.0, lng=0.0, timestamp=0.0):
    """Build a GPSFix from a speed in m/s, deriving mph and km/h."""
    return GPSFix(
        mph=mps * config.MPS_TO_MPH,
        kph=mps * config.MPS_TO_KPH,
        mps=mps,
        lat=lat,
        lng=lng,
        timestamp=timestamp,
    )


def as_gps_fixes(fixes):
    """
    Normalise GPS input to a list of GPSFix.

    Accepts GPSFix instances or dicts in the recorded-session layout
    (mph, kph, mps, lat, lng, timestamp). Missing speed units are derived
    from ``mps``.
    """
    if not fixes:
        return []
    result = []
    for fix in fixes:
        if isinstance(fix, GPSFix):
            result.append(fix)
            continue
        mps = float(fix.get('mps', 0.0) or 0.0)
        base = gps_fix_from_mps(
            mps,
            lat=float(fix.get('lat', 0.0) or 0.0),
            lng=float(fix.get('lng', 0.0) or 0.0),
            timestamp=float(fix.get('timestamp', 0.0) or 0.0),
        )
        mph = fix.get('mph')
        kph = fix.get('kph')
        if mph is not None or kph is not None:
            base = GPSFix(
                mph=float(mph) if mph is not None else base.mph,
                kph=float(kph) if kph is not None else base.kph,
                mps=mps,
                lat=base.lat,
                lng=base.lng,
                timestamp=base.timestamp,
            )
        result.append(base)
    return result

