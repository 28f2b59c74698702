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
Main RoadDAN calibration engine.
Contains the calibrate function that turns one recorded phone session into
vehicle-frame acceleration, diagnostics and geotagged road roughness.
"""
import numpy as np
import logging
from dataclasses import dataclass, field
from typing import List

try:
    from .. import config
except ImportError:
    import config

from .filters import validate_param
from .resampler import resample_gps, detect_significant_accel
from .tracker import (
    TrackerState,
    filter_raw_signals,
    update_gravity,
    linear_acceleration,
    learn_forward,
    forward_change,
    orthogonalize_forward,
    confidence,
)
from .frame import build_vehicle_frame, to_vehicle_frame, smooth_transformed
from .observers import update_observer_filters, mag_heading_rate, observe, unwrap_heading
from .roughness import deviation_magnitude, decayed_rms, block_averages, geocode_segments
from .structures import (
    AXIS_X,
    AXIS_Z,
    MS_TO_S,
    RoadDANSegment,
    as_vector_array,
    as_gps_fixes,
    extract_timestamps,
)

logger = logging.getLogger(__name__)


def _vectors():
    return np.zeros((0, 3))


def _scalars():
    return np.zeros(0)


def _flags():
    return np.zeros(0, dtype=bool)


@dataclass
class CalibrationResult:
    """
    Per-sample output of ``calibrate``; every array has one entry per
    accelerometer sample. Vector channels are (N, 3) arrays.
    """
    # Vehicle frame
    transformed: np.ndarray = field(default_factory=_vectors)           # (x', y', z')
    transformed_filtered: np.ndarray = field(default_factory=_vectors)  # display EMA
    gravity_history: np.ndarray = field(default_factory=_vectors)
    forward_history: np.ndarray = field(default_factory=_vectors)
    forward_change_rate: np.ndarray = field(default_factory=_scalars)
    forward_update_count: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=int))
    confidence: np.ndarray = field(default_factory=_scalars)

    # Detectors
    gps_accel_detected: np.ndarray = field(default_factory=_flags)
    gravity_updating: np.ndarray = field(default_factory=_flags)
    turning_detected: np.ndarray = field(default_factory=_flags)
    phone_stable: np.ndarray = field(default_factory=_flags)
    vehicle_stationary: np.ndarray = field(default_factory=_flags)
    vehicle_moving: np.ndarray = field(default_factory=_flags)

    # GPS derived
    virtual_forward_accel: np.ndarray = field(default_factory=_scalars)
    virtual_lateral_accel: np.ndarray = field(default_factory=_scalars)
    raw_gps_accel: np.ndarray = field(default_factory=_scalars)
    gps_speed: np.ndarray = field(default_factory=_scalars)
    gps_speed_raw: np.ndarray = field(default_factory=_scalars)
    gps_speed_smoothed: np.ndarray = field(default_factory=_scalars)
    gps_speed_filtered: np.ndarray = field(default_factory=_scalars)
    gps_delta_time: np.ndarray = field(default_factory=_scalars)
    gps_timestamp: np.ndarray = field(default_factory=_scalars)
    mag_heading: np.ndarray = field(default_factory=_scalars)  # unwrapped, degrees

    # Filtered signals
    accel_filtered: np.ndarray = field(default_factory=_vectors)
    gyro_filtered: np.ndarray = field(default_factory=_vectors)
    accel_linear_measured: np.ndarray = field(default_factory=_vectors)  # observer-filtered

    # Observer bank
    accel_y_measured: np.ndarray = field(default_factory=_scalars)
    accel_y_from_gyro: np.ndarray = field(default_factory=_scalars)
    accel_y_from_mag: np.ndarray = field(default_factory=_scalars)
    gyro_z_measured: np.ndarray = field(default_factory=_scalars)
    gyro_z_from_accel: np.ndarray = field(default_factory=_scalars)
    gyro_z_from_mag: np.ndarray = field(default_factory=_scalars)
    heading_measured: np.ndarray = field(default_factory=_scalars)
    heading_from_accel: np.ndarray = field(default_factory=_scalars)
    heading_from_gyro: np.ndarray = field(default_factory=_scalars)

    # Roughness
    dan_x: np.ndarray = field(default_factory=_scalars)
    road_dan: np.ndarray = field(default_factory=_scalars)
    don_x: np.ndarray = field(default_factory=_scalars)
    road_don: np.ndarray = field(default_factory=_scalars)
    road_dan_segments: List[RoadDANSegment] = field(default_factory=list)

    # Session metadata
    actual_sample_rate: float = 60.0
    timestamps: np.ndarray = field(default_factory=_scalars)
    gps_fix_count: int = 0
    has_magnetometer: bool = False

    @property
    def sample_count(self):
        return len(self.transformed)

    @property
    def final_gravity(self):
        if self.sample_count == 0:
            return np.zeros(3)
        return self.gravity_history[-1]

    @property
    def final_forward(self):
        if self.sample_count == 0:
            return np.zeros(3)
        return self.forward_history[-1]


def _validate_inputs(accel, gyro, mag):
    n = len(accel)
    if len(gyro) != n:
        raise ValueError(
            f"Gyroscope length {len(gyro)} does not match accelerometer length {n}"
        )
    if len(mag) not in (0, n):
        raise ValueError(
            f"Magnetometer length {len(mag)} must be 0 or match accelerometer length {n}"
        )
    if not np.all(np.isfinite(accel)):
        raise ValueError("Accelerometer data contains non-finite values")
    if not np.all(np.isfinite(gyro)):
        raise ValueError("Gyroscope data contains non-finite values")


def measure_sample_rate(timestamps, default=None):
    """
    Sample rate in Hz from first and last timestamps (ms).

    Falls back to ``default`` (config.SAMPLE_RATE_HZ) when timestamps are
    missing or do not span a positive time.
    """
    if default is None:
        default = float(getattr(config, 'SAMPLE_RATE_HZ', 60))
    timestamps = np.asarray(timestamps, dtype=float)
    if len(timestamps) < 2:
        return default
    first, last = timestamps[0], timestamps[-1]
    if not (np.isfinite(first) and np.isfinite(last)):
        return default
    total_seconds = (last - first) / MS_TO_S
    if total_seconds <= 0:
        return default
    return (len(timestamps) - 1) / total_seconds


def calibrate(accel, gyro, mag=None, gps=None, alpha=None, observer_alpha=None,
              filter_alpha=None, orientation_alpha=None, dan_decay=None):
    """
    Calibrate a phone session to the vehicle frame and measure road roughness.

    Gravity is learned while GPS shows no significant acceleration; the
    vehicle's forward direction is learned while it does. Linear
    acceleration is then projected onto the (forward, lateral, down) frame.

    Args:
        accel: accelerometer samples (m/s², gravity included), length N
        gyro: gyroscope samples (rad/s), length N
        mag: magnetometer samples (x = compass heading in degrees), length N or empty
        gps: GPS fixes (~1 Hz), may be empty
        alpha: gravity / forward EMA coefficient (default: config.DEFAULT_ALPHA)
        observer_alpha: observer filter weight of the new sample
                        (default: config.DEFAULT_OBSERVER_ALPHA)
        filter_alpha: gyro low-pass coefficient (default: config.DEFAULT_FILTER_ALPHA)
        orientation_alpha: GPS speed EMA coefficient (default: config.DEFAULT_ORIENTATION_ALPHA)
        dan_decay: DAN mean-square decay (default: config.DEFAULT_DAN_DECAY)

    Returns:
        CalibrationResult

    Raises:
        ValueError: on mismatched lengths, malformed vectors, non-finite
                    sensor values or tuning parameters outside (0, 1)
    """
    alpha = validate_param('alpha', alpha, getattr(config, 'DEFAULT_ALPHA', 0.95))
    observer_alpha = validate_param(
        'observer_alpha', observer_alpha, getattr(config, 'DEFAULT_OBSERVER_ALPHA', 0.05))
    filter_alpha = validate_param(
        'filter_alpha', filter_alpha, getattr(config, 'DEFAULT_FILTER_ALPHA', 0.05))
    orientation_alpha = validate_param(
        'orientation_alpha', orientation_alpha, getattr(config, 'DEFAULT_ORIENTATION_ALPHA', 0.95))
    dan_decay = validate_param('dan_decay', dan_decay, getattr(config, 'DEFAULT_DAN_DECAY', 0.95))

    timestamps = extract_timestamps(accel)
    accel = as_vector_array(accel)
    gyro = as_vector_array(gyro)
    mag = as_vector_array(mag)
    gps_fixes = as_gps_fixes(gps)
    _validate_inputs(accel, gyro, mag)

    n = len(accel)
    if n == 0:
        logger.warning("Empty accelerometer data, nothing to calibrate")
        return CalibrationResult(gps_fix_count=len(gps_fixes), has_magnetometer=len(mag) > 0)

    has_mag = len(mag) > 0
    if not has_mag:
        logger.warning("No magnetometer data: magnetometer channels degrade to zero")

    # Cache frequently-used config values
    sample_rate = getattr(config, 'SAMPLE_RATE_HZ', 60)
    dt = 1.0 / sample_rate
    standard_gravity = getattr(config, 'STANDARD_GRAVITY', 9.8)
    stable_tolerance = getattr(config, 'PHONE_STABLE_ACCEL_TOLERANCE', 1.5)
    stable_gyro_max = getattr(config, 'PHONE_STABLE_GYRO_MAX', 0.3)
    stationary_threshold = getattr(config, 'STATIONARY_ACCEL_THRESHOLD', 0.1)
    moving_threshold = getattr(config, 'MOVING_SPEED_THRESHOLD', 1.0)
    turning_threshold = getattr(config, 'TURNING_RATE_THRESHOLD', 0.1)

    resampled = resample_gps(gps_fixes, n, orientation_alpha=orientation_alpha,
                             sample_rate=sample_rate)
    gps_accel = resampled.accel
    significant = detect_significant_accel(gps_accel)

    # Preallocate arrays for performance
    transformed = np.zeros((n, 3))
    transformed_filtered = np.zeros((n, 3))
    gravity_history = np.zeros((n, 3))
    forward_history = np.zeros((n, 3))
    accel_filtered = np.zeros((n, 3))
    gyro_filtered = np.zeros((n, 3))
    accel_linear = np.zeros((n, 3))
    forward_change_rate = np.zeros(n)
    forward_update_count = np.zeros(n, dtype=int)
    confidence_values = np.zeros(n)
    gravity_updating = np.zeros(n, dtype=bool)
    phone_stable = np.zeros(n, dtype=bool)
    virtual_lateral = np.zeros(n)
    mag_heading = np.zeros(n)
    accel_y_measured = np.zeros(n)
    accel_y_from_gyro = np.zeros(n)
    accel_y_from_mag = np.zeros(n)
    gyro_z_measured = np.zeros(n)
    gyro_z_from_accel = np.zeros(n)
    gyro_z_from_mag = np.zeros(n)
    heading_measured = np.zeros(n)
    heading_from_accel = np.zeros(n)
    heading_from_gyro = np.zeros(n)

    state = TrackerState()

    for i in range(n):
        first_sample = i == 0
        accel_i = accel[i]
        gyro_i = gyro[i]
        heading_deg = mag[i, AXIS_X] if has_mag else 0.0
        speed = resampled.speed[i]

        filter_raw_signals(state, accel_i, gyro_i, alpha, filter_alpha)
        gravity_updating[i] = update_gravity(state, alpha, significant[i])
        linear = linear_acceleration(state, accel_i)

        # Observer bank
        update_observer_filters(state, linear, gyro_i, observer_alpha)
        virtual_lateral[i] = speed * gyro_i[AXIS_Z]
        heading_rate = mag_heading_rate(state, heading_deg, observer_alpha, dt, first_sample)
        readings = observe(state, speed, heading_rate, dt)
        accel_y_measured[i] = readings.accel_y_measured
        accel_y_from_gyro[i] = readings.accel_y_from_gyro
        accel_y_from_mag[i] = readings.accel_y_from_mag
        gyro_z_measured[i] = readings.gyro_z_measured
        gyro_z_from_accel[i] = readings.gyro_z_from_accel
        gyro_z_from_mag[i] = readings.gyro_z_from_mag
        heading_measured[i] = readings.heading_measured
        heading_from_accel[i] = readings.heading_from_accel
        heading_from_gyro[i] = readings.heading_from_gyro
        mag_heading[i] = unwrap_heading(state, heading_deg, first_sample)

        phone_stable[i] = (
            abs(np.linalg.norm(accel_i) - standard_gravity) < stable_tolerance
            and np.linalg.norm(state.gyro_filtered) < stable_gyro_max
        )

        # Forward learning and orthogonalisation
        learn_forward(state, linear, gps_accel[i], alpha, significant[i])
        forward_change_rate[i] = forward_change(state)
        orthogonalize_forward(state)
        confidence_values[i] = confidence(state)

        # Vehicle frame
        basis = build_vehicle_frame(state.gravity, state.forward)
        transformed[i] = to_vehicle_frame(linear, basis)
        transformed_filtered[i] = smooth_transformed(state, transformed[i], alpha, first_sample)

        gravity_history[i] = state.gravity
        forward_history[i] = state.forward
        forward_update_count[i] = state.total_forward_updates
        accel_filtered[i] = state.accel_filtered
        gyro_filtered[i] = state.gyro_filtered
        accel_linear[i] = state.filtered_linear_accel

    # Roughness
    dan_x = decayed_rms(deviation_magnitude(accel, accel_filtered), dan_decay)
    don_x = decayed_rms(deviation_magnitude(gyro, gyro_filtered), getattr(config, 'DON_DECAY', 0.95))
    road_dan, boundaries, dan_averages = block_averages(dan_x)
    road_don, _, _ = block_averages(don_x)
    segments = geocode_segments(boundaries, dan_averages, resampled)

    result = CalibrationResult(
        transformed=transformed,
        transformed_filtered=transformed_filtered,
        gravity_history=gravity_history,
        forward_history=forward_history,
        forward_change_rate=forward_change_rate,
        forward_update_count=forward_update_count,
        confidence=confidence_values,
        gps_accel_detected=significant,
        gravity_updating=gravity_updating,
        turning_detected=np.abs(gyro[:, AXIS_Z]) > turning_threshold,
        phone_stable=phone_stable,
        vehicle_stationary=np.abs(gps_accel) < stationary_threshold,
        vehicle_moving=resampled.speed > moving_threshold,
        virtual_forward_accel=gps_accel,
        virtual_lateral_accel=virtual_lateral,
        raw_gps_accel=gps_accel.copy(),
        gps_speed=resampled.speed,
        gps_speed_raw=resampled.speed_raw,
        gps_speed_smoothed=resampled.speed_smoothed,
        gps_speed_filtered=resampled.speed_filtered,
        gps_delta_time=resampled.delta_time,
        gps_timestamp=resampled.timestamp_seconds,
        mag_heading=mag_heading,
        accel_filtered=accel_filtered,
        gyro_filtered=gyro_filtered,
        accel_linear_measured=accel_linear,
        dan_x=dan_x,
        road_dan=road_dan,
        don_x=don_x,
        road_don=road_don,
        road_dan_segments=segments,
        actual_sample_rate=measure_sample_rate(timestamps),
        timestamps=timestamps,
        gps_fix_count=resampled.fix_count,
        has_magnetometer=has_mag,
        accel_y_measured=accel_y_measured,
        accel_y_from_gyro=accel_y_from_gyro,
        accel_y_from_mag=accel_y_from_mag,
        gyro_z_measured=gyro_z_measured,
        gyro_z_from_accel=gyro_z_from_accel,
        gyro_z_from_mag=gyro_z_from_mag,
        heading_measured=heading_measured,
        heading_from_accel=heading_from_accel,
        heading_from_gyro=heading_from_gyro,
    )

    logger.debug(
        f"Calibration summary: samples={n}, forward updates={state.total_forward_updates}, "
        f"gravity={np.linalg.norm(state.gravity):.2f} m/s², "
        f"forward={np.linalg.norm(state.forward):.3f}, segments={len(segments)}"
    )
    return result
