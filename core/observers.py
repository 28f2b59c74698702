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
Cross-verification observer bank.

Computes lateral acceleration, yaw rate and heading three ways each
(accelerometer, gyroscope, magnetometer) from observer-filtered signals.
The results are diagnostic channels; nothing here feeds back into the
tracker or the frame.
"""
from dataclasses import dataclass

try:
    from .. import config
except ImportError:
    import config

from .structures import AXIS_Y, AXIS_Z, DEG_TO_RAD, RAD_TO_DEG


@dataclass(frozen=True)
class ObserverReadings:
    accel_y_measured: float
    accel_y_from_gyro: float
    accel_y_from_mag: float
    gyro_z_measured: float
    gyro_z_from_accel: float
    gyro_z_from_mag: float
    heading_measured: float    # degrees
    heading_from_accel: float  # degrees
    heading_from_gyro: float   # degrees


def update_observer_filters(state, linear_accel, gyro, observer_alpha):
    """
    EMA of linear acceleration and gyro for the observers.

    Here ``observer_alpha`` is the weight of the new sample.
    """
    state.filtered_linear_accel = (
        observer_alpha * linear_accel + (1 - observer_alpha) * state.filtered_linear_accel
    )
    state.filtered_gyro = observer_alpha * gyro + (1 - observer_alpha) * state.filtered_gyro


def mag_heading_rate(state, mag_heading_deg, observer_alpha, dt, first_sample):
    """
    Filter the compass heading and return its rate of change in rad/s.

    The rate is 0 on the first sample.
    """
    raw_heading = mag_heading_deg * DEG_TO_RAD
    state.filtered_mag_heading = (
        observer_alpha * raw_heading + (1 - observer_alpha) * state.filtered_mag_heading
    )
    rate = 0.0 if first_sample else (state.filtered_mag_heading - state.prev_filtered_mag_heading) / dt
    state.prev_filtered_mag_heading = state.filtered_mag_heading
    return rate


def observe(state, speed, heading_rate, dt):
    """
    Three-way estimates of lateral acceleration, yaw rate and heading.

    Args:
        state: TrackerState with observer filters already updated
        speed: GPS speed, m/s
        heading_rate: filtered magnetometer heading rate, rad/s
        dt: sample period, s

    Returns:
        ObserverReadings
    """
    min_speed = getattr(config, 'OBSERVER_MIN_SPEED', 1.0)

    lateral_measured = float(state.filtered_linear_accel[AXIS_Y])
    yaw_measured = float(state.filtered_gyro[AXIS_Z])

    # Centripetal relation a = v * omega, used in both directions
    yaw_from_accel = lateral_measured / speed if speed > min_speed else 0.0

    state.integrated_heading_accel += yaw_from_accel * dt
    state.integrated_heading_gyro += yaw_measured * dt

    return ObserverReadings(
        accel_y_measured=lateral_measured,
        accel_y_from_gyro=speed * yaw_measured,
        accel_y_from_mag=speed * heading_rate,
        gyro_z_measured=yaw_measured,
        gyro_z_from_accel=yaw_from_accel,
        gyro_z_from_mag=heading_rate,
        heading_measured=state.filtered_mag_heading * RAD_TO_DEG,
        heading_from_accel=state.integrated_heading_accel * RAD_TO_DEG,
        heading_from_gyro=state.integrated_heading_gyro * RAD_TO_DEG,
    )


def unwrap_heading(state, heading_deg, first_sample):
    """
    Continuous compass heading in degrees (no 360° jumps).

    Returns:
        float: unwrapped heading, degrees
    """
    if first_sample:
        state.mag_heading_unwrapped = heading_deg
    else:
        diff = heading_deg - state.prev_mag_heading
        if diff > 180:
            diff -= 360
        elif diff < -180:
            diff += 360
        state.mag_heading_unwrapped += diff
    state.prev_mag_heading = heading_deg
    return state.mag_heading_unwrapped
