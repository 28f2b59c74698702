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
Adaptive gravity / orientation tracker.

The accelerometer stream carries two kinds of evidence that never coexist:
while the vehicle holds its speed it only sees gravity, while it speeds up
or brakes it also sees the vehicle's nose direction. The tracker switches
between two low-pass estimators on every sample using the GPS acceleration
gate (``significant``):

    not significant -> gravity learns, forward holds
    significant     -> gravity holds, forward learns

The caller derives the gate once per sample and passes the same value to
``update_gravity`` and ``learn_forward``.

All functions mutate the ``TrackerState`` they are given; a state lives for
one ``calibrate()`` call only.
"""
from dataclasses import dataclass, field

import numpy as np

try:
    from .. import config
except ImportError:
    import config


def _zero_vector():
    return np.zeros(3)


@dataclass
class TrackerState:
    """Loop-carried state of the calibration pipeline, one instance per session."""
    # Orientation estimates (phone frame)
    gravity: np.ndarray = field(default_factory=_zero_vector)
    forward: np.ndarray = field(default_factory=_zero_vector)
    prev_forward: np.ndarray = field(default_factory=_zero_vector)
    total_forward_updates: int = 0

    # Raw signal low-pass filters
    accel_filtered: np.ndarray = field(default_factory=_zero_vector)  # alpha, feeds gravity and DAN
    gyro_filtered: np.ndarray = field(default_factory=_zero_vector)   # filter_alpha, feeds DON

    # Observer filters (observer_alpha)
    filtered_linear_accel: np.ndarray = field(default_factory=_zero_vector)
    filtered_gyro: np.ndarray = field(default_factory=_zero_vector)
    filtered_mag_heading: float = 0.0       # radians
    prev_filtered_mag_heading: float = 0.0  # radians

    # Observer accumulators
    integrated_heading_accel: float = 0.0  # radians
    integrated_heading_gyro: float = 0.0   # radians
    mag_heading_unwrapped: float = 0.0     # degrees
    prev_mag_heading: float = 0.0          # degrees, raw

    # Display smoothing of the vehicle-frame signal
    transformed_filtered: np.ndarray = field(default_factory=_zero_vector)


def filter_raw_signals(state, accel, gyro, alpha, filter_alpha):
    """
    Low-pass the raw accelerometer and gyroscope samples.

    ``accel_filtered`` uses ``alpha`` and ``gyro_filtered`` uses
    ``filter_alpha``; in both cases the coefficient weights the previous value.
    """
    state.accel_filtered = alpha * state.accel_filtered + (1 - alpha) * accel
    state.gyro_filtered = filter_alpha * state.gyro_filtered + (1 - filter_alpha) * gyro


def update_gravity(state, alpha, significant):
    """
    Track gravity from the filtered accelerometer unless the vehicle accelerates.

    Args:
        state: TrackerState
        alpha: EMA coefficient (weight of the previous gravity)
        significant: GPS acceleration gate for this sample

    Returns:
        bool: True if gravity was updated
    """
    if significant:
        return False
    state.gravity = alpha * state.gravity + (1 - alpha) * state.accel_filtered
    return True


def linear_acceleration(state, accel):
    """Raw acceleration minus the current gravity estimate."""
    return accel - state.gravity


def learn_forward(state, linear_accel, gps_accel, alpha, significant):
    """
    Accumulate the signed linear-acceleration direction into ``forward``.

    The sign follows the GPS acceleration (+1 speeding up, -1 braking) so
    the learned vector points at the vehicle's nose in both cases. The vector
    is renormalised whenever its magnitude exceeds
    ``config.FORWARD_RENORM_THRESHOLD``.

    Returns:
        bool: True if forward learned from this sample
    """
    if not significant:
        return False

    renorm_threshold = getattr(config, 'FORWARD_RENORM_THRESHOLD', 0.01)
    sign = 1.0 if gps_accel > 0 else -1.0
    state.forward = alpha * state.forward + (1 - alpha) * linear_accel * sign

    forward_mag = np.linalg.norm(state.forward)
    if forward_mag > renorm_threshold:
        state.forward = state.forward / forward_mag

    state.total_forward_updates += 1
    return True


def forward_change(state):
    """Distance moved by ``forward`` since the previous call (convergence metric)."""
    change = float(np.linalg.norm(state.forward - state.prev_forward))
    state.prev_forward = state.forward.copy()
    return change


def orthogonalize_forward(state):
    """
    Remove the component of ``forward`` along the current down direction.

    Runs on every sample once forward has learned at least once, so
    forward stays perpendicular to gravity even while only gravity moves.
    """
    min_norm = getattr(config, 'GRAVITY_MIN_NORM', 0.1)
    gravity_mag = np.linalg.norm(state.gravity)
    if gravity_mag <= min_norm or state.total_forward_updates == 0:
        return

    down = state.gravity / gravity_mag
    state.forward = state.forward - np.dot(state.forward, down) * down


def confidence(state):
    """
    Mean of gravity and forward confidences.

    Diagnostic only: ``min(1, |gravity| / 9.8)`` and
    ``min(1, |forward| / 0.5)``.
    """
    standard_gravity = getattr(config, 'STANDARD_GRAVITY', 9.8)
    forward_scale = getattr(config, 'FORWARD_CONFIDENCE_SCALE', 0.5)

    gravity_confidence = min(1.0, np.linalg.norm(state.gravity) / standard_gravity)
    forward_confidence = min(1.0, np.linalg.norm(state.forward) / forward_scale)
    return (gravity_confidence + forward_confidence) / 2
