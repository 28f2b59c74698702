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

"""Tests for the orientation tracker, the vehicle frame and the observer bank."""
import math
import os
import sys

import numpy as np
import pytest

# Add parent directory to path for imports
PARENT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if PARENT_DIR not in sys.path:
    sys.path.insert(0, PARENT_DIR)

from core.tracker import (
    TrackerState,
    filter_raw_signals,
    update_gravity,
    learn_forward,
    forward_change,
    orthogonalize_forward,
    confidence,
)
from core.frame import build_vehicle_frame, to_vehicle_frame, smooth_transformed
from core.observers import (
    update_observer_filters,
    mag_heading_rate,
    observe,
    unwrap_heading,
)

GRAVITY = np.array([0.0, 0.0, 9.8])


def test_gravity_frozen_while_accelerating():
    state = TrackerState(accel_filtered=GRAVITY.copy())
    assert update_gravity(state, 0.95, significant=True) is False
    assert state.gravity == pytest.approx(np.zeros(3))

    assert update_gravity(state, 0.95, significant=False) is True
    assert state.gravity == pytest.approx(0.05 * GRAVITY)


def test_raw_filters_weight_previous_value():
    state = TrackerState()
    filter_raw_signals(state, GRAVITY, np.array([0.0, 0.0, 1.0]), alpha=0.9, filter_alpha=0.5)
    assert state.accel_filtered == pytest.approx(0.1 * GRAVITY)
    assert state.gyro_filtered == pytest.approx([0.0, 0.0, 0.5])


def test_forward_not_learned_without_significant_accel():
    state = TrackerState()
    assert learn_forward(state, np.array([2.0, 0.0, 0.0]), 0.1, 0.95, significant=False) is False
    assert state.total_forward_updates == 0
    assert state.forward == pytest.approx(np.zeros(3))


def test_braking_flips_learned_direction():
    state = TrackerState()
    # Phone feels -x while the vehicle brakes: the nose is still +x
    assert learn_forward(state, np.array([-2.0, 0.0, 0.0]), -1.0, 0.95, significant=True)
    assert state.forward == pytest.approx([1.0, 0.0, 0.0])
    assert state.total_forward_updates == 1


def test_tiny_forward_not_renormalised():
    state = TrackerState()
    learn_forward(state, np.array([0.1, 0.0, 0.0]), 1.0, 0.95, significant=True)
    assert state.forward == pytest.approx([0.005, 0.0, 0.0])


def test_forward_change_tracks_previous_forward():
    state = TrackerState(forward=np.array([1.0, 0.0, 0.0]))
    assert forward_change(state) == pytest.approx(1.0)
    assert forward_change(state) == pytest.approx(0.0)


def test_orthogonalize_removes_down_component():
    state = TrackerState(gravity=GRAVITY.copy(), forward=np.array([1.0, 0.0, 1.0]),
                         total_forward_updates=1)
    orthogonalize_forward(state)
    assert state.forward == pytest.approx([1.0, 0.0, 0.0])


def test_orthogonalize_waits_for_first_learning_event():
    state = TrackerState(gravity=GRAVITY.copy(), forward=np.array([1.0, 0.0, 1.0]))
    orthogonalize_forward(state)
    assert state.forward == pytest.approx([1.0, 0.0, 1.0])


def test_confidence_range():
    assert confidence(TrackerState()) == 0.0
    state = TrackerState(gravity=GRAVITY.copy(), forward=np.array([1.0, 0.0, 0.0]))
    assert confidence(state) == pytest.approx(1.0)
    state = TrackerState(gravity=GRAVITY.copy(), forward=np.array([0.25, 0.0, 0.0]))
    assert confidence(state) == pytest.approx(0.75)


def test_frame_falls_back_to_phone_axes():
    basis = build_vehicle_frame(np.zeros(3), np.zeros(3))
    assert basis[0] == pytest.approx([1.0, 0.0, 0.0])
    assert basis[1] == pytest.approx([0.0, -1.0, 0.0])
    assert basis[2] == pytest.approx([0.0, 0.0, 1.0])


def test_frame_is_orthonormal_for_tilted_phone():
    gravity = np.array([0.0, 9.8 * math.sin(0.3), 9.8 * math.cos(0.3)])
    down = gravity / np.linalg.norm(gravity)
    forward = np.array([1.0, 0.2, 0.1])
    forward = forward - np.dot(forward, down) * down

    basis = build_vehicle_frame(gravity, forward)
    assert basis @ basis.T == pytest.approx(np.eye(3), abs=1e-12)


def test_projection_onto_basis():
    basis = build_vehicle_frame(GRAVITY, np.array([0.0, 1.0, 0.0]))
    transformed = to_vehicle_frame(np.array([0.0, 2.0, 0.5]), basis)
    assert transformed == pytest.approx([2.0, 0.0, 0.5])


def test_display_smoothing_starts_from_first_sample():
    state = TrackerState()
    first = smooth_transformed(state, np.array([1.0, 2.0, 3.0]), 0.9, first_sample=True)
    assert first == pytest.approx([1.0, 2.0, 3.0])
    second = smooth_transformed(state, np.zeros(3), 0.9, first_sample=False)
    assert second == pytest.approx([0.9, 1.8, 2.7])


def test_observer_speed_gate():
    state = TrackerState()
    update_observer_filters(state, np.array([0.0, 2.0, 0.0]), np.array([0.0, 0.0, 0.4]), 0.5)
    slow = observe(state, speed=1.0, heading_rate=0.0, dt=1 / 60)
    assert slow.gyro_z_from_accel == 0.0
    assert slow.accel_y_measured == pytest.approx(1.0)
    assert slow.accel_y_from_gyro == pytest.approx(0.2)

    fast = observe(state, speed=4.0, heading_rate=0.1, dt=1 / 60)
    assert fast.gyro_z_from_accel == pytest.approx(0.25)
    assert fast.accel_y_from_mag == pytest.approx(0.4)
    assert fast.heading_from_gyro == pytest.approx(math.degrees(2 * 0.2 / 60))


def test_mag_heading_rate_zero_on_first_sample():
    state = TrackerState()
    assert mag_heading_rate(state, 90.0, 0.5, 1 / 60, first_sample=True) == 0.0
    rate = mag_heading_rate(state, 90.0, 0.5, 1 / 60, first_sample=False)
    # filtered heading goes from pi/4 to 3pi/8
    assert rate == pytest.approx((math.pi / 8) * 60)


def test_unwrap_heading_crosses_north():
    state = TrackerState()
    headings = [350.0, 355.0, 5.0, 15.0, 355.0]
    unwrapped = [unwrap_heading(state, h, i == 0) for i, h in enumerate(headings)]
    assert unwrapped == pytest.approx([350.0, 355.0, 365.0, 375.0, 355.0])
