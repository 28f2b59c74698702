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
Vehicle frame transformer.

Builds the (forward, lateral, down) basis from the tracker estimates and
projects phone-frame linear acceleration into it.
"""
import numpy as np

try:
    from .. import config
except ImportError:
    import config

PHONE_DOWN = np.array([0.0, 0.0, 1.0])
PHONE_FORWARD = np.array([1.0, 0.0, 0.0])


def _direction(vector, min_norm, fallback):
    norm = np.linalg.norm(vector)
    if norm > min_norm:
        return vector / norm
    return fallback.copy()


def build_vehicle_frame(gravity, forward):
    """
    Vehicle basis in phone coordinates.

    Args:
        gravity: gravity estimate; normalised to ``down`` (phone +z below
                 config.GRAVITY_MIN_NORM)
        forward: learned forward vector; normalised to ``forward_dir``
                 (phone +x below config.FORWARD_MIN_NORM)

    Returns:
        np.ndarray of shape (3, 3): rows are forward_dir, lateral, down,
        with lateral = forward_dir x down
    """
    down = _direction(gravity, getattr(config, 'GRAVITY_MIN_NORM', 0.1), PHONE_DOWN)
    forward_dir = _direction(forward, getattr(config, 'FORWARD_MIN_NORM', 0.1), PHONE_FORWARD)
    lateral = np.cross(forward_dir, down)
    return np.vstack((forward_dir, lateral, down))


def to_vehicle_frame(linear_accel, basis):
    """Project a phone-frame vector onto the basis rows -> (x', y', z')."""
    return basis @ linear_accel


def smooth_transformed(state, transformed, alpha, first_sample):
    """
    Display EMA on the vehicle-frame signal (does not feed the tracker).

    Returns:
        np.ndarray: the filtered (x', y', z')
    """
    if first_sample:
        state.transformed_filtered = transformed.copy()
    else:
        state.transformed_filtered = alpha * state.transformed_filtered + (1 - alpha) * transformed
    return state.transformed_filtered
