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

"""Tests for the recursive smoothing filters and parameter validation."""
import logging
import os
import sys

import numpy as np
import pytest

# Add parent directory to path for imports
PARENT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if PARENT_DIR not in sys.path:
    sys.path.insert(0, PARENT_DIR)

from core.filters import recursive_smooth, exponential_moving_average, validate_param


def test_recursive_smooth_halves_the_step():
    smoothed = recursive_smooth([1.0, 3.0, 3.0], weight=0.5)
    assert smoothed == pytest.approx([1.0, 2.0, 2.5])


def test_recursive_smooth_from_explicit_initial():
    smoothed = recursive_smooth([2.0, 2.0], weight=0.5, initial=0.0)
    assert smoothed == pytest.approx([1.0, 1.5])


def test_recursive_smooth_matches_loop():
    rng = np.random.RandomState(3)
    data = rng.normal(size=50)
    weight = 0.2

    expected = np.zeros_like(data)
    expected[0] = data[0]
    for i in range(1, len(data)):
        expected[i] = expected[i - 1] + (data[i] - expected[i - 1]) * weight

    assert recursive_smooth(data, weight=weight) == pytest.approx(expected)


def test_recursive_smooth_empty():
    assert len(recursive_smooth([])) == 0


def test_exponential_moving_average_weights_new_sample():
    assert exponential_moving_average([0.0, 10.0], 0.1) == pytest.approx([0.0, 1.0])


def test_validate_param_default_for_none():
    assert validate_param('alpha', None, 0.95) == 0.95


@pytest.mark.parametrize("value", [0.0, 1.0, -0.5, 1.5, float('nan'), 'abc'])
def test_validate_param_rejects_outside_open_interval(value):
    with pytest.raises(ValueError):
        validate_param('alpha', value, 0.95)


def test_validate_param_warns_outside_recommended_bounds(caplog):
    with caplog.at_level(logging.WARNING):
        assert validate_param('alpha', 0.5, 0.95) == 0.5
    assert "outside recommended range" in caplog.text


def test_validate_param_quiet_inside_recommended_bounds(caplog):
    with caplog.at_level(logging.WARNING):
        assert validate_param('dan_decay', 0.9, 0.95) == 0.9
    assert caplog.text == ""
