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
Signal smoothing module.
Contains the first-order recursive filters used on GPS tracks and the
validation of the calibration tuning parameters.
"""
import logging

import numpy as np
from scipy.signal import lfilter

# Import config for default values
try:
    from .. import config
except ImportError:
    import config

logger = logging.getLogger(__name__)


def recursive_smooth(data, weight=None, initial=None):
    """
    First-order recursive smoothing.

    ``smoothed[i] = smoothed[i-1] + (data[i] - smoothed[i-1]) * weight``

    With ``weight=0.5`` this is the GPS speed/acceleration smoother; with
    ``weight = 1 - alpha`` it is an EMA whose ``alpha`` is the weight of the
    previous value.

    Args:
        data: array of samples
        weight: weight of the new sample, 0 < weight <= 1
                (default: config.GPS_SPEED_SMOOTHING)
        initial: value of the filter before the first sample; None seeds the
                 filter with the first sample so smoothed[0] == data[0]

    Returns:
        np.ndarray of smoothed values (same length as input)
    """
    if weight is None:
        weight = getattr(config, 'GPS_SPEED_SMOOTHING', 0.5)

    data = np.asarray(data, dtype=float)
    if len(data) == 0:
        return np.zeros(0)

    if initial is None:
        initial = data[0]

    # y[i] = w*x[i] + (1-w)*y[i-1], with y[-1] = initial
    b = [weight]
    a = [1.0, -(1.0 - weight)]
    zi = [(1.0 - weight) * initial]
    smoothed, _ = lfilter(b, a, data, zi=zi)
    return smoothed


def exponential_moving_average(data, alpha):
    """
    Exponential moving average with ``alpha`` as the weight of the new sample.

    ``filtered[i] = alpha * data[i] + (1 - alpha) * filtered[i-1]``, seeded
    with the first sample. Lower alpha means more smoothing.

    Args:
        data: array of values to filter
        alpha: smoothing factor (0-1)

    Returns:
        np.ndarray of filtered values (same length as input)
    """
    return recursive_smooth(data, weight=alpha)


def validate_param(name, value, default, min_value=0.0, max_value=1.0):
    """
    Validates a filter coefficient and replaces it with the default if missing.

    Coefficients are used as EMA weights, so only the open interval
    (min_value, max_value) is meaningful. Values outside the recommended
    range in ``config.PARAMETER_BOUNDS`` are accepted but logged.

    Args:
        name: parameter name
        value: value to validate (None selects the default)
        default: default value
        min_value: exclusive lower limit
        max_value: exclusive upper limit

    Returns:
        valid parameter value as float

    Raises:
        ValueError: if the value is not a number inside (min_value, max_value)
    """
    if value is None:
        return float(default)

    try:
        value = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"Parameter {name} must be a number, got {value!r}")

    if not np.isfinite(value) or value <= min_value or value >= max_value:
        raise ValueError(
            f"Parameter {name}={value} outside the valid range ({min_value}, {max_value})"
        )

    bounds = getattr(config, 'PARAMETER_BOUNDS', {}).get(name)
    if bounds is not None and not bounds[0] <= value <= bounds[1]:
        logger.warning(
            f"Parameter {name}={value} outside recommended range [{bounds[0]}, {bounds[1]}]"
        )

    return value
