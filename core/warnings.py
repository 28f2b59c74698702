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
Session quality warnings.
Single point for all warning logic about a calibrated session.
"""

import logging

# Import config for threshold values
try:
    from .. import config
    from ..locales.strings import WARNINGS, CAUTIONS
except ImportError:
    import config
    from locales.strings import WARNINGS, CAUTIONS

logger = logging.getLogger(__name__)


def compute_warnings(result):
    """
    Unified function for computing all warnings.

    Args:
        result: CalibrationResult

    Returns:
        tuple: (warnings: dict, cautions: dict)
    """
    warnings = {}
    cautions = {}

    # 1. GPS availability and geotagging
    _check_gps(result, warnings, cautions)

    # 2. Calibration quality
    _check_confidence(result, warnings)
    _check_forward_updates(result, cautions)

    # 3. Sensors and timing
    _check_magnetometer(result, cautions)
    _check_sample_rate(result, cautions)
    _check_duration(result, cautions)

    if warnings or cautions:
        logger.debug(f"Session warnings: {sorted(warnings)}, cautions: {sorted(cautions)}")

    return warnings, cautions


def _check_gps(result, warnings, cautions):
    """Check GPS presence and whether any segment was geotagged."""
    if result.gps_fix_count == 0:
        warnings["no_gps"] = WARNINGS['no_gps']
    elif result.sample_count > 0 and not result.road_dan_segments:
        cautions["no_segments"] = CAUTIONS['no_segments']


def _check_confidence(result, warnings):
    """Check final tracker confidence."""
    if result.sample_count == 0:
        return

    final_confidence = float(result.confidence[-1])
    threshold = getattr(config, 'LOW_CONFIDENCE_THRESHOLD', 0.75)

    if final_confidence < threshold:
        warnings["low_confidence"] = WARNINGS['low_confidence'].format(confidence=final_confidence)


def _check_forward_updates(result, cautions):
    """Check how many samples taught the forward direction."""
    if result.sample_count == 0 or result.gps_fix_count == 0:
        return

    count = int(result.forward_update_count[-1])
    minimum = getattr(config, 'MIN_FORWARD_UPDATES', 60)

    if count < minimum:
        cautions["few_forward_updates"] = CAUTIONS['few_forward_updates'].format(
            count=count, minimum=minimum
        )


def _check_magnetometer(result, cautions):
    if not result.has_magnetometer:
        cautions["no_magnetometer"] = CAUTIONS['no_magnetometer']


def _check_sample_rate(result, cautions):
    """Check measured sensor rate against the rate the filters assume."""
    if result.sample_count < 2:
        return

    expected = getattr(config, 'SAMPLE_RATE_HZ', 60)
    tolerance = getattr(config, 'SAMPLE_RATE_TOLERANCE', 0.2)
    rate = result.actual_sample_rate

    if abs(rate - expected) > tolerance * expected:
        cautions["sample_rate"] = CAUTIONS['sample_rate'].format(rate=rate, expected=expected)


def _check_duration(result, cautions):
    if result.sample_count == 0:
        return

    duration = result.sample_count / result.actual_sample_rate
    minimum = getattr(config, 'MIN_SESSION_SECONDS', 5.0)

    if duration < minimum:
        cautions["short_session"] = CAUTIONS['short_session'].format(duration=duration)
