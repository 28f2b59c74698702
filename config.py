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
Configuration file for RoadDAN.
Contains all constants and settings for the floating calibration pipeline.

Note: storage locations and session sources are passed on the command line.
This module contains only calculation parameters and constants.
"""

# Physical Constants
STANDARD_GRAVITY = 9.8  # Reference gravity magnitude used for confidence and stability, m/s²

# Unit Conversion
MPS_TO_MPH = 2.237  # m/s to miles per hour
MPS_TO_KPH = 3.6    # m/s to km/h
KNOTS_TO_MPS = 0.514444  # NMEA speed over ground (knots) to m/s

# ============================================================
# Sampling
# ============================================================
SAMPLE_RATE_HZ = 60  # Nominal phone sensor rate, Hz

# ============================================================
# Tuning Parameter Defaults
# ============================================================
DEFAULT_ALPHA = 0.95              # Gravity / forward / display EMA coefficient
DEFAULT_OBSERVER_ALPHA = 0.05     # Observer bank filter coefficient (weight of new sample)
DEFAULT_FILTER_ALPHA = 0.05       # Raw gyro EMA coefficient (weight of previous value)
DEFAULT_ORIENTATION_ALPHA = 0.95  # 1 Hz GPS speed EMA coefficient
DEFAULT_DAN_DECAY = 0.95          # DAN mean-square decay
DON_DECAY = 0.95                  # DON mean-square decay (not tunable)

# Recommended bounds used by the tuning UI (logged when exceeded, not enforced)
PARAMETER_BOUNDS = {
    'alpha': (0.90, 0.99),
    'observer_alpha': (0.01, 0.20),
    'filter_alpha': (0.50, 0.99),
    'orientation_alpha': (0.01, 0.95),
    'dan_decay': (0.80, 0.99),
}

# ============================================================
# GPS Resampling and Acceleration
# ============================================================
GPS_SPEED_SMOOTHING = 0.5     # Recursive smoothing weight of new sample (speed and accel)
GPS_ACCEL_WINDOW = 30         # Half-window for central difference, samples (±0.5 s)
GPS_ACCEL_MIN = -10.8         # Max braking (1.1 g), m/s²
GPS_ACCEL_MAX = 4.9           # Max acceleration (0.5 g), m/s²

# ============================================================
# Detector Thresholds
# ============================================================
SIGNIFICANT_ACCEL_THRESHOLD = 0.2   # |GPS accel| above this freezes gravity and learns forward, m/s²
STATIONARY_ACCEL_THRESHOLD = 0.1    # |GPS accel| below this = not accelerating/braking, m/s²
MOVING_SPEED_THRESHOLD = 1.0        # Speed above this = vehicle moving, m/s
TURNING_RATE_THRESHOLD = 0.1        # |gyro z| above this = turning, rad/s
PHONE_STABLE_ACCEL_TOLERANCE = 1.5  # | |accel| - g | below this = phone not shaken, m/s²
PHONE_STABLE_GYRO_MAX = 0.3         # Filtered gyro norm below this = phone not rotating, rad/s
OBSERVER_MIN_SPEED = 1.0            # Yaw rate from lateral accel is 0 at or below this, m/s

# ============================================================
# Vehicle Frame Guards
# ============================================================
GRAVITY_MIN_NORM = 0.1          # Below this, "down" falls back to phone +z
FORWARD_MIN_NORM = 0.1          # Below this, "forward" falls back to phone +x
FORWARD_RENORM_THRESHOLD = 0.01  # Forward is renormalised only above this magnitude
FORWARD_CONFIDENCE_SCALE = 0.5   # |forward| giving full forward confidence

# ============================================================
# Road Roughness (DAN / DON)
# ============================================================
ROAD_SEGMENT_SAMPLES = 60  # Samples per RoadDAN block (1 s at 60 Hz)
GEOHASH_PRECISION = 8      # Characters, ~38 m x 19 m cell

# ============================================================
# DAN Histogram
# ============================================================
HISTOGRAM_NUM_BINS = 100
HISTOGRAM_MAX_DAN = 4.0           # Upper edge of histogram domain
HISTOGRAM_CLAMP_EPSILON = 0.001   # Values are clamped to MAX_DAN - epsilon
HISTOGRAM_EMPTY_PERCENTILE = 50   # Percentile reported when no data is available
HISTOGRAM_STATS_PERCENTILES = (10, 25, 50, 75, 90)

# ============================================================
# Persistent Storage Keys
# ============================================================
HISTOGRAM_STORAGE_KEY = 'danHistogram'
INCLUDED_SESSIONS_KEY = 'includedHistogramSessions'
UPLOADED_SESSIONS_KEY = 'uploadedRoadSessions'
ROADS_STORAGE_KEY = 'roads'

# ============================================================
# Warning Thresholds
# ============================================================
LOW_CONFIDENCE_THRESHOLD = 0.75  # Final confidence below this is a warning
MIN_FORWARD_UPDATES = 60         # Fewer forward-learning samples than this is a caution
SAMPLE_RATE_TOLERANCE = 0.2      # Relative deviation from SAMPLE_RATE_HZ tolerated
MIN_SESSION_SECONDS = 5.0        # Shorter sessions may not converge gravity
