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

"""Tests for the RoadDAN histogram and percentile engine."""
import copy
import json
import math
import os
import sys

import numpy as np
import pytest

# Add parent directory to path for imports
PARENT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if PARENT_DIR not in sys.path:
    sys.path.insert(0, PARENT_DIR)

from core.histogram import (
    BIN_WIDTH,
    NUM_BINS,
    create_histogram,
    create_persistent_histogram,
    add_sample,
    get_percentile,
    get_stats,
    merge_histogram,
    histogram_to_string,
    to_dict,
    from_dict,
)


def _random_histogram(seed, n=200, persistent=False):
    rng = np.random.RandomState(seed)
    histogram = create_persistent_histogram() if persistent else create_histogram()
    for value in rng.gamma(2.0, 0.3, size=n):
        add_sample(histogram, float(value))
    return histogram


def test_new_histogram_is_empty():
    histogram = create_histogram()
    assert len(histogram.bins) == NUM_BINS
    assert histogram.total_samples == 0
    assert histogram.min_dan == math.inf
    assert histogram.max_dan == -math.inf


def test_add_sample_clamps_bin_but_tracks_raw_range():
    histogram = create_histogram()
    add_sample(histogram, -1.0)
    add_sample(histogram, 5.0)
    add_sample(histogram, 0.05)

    assert histogram.bins[0] == 1
    assert histogram.bins[NUM_BINS - 1] == 1
    assert histogram.bins[1] == 1
    assert histogram.total_samples == 3
    assert histogram.min_dan == -1.0
    assert histogram.max_dan == 5.0


def test_percentile_of_empty_histogram_is_neutral():
    assert get_percentile(create_histogram(), 1.2) == 50


def test_percentile_counts_half_of_own_bin():
    histogram = create_histogram()
    for value in (0.02, 0.02, 0.5, 0.5):
        add_sample(histogram, value)
    assert get_percentile(histogram, 0.5) == 75
    assert get_percentile(histogram, 0.01) == 25
    assert get_percentile(histogram, 3.0) == 100


def test_percentile_is_monotonic():
    histogram = _random_histogram(7)
    percentiles = [get_percentile(histogram, v) for v in np.linspace(-0.5, 4.5, 300)]
    assert all(a <= b for a, b in zip(percentiles, percentiles[1:]))


def test_median_within_one_bin_of_uniform_samples():
    histogram = create_histogram()
    values = (np.arange(1000) + 0.5) / 1000 * 2.0
    for value in values:
        add_sample(histogram, float(value))

    stats = get_stats(histogram)
    assert abs(stats['p50'] - np.median(values)) <= BIN_WIDTH
    assert stats['p10'] <= stats['p25'] <= stats['p50'] <= stats['p75'] <= stats['p90']


def test_stats_of_empty_histogram_are_zero():
    assert get_stats(create_histogram()) == {'p10': 0.0, 'p25': 0.0, 'p50': 0.0, 'p75': 0.0, 'p90': 0.0}


def test_merge_adds_bins_and_counts_sessions():
    target = create_persistent_histogram()
    source = _random_histogram(1)
    merge_histogram(target, source)
    merge_histogram(target, source)

    assert target.bins == [2 * count for count in source.bins]
    assert target.total_samples == 2 * source.total_samples
    assert target.session_count == 2
    assert target.min_dan == source.min_dan
    assert target.max_dan == source.max_dan


def test_merge_never_narrows_range():
    target = create_persistent_histogram()
    add_sample(target, 0.1)
    add_sample(target, 3.0)
    source = create_histogram()
    add_sample(source, 1.0)

    merge_histogram(target, source)
    assert target.min_dan == 0.1
    assert target.max_dan == 3.0


def test_merge_is_associative():
    a = _random_histogram(11, persistent=True)
    b = _random_histogram(12, persistent=True)
    c = _random_histogram(13, persistent=True)

    left = merge_histogram(merge_histogram(copy.deepcopy(a), b), c)
    right = merge_histogram(copy.deepcopy(a), merge_histogram(copy.deepcopy(b), c))

    assert left.bins == right.bins
    assert left.total_samples == right.total_samples


def test_empty_histogram_serialises_range_as_null():
    data = to_dict(create_persistent_histogram())
    assert data['minDAN'] is None
    assert data['maxDAN'] is None
    assert data['sessionCount'] == 0
    # must be plain JSON
    json.dumps(data)

    restored = from_dict(json.loads(json.dumps(data)))
    assert restored.min_dan == math.inf
    assert restored.max_dan == -math.inf


def test_serialised_histogram_restores():
    histogram = _random_histogram(5, persistent=True)
    histogram.session_count = 3
    restored = from_dict(json.loads(json.dumps(to_dict(histogram))))
    assert restored == histogram


def test_from_dict_rejects_wrong_bin_count():
    with pytest.raises(ValueError):
        from_dict({'bins': [0] * 10, 'totalSamples': 0})


def test_histogram_to_string_summary():
    histogram = create_histogram()
    for value in (0.2, 0.4, 0.6):
        add_sample(histogram, value)
    text = histogram_to_string(histogram)
    assert text.startswith("Samples: 3, Range: 0.20-0.60")
    assert "P50=" in text
