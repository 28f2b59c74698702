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
RoadDAN distribution histogram.

Fixed-width bins over [0, HISTOGRAM_MAX_DAN). A session histogram is built
from the RoadDAN segments of one drive; the persistent histogram is the
cross-session sum used to rank roads by percentile.
"""
import math
from dataclasses import dataclass, field
from typing import List

try:
    from .. import config
except ImportError:
    import config

NUM_BINS = getattr(config, 'HISTOGRAM_NUM_BINS', 100)
MAX_DAN = getattr(config, 'HISTOGRAM_MAX_DAN', 4.0)
BIN_WIDTH = MAX_DAN / NUM_BINS
CLAMP_EPSILON = getattr(config, 'HISTOGRAM_CLAMP_EPSILON', 0.001)


def _empty_bins():
    return [0] * NUM_BINS


@dataclass
class DANHistogram:
    bins: List[int] = field(default_factory=_empty_bins)
    total_samples: int = 0
    min_dan: float = math.inf
    max_dan: float = -math.inf


@dataclass
class PersistentHistogram(DANHistogram):
    session_count: int = 0


def create_histogram():
    return DANHistogram()


def create_persistent_histogram():
    return PersistentHistogram()


def _bin_index(value):
    clamped = max(0.0, min(value, MAX_DAN - CLAMP_EPSILON))
    return int(math.floor(clamped / BIN_WIDTH))


def add_sample(histogram, road_dan):
    """Count one RoadDAN value; min/max track the unclamped value."""
    histogram.bins[_bin_index(road_dan)] += 1
    histogram.total_samples += 1
    histogram.min_dan = min(histogram.min_dan, road_dan)
    histogram.max_dan = max(histogram.max_dan, road_dan)


def histogram_from_segments(segments, histogram=None):
    """Add the RoadDAN of every segment to ``histogram`` (a new one if None)."""
    if histogram is None:
        histogram = create_histogram()
    for segment in segments:
        add_sample(histogram, segment.road_dan)
    return histogram


def get_percentile(histogram, road_dan):
    """
    Percentile rank (0-100) of a RoadDAN value.

    Counts the samples in the bins below the value's bin plus half of its own
    bin. An empty histogram returns config.HISTOGRAM_EMPTY_PERCENTILE.
    """
    if histogram.total_samples == 0:
        return getattr(config, 'HISTOGRAM_EMPTY_PERCENTILE', 50)

    target_bin = _bin_index(road_dan)
    samples_below = sum(histogram.bins[:target_bin]) + histogram.bins[target_bin] / 2
    return int(round(samples_below / histogram.total_samples * 100))


def get_stats(histogram):
    """
    Distribution percentiles as bin midpoints.

    Returns:
        dict with keys p10, p25, p50, p75, p90 (all 0 for an empty histogram)
    """
    percentiles = getattr(config, 'HISTOGRAM_STATS_PERCENTILES', (10, 25, 50, 75, 90))
    if histogram.total_samples == 0:
        return {f'p{p}': 0.0 for p in percentiles}

    def value_at(percentile):
        target = percentile / 100 * histogram.total_samples
        cumulative = 0
        for i, count in enumerate(histogram.bins):
            cumulative += count
            if cumulative >= target:
                return (i + 0.5) * BIN_WIDTH
        return MAX_DAN

    return {f'p{p}': value_at(p) for p in percentiles}


def merge_histogram(target, source):
    """
    Add ``source`` into the persistent ``target`` histogram in place.

    Bins add element-wise, min/max only widen and ``session_count`` grows
    by one. Callers track which sessions were merged already
    (see core.storage.merge_session_histogram).
    """
    target.bins = [a + b for a, b in zip(target.bins, source.bins)]
    target.total_samples += source.total_samples
    target.min_dan = min(target.min_dan, source.min_dan)
    target.max_dan = max(target.max_dan, source.max_dan)
    target.session_count += 1
    return target


def histogram_to_string(histogram):
    stats = get_stats(histogram)
    return (
        f"Samples: {histogram.total_samples}, "
        f"Range: {histogram.min_dan:.2f}-{histogram.max_dan:.2f}, "
        f"P10={stats['p10']:.2f}, P50={stats['p50']:.2f}, P90={stats['p90']:.2f}"
    )


def _finite_or_none(value):
    return value if math.isfinite(value) else None


def to_dict(histogram):
    """
    JSON-compatible dict ``{bins, totalSamples, minDAN, maxDAN[, sessionCount]}``.

    The infinite min/max of an empty histogram are written as None.
    """
    data = {
        'bins': list(histogram.bins),
        'totalSamples': histogram.total_samples,
        'minDAN': _finite_or_none(histogram.min_dan),
        'maxDAN': _finite_or_none(histogram.max_dan),
    }
    if isinstance(histogram, PersistentHistogram):
        data['sessionCount'] = histogram.session_count
    return data


def from_dict(data, persistent=True):
    """
    Rebuild a histogram from ``to_dict`` output.

    Raises:
        ValueError: if the bin list has the wrong length
    """
    bins = [int(count) for count in data.get('bins', _empty_bins())]
    if len(bins) != NUM_BINS:
        raise ValueError(f"Histogram must have {NUM_BINS} bins, got {len(bins)}")

    min_dan = data.get('minDAN')
    max_dan = data.get('maxDAN')
    fields = dict(
        bins=bins,
        total_samples=int(data.get('totalSamples', 0)),
        min_dan=math.inf if min_dan is None else float(min_dan),
        max_dan=-math.inf if max_dan is None else float(max_dan),
    )
    if persistent:
        return PersistentHistogram(session_count=int(data.get('sessionCount', 0)), **fields)
    return DANHistogram(**fields)
