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
Road map cells: RoadDAN segments aggregated per geohash8 cell.
"""
import logging
import time
from dataclasses import dataclass

try:
    from .. import config
except ImportError:
    import config

from .histogram import get_percentile

logger = logging.getLogger(__name__)


@dataclass
class RoadCell:
    geohash8: str
    lat: float
    lng: float
    avg_dan: float
    percentile: int
    sample_count: int
    last_updated: int  # epoch ms

    def to_dict(self):
        return {
            'geohash8': self.geohash8,
            'lat': self.lat,
            'lng': self.lng,
            'avgDAN': self.avg_dan,
            'percentile': self.percentile,
            'sampleCount': self.sample_count,
            'lastUpdated': self.last_updated,
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            geohash8=data['geohash8'],
            lat=float(data['lat']),
            lng=float(data['lng']),
            avg_dan=float(data['avgDAN']),
            percentile=int(data.get('percentile', 50)),
            sample_count=int(data.get('sampleCount', 0)),
            last_updated=int(data.get('lastUpdated', 0)),
        )


def aggregate_segments(segments):
    """
    Group segments by geohash8.

    Returns:
        dict: geohash8 -> (mean lat, mean lng, mean RoadDAN, segment count)
    """
    sums = {}
    for segment in segments:
        lat_sum, lng_sum, dan_sum, count = sums.get(segment.geohash8, (0.0, 0.0, 0.0, 0))
        sums[segment.geohash8] = (
            lat_sum + segment.lat,
            lng_sum + segment.lng,
            dan_sum + segment.road_dan,
            count + 1,
        )
    return {
        geohash: (lat_sum / count, lng_sum / count, dan_sum / count, count)
        for geohash, (lat_sum, lng_sum, dan_sum, count) in sums.items()
    }


def merge_road_cells(existing, segments, histogram=None, now=None):
    """
    Merge one session's segments into the road map.

    Existing cells take sample-count weighted averages of lat, lng and
    RoadDAN. The percentile is ranked against ``histogram`` when one is
    given; otherwise an existing cell keeps its percentile and a new cell
    gets the neutral default.

    Args:
        existing: dict geohash8 -> RoadCell
        segments: list of RoadDANSegment
        histogram: DANHistogram used for ranking, or None
        now: update time in epoch ms (default: current time)

    Returns:
        dict geohash8 -> RoadCell with only the cells touched by this session
    """
    if not segments:
        return {}
    if now is None:
        now = int(time.time() * 1000)
    default_percentile = getattr(config, 'HISTOGRAM_EMPTY_PERCENTILE', 50)

    updates = {}
    for geohash, (lat, lng, avg_dan, count) in aggregate_segments(segments).items():
        cell = existing.get(geohash)
        if cell is not None:
            total = cell.sample_count + count
            lat = (cell.lat * cell.sample_count + lat * count) / total
            lng = (cell.lng * cell.sample_count + lng * count) / total
            avg_dan = (cell.avg_dan * cell.sample_count + avg_dan * count) / total
            percentile = get_percentile(histogram, avg_dan) if histogram is not None else cell.percentile
            count = total
        else:
            percentile = get_percentile(histogram, avg_dan) if histogram is not None else default_percentile

        updates[geohash] = RoadCell(
            geohash8=geohash,
            lat=lat,
            lng=lng,
            avg_dan=avg_dan,
            percentile=percentile,
            sample_count=count,
            last_updated=now,
        )

    logger.info(f"Updated {len(updates)} road cells")
    return updates
