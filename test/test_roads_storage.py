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

"""Tests for road cell aggregation and the persistent store."""
import json
import os
import sys

import pytest

# Add parent directory to path for imports
PARENT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if PARENT_DIR not in sys.path:
    sys.path.insert(0, PARENT_DIR)

from core.histogram import create_histogram, add_sample, get_percentile
from core.roads import RoadCell, aggregate_segments, merge_road_cells
from core.storage import (
    JsonKeyValueStore,
    load_histogram,
    save_histogram,
    reset_persistent_histogram,
    get_included_sessions,
    mark_session_included,
    get_uploaded_sessions,
    mark_session_uploaded,
    merge_session_histogram,
    load_road_cells,
    save_road_cells,
)
from core.structures import RoadDANSegment


def _segment(geohash, lat, lng, dan):
    return RoadDANSegment(geohash8=geohash, lat=lat, lng=lng, road_dan=dan,
                          speed_mph=30.0, timestamp=0.0)


def _histogram(values):
    histogram = create_histogram()
    for value in values:
        add_sample(histogram, value)
    return histogram


def test_aggregate_groups_by_geohash():
    cells = aggregate_segments([
        _segment('u281z7j5', 48.0, 11.0, 0.2),
        _segment('u281z7j5', 48.2, 11.2, 0.4),
        _segment('u281z7j7', 48.5, 11.5, 1.0),
    ])
    lat, lng, dan, count = cells['u281z7j5']
    assert (lat, lng, dan, count) == (pytest.approx(48.1), pytest.approx(11.1), pytest.approx(0.3), 2)
    assert cells['u281z7j7'][3] == 1


def test_merge_new_cells_without_histogram():
    updates = merge_road_cells({}, [_segment('u281z7j5', 48.0, 11.0, 0.2)], now=1234)
    cell = updates['u281z7j5']
    assert cell.percentile == 50
    assert cell.sample_count == 1
    assert cell.last_updated == 1234


def test_merge_weights_existing_cell():
    existing = {'u281z7j5': RoadCell('u281z7j5', 48.0, 11.0, 1.0, 80, 3, 0)}
    segments = [_segment('u281z7j5', 48.4, 11.4, 0.2)]

    cell = merge_road_cells(existing, segments, now=1)['u281z7j5']
    assert cell.sample_count == 4
    assert cell.lat == pytest.approx(48.1)
    assert cell.lng == pytest.approx(11.1)
    assert cell.avg_dan == pytest.approx(0.8)
    # no histogram: existing percentile kept
    assert cell.percentile == 80


def test_merge_ranks_against_histogram():
    histogram = _histogram([0.1, 0.1, 0.9, 0.9])
    updates = merge_road_cells({}, [_segment('u281z7j5', 48.0, 11.0, 0.9)], histogram=histogram)
    assert updates['u281z7j5'].percentile == get_percentile(histogram, 0.9) == 75


def test_merge_only_returns_touched_cells():
    existing = {'other000': RoadCell('other000', 1.0, 1.0, 1.0, 50, 1, 0)}
    updates = merge_road_cells(existing, [_segment('u281z7j5', 48.0, 11.0, 0.2)])
    assert set(updates) == {'u281z7j5'}
    assert merge_road_cells(existing, []) == {}


def test_store_get_set_remove(tmp_path):
    store = JsonKeyValueStore(str(tmp_path / 'store.json'))
    assert store.get('missing') is None
    assert store.get('missing', 5) == 5

    store.set('a', [1, 2])
    assert JsonKeyValueStore(store.path).get('a') == [1, 2]

    store.remove('a')
    assert store.get('a') is None


def test_corrupt_store_raises(tmp_path):
    path = tmp_path / 'store.json'
    path.write_text('{not json')
    with pytest.raises(ValueError):
        JsonKeyValueStore(str(path)).get('danHistogram')


def test_histogram_persisted_under_fixed_key(tmp_path):
    store = JsonKeyValueStore(str(tmp_path / 'store.json'))
    histogram = load_histogram(store)
    assert histogram.total_samples == 0
    save_histogram(store, histogram)

    with open(store.path) as f:
        raw = json.load(f)
    assert set(raw['danHistogram']) == {'bins', 'totalSamples', 'minDAN', 'maxDAN', 'sessionCount'}
    assert raw['danHistogram']['minDAN'] is None


def test_session_sets(tmp_path):
    store = JsonKeyValueStore(str(tmp_path / 'store.json'))
    mark_session_included(store, 's1')
    mark_session_included(store, 's1')
    mark_session_uploaded(store, 's2')

    assert get_included_sessions(store) == {'s1'}
    assert get_uploaded_sessions(store) == {'s2'}
    assert store.get('includedHistogramSessions') == ['s1']


def test_session_merged_into_histogram_once(tmp_path):
    store = JsonKeyValueStore(str(tmp_path / 'store.json'))
    session = _histogram([0.3, 0.5])

    histogram, merged = merge_session_histogram(store, 'drive-1', session)
    assert merged
    assert histogram.total_samples == 2
    assert histogram.session_count == 1

    histogram, merged = merge_session_histogram(store, 'drive-1', session)
    assert not merged
    assert load_histogram(store).total_samples == 2

    histogram, merged = merge_session_histogram(store, 'drive-2', session)
    assert merged
    assert load_histogram(store).session_count == 2


def test_reset_forgets_histogram_and_sessions(tmp_path):
    store = JsonKeyValueStore(str(tmp_path / 'store.json'))
    merge_session_histogram(store, 'drive-1', _histogram([0.3]))
    mark_session_uploaded(store, 'drive-1')

    reset_persistent_histogram(store)
    assert load_histogram(store).total_samples == 0
    assert get_included_sessions(store) == set()
    # road uploads are tracked separately
    assert get_uploaded_sessions(store) == {'drive-1'}


def test_road_cells_round_trip_through_store(tmp_path):
    store = JsonKeyValueStore(str(tmp_path / 'store.json'))
    cells = merge_road_cells({}, [_segment('u281z7j5', 48.0, 11.0, 0.2)], now=99)
    save_road_cells(store, cells)

    loaded = load_road_cells(store)
    assert loaded == cells
    assert store.get('roads')['u281z7j5']['avgDAN'] == pytest.approx(0.2)
