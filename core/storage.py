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
Persistence of cross-session state.

A JSON file holds a flat key-value mapping. Every ``set``/``remove``
rewrites the whole file; concurrent writers are not coordinated and the
last write wins.
"""
import json
import logging
import os

try:
    from .. import config
except ImportError:
    import config

from .histogram import create_persistent_histogram, merge_histogram, to_dict, from_dict
from .roads import RoadCell

logger = logging.getLogger(__name__)

HISTOGRAM_KEY = getattr(config, 'HISTOGRAM_STORAGE_KEY', 'danHistogram')
INCLUDED_SESSIONS_KEY = getattr(config, 'INCLUDED_SESSIONS_KEY', 'includedHistogramSessions')
UPLOADED_SESSIONS_KEY = getattr(config, 'UPLOADED_SESSIONS_KEY', 'uploadedRoadSessions')
ROADS_KEY = getattr(config, 'ROADS_STORAGE_KEY', 'roads')


class JsonKeyValueStore:
    """Key-value store backed by one JSON object in a file."""

    def __init__(self, path):
        self.path = path

    def _read(self):
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Corrupt store file {self.path}: {e}")
        if not isinstance(data, dict):
            raise ValueError(f"Corrupt store file {self.path}: top level is not an object")
        return data

    def _write(self, data):
        with open(self.path, 'w', encoding='utf-8') as f:
            json.dump(data, f)

    def get(self, key, default=None):
        return self._read().get(key, default)

    def set(self, key, value):
        data = self._read()
        data[key] = value
        self._write(data)

    def remove(self, key):
        data = self._read()
        if key in data:
            del data[key]
            self._write(data)


def load_histogram(store):
    """Persistent histogram from the store (an empty one if absent)."""
    data = store.get(HISTOGRAM_KEY)
    if data is None:
        return create_persistent_histogram()
    return from_dict(data, persistent=True)


def save_histogram(store, histogram):
    store.set(HISTOGRAM_KEY, to_dict(histogram))


def reset_persistent_histogram(store):
    """Forget the histogram and the sessions merged into it."""
    store.remove(HISTOGRAM_KEY)
    store.remove(INCLUDED_SESSIONS_KEY)
    logger.info("Persistent histogram reset")


def _session_set(store, key):
    return set(store.get(key, []))


def _add_session(store, key, session_id):
    sessions = _session_set(store, key)
    sessions.add(session_id)
    store.set(key, sorted(sessions))


def get_included_sessions(store):
    return _session_set(store, INCLUDED_SESSIONS_KEY)


def mark_session_included(store, session_id):
    _add_session(store, INCLUDED_SESSIONS_KEY, session_id)


def get_uploaded_sessions(store):
    return _session_set(store, UPLOADED_SESSIONS_KEY)


def mark_session_uploaded(store, session_id):
    _add_session(store, UPLOADED_SESSIONS_KEY, session_id)


def merge_session_histogram(store, session_id, session_histogram):
    """
    Merge a session histogram into the persistent one, once per session.

    Returns:
        tuple: (persistent histogram, True if this call merged the session)
    """
    histogram = load_histogram(store)
    if session_id in get_included_sessions(store):
        logger.info(f"Session {session_id} already included in histogram")
        return histogram, False

    merge_histogram(histogram, session_histogram)
    save_histogram(store, histogram)
    mark_session_included(store, session_id)
    return histogram, True


def load_road_cells(store):
    """Road map as dict geohash8 -> RoadCell."""
    return {
        geohash: RoadCell.from_dict(cell)
        for geohash, cell in store.get(ROADS_KEY, {}).items()
    }


def save_road_cells(store, cells):
    """Write updated cells over the stored road map."""
    roads = store.get(ROADS_KEY, {})
    for geohash, cell in cells.items():
        roads[geohash] = cell.to_dict()
    store.set(ROADS_KEY, roads)
