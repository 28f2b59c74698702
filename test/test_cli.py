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

"""Tests for the roaddan_calibrate command line."""
import json
import os
import sys

import numpy as np
import pytest

# Add parent directory to path for imports
PARENT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if PARENT_DIR not in sys.path:
    sys.path.insert(0, PARENT_DIR)

import roaddan_calibrate


def _session_file(tmp_path, session_id='drive-1'):
    rng = np.random.RandomState(0)
    n = 600
    accel, gyro, gps = [], [], []
    for i in range(n):
        driving = i >= 300
        accel.append({
            'x': (3.0 if driving else 0.0) + rng.normal(0.0, 0.05),
            'y': rng.normal(0.0, 0.05),
            'z': 9.8 + rng.normal(0.0, 0.05),
            'timestamp': i * 1000.0 / 60,
        })
        gyro.append({'x': 0.0, 'y': 0.0, 'z': 0.0})
        mps = 3.0 * (i - 300) / 60 if driving else 0.0
        gps.append({'mps': mps, 'lat': 48.1173 + i * 1e-6, 'lng': 11.5167,
                    'timestamp': i * 1000.0 / 60})

    path = tmp_path / 'session.json'
    path.write_text(json.dumps({
        'sessionId': session_id,
        'accelerometerData': accel,
        'gyroscopeData': gyro,
        'magnetometerData': [],
        'gpsData': gps,
    }))
    return str(path)


def _run(capsys, argv):
    roaddan_calibrate.main(argv)
    return json.loads(capsys.readouterr().out)


def test_cli_reports_calibration(tmp_path, capsys):
    segments_path = str(tmp_path / 'segments.json')
    response = _run(capsys, [_session_file(tmp_path), '--segments-output', segments_path])

    assert response['success'] is True
    assert response['session_info']['samples'] == 600
    assert response['session_info']['actual_sample_rate'] == pytest.approx(60.0)
    assert response['calibration']['gravity_magnitude'] == pytest.approx(9.8, abs=0.2)
    assert response['calibration']['forward'][0] > 0.9
    assert response['roughness']['segments'] == 10
    assert response['roughness']['histogram']['totalSamples'] == 10
    assert 'no_magnetometer' in response['caution']
    assert 'store' not in response

    with open(segments_path) as f:
        segments = json.load(f)
    assert len(segments) == 10
    assert {'geohash8', 'roadDAN', 'speedMph'} <= set(segments[0])


def test_cli_store_accepts_session_once(tmp_path, capsys):
    session_path = _session_file(tmp_path)
    store_path = str(tmp_path / 'store.json')

    first = _run(capsys, [session_path, '--store', store_path])
    assert first['store']['histogram_merged'] is True
    assert first['store']['cells_updated'] > 0
    assert first['store']['session_count'] == 1

    second = _run(capsys, [session_path, '--store', store_path])
    assert second['store']['histogram_merged'] is False
    assert second['store']['cells_updated'] == 0
    assert second['store']['session_count'] == 1


def test_cli_missing_file(tmp_path, capsys):
    with pytest.raises(SystemExit) as exc:
        roaddan_calibrate.main([str(tmp_path / 'missing.json')])
    assert exc.value.code == 1
    response = json.loads(capsys.readouterr().out)
    assert response['success'] is False
    assert 'missing.json' in response['error']


def test_cli_rejects_bad_coefficient(tmp_path, capsys):
    with pytest.raises(SystemExit):
        roaddan_calibrate.main([_session_file(tmp_path), '--alpha', '1.2'])
    response = json.loads(capsys.readouterr().out)
    assert response['success'] is False
    assert 'alpha' in response['error']
