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
RoadDAN CLI entry point.

Calibrates a recorded phone session to the vehicle frame and reports road
roughness, optionally accumulating it into a persistent road store.
"""
import json
import os
import sys
import argparse
import logging

# Add script directory to path for imports
SCRIPT_DIR = os.path.dirname(os.path.abspath(__file__))
if SCRIPT_DIR not in sys.path:
    sys.path.insert(0, SCRIPT_DIR)

import numpy as np

from core.calibration import calibrate
from core.histogram import histogram_from_segments, get_stats, histogram_to_string, to_dict
from core.roads import merge_road_cells
from core.storage import (
    JsonKeyValueStore,
    merge_session_histogram,
    get_uploaded_sessions,
    mark_session_uploaded,
    load_road_cells,
    save_road_cells,
)
from core.warnings import compute_warnings
from parsers.nmea_handler import extract_gps_fixes, calculate_gps_frequency
from parsers.session_handler import load_session
from locales.strings import ERRORS

# Configure logging (basicConfig is sufficient, no need for duplicate handler)
logging.basicConfig(
    level=logging.ERROR,
    format='%(levelname)s: %(message)s',
    stream=sys.stderr
)
logger = logging.getLogger('roaddan_calibrate')


def _round_vector(vector, digits=4):
    return [round(float(v), digits) for v in vector]


def update_store(store_path, session_id, segments, session_histogram):
    """
    Merge a session into the persistent store.

    The histogram and the road cells each accept a session only once.

    Returns:
        dict with what was merged and the cross-session statistics
    """
    store = JsonKeyValueStore(store_path)

    histogram, histogram_merged = merge_session_histogram(store, session_id, session_histogram)

    cells_updated = 0
    if session_id not in get_uploaded_sessions(store) and segments:
        cells = merge_road_cells(load_road_cells(store), segments, histogram=histogram)
        save_road_cells(store, cells)
        mark_session_uploaded(store, session_id)
        cells_updated = len(cells)

    logger.info(f"Store {store_path}: {histogram_to_string(histogram)}")
    return {
        "path": store_path,
        "histogram_merged": histogram_merged,
        "cells_updated": cells_updated,
        "session_count": histogram.session_count,
        "stats": get_stats(histogram),
    }


def format_json_response(session, result, session_histogram, parameters, gps_frequency=None,
                         store_info=None, warnings_dict=None, cautions_dict=None):
    """
    Format JSON response for CLI output.

    Args:
        session: loaded Session
        result: CalibrationResult
        session_histogram: DANHistogram of this session's segments
        parameters: dict of tuning parameters passed to calibrate
        gps_frequency: GPS update rate, Hz
        store_info: output of update_store, or None
        warnings_dict: warnings
        cautions_dict: cautions

    Returns:
        dict with JSON response
    """
    n = result.sample_count
    duration_s = n / result.actual_sample_rate if n else 0.0

    response = {
        "success": True,
        "session_info": {
            "session_id": session.session_id,
            "samples": n,
            "duration_s": round(duration_s, 2),
            "actual_sample_rate": round(result.actual_sample_rate, 2),
            "gps_fixes": result.gps_fix_count,
            "has_magnetometer": result.has_magnetometer,
        },
        "calibration": {
            "parameters": parameters,
            "gravity": _round_vector(result.final_gravity),
            "gravity_magnitude": round(float(np.linalg.norm(result.final_gravity)), 4),
            "forward": _round_vector(result.final_forward),
            "forward_updates": int(result.forward_update_count[-1]) if n else 0,
            "confidence": round(float(result.confidence[-1]), 4) if n else 0.0,
        },
        "roughness": {
            "segments": len(result.road_dan_segments),
            "dan_mean": round(float(np.mean(result.dan_x)), 4) if n else 0.0,
            "don_mean": round(float(np.mean(result.don_x)), 4) if n else 0.0,
            "histogram": to_dict(session_histogram),
            "stats": get_stats(session_histogram),
        },
    }

    if gps_frequency is not None:
        response["session_info"]["gps_frequency"] = gps_frequency

    if store_info:
        response["store"] = store_info

    if warnings_dict:
        response["warning"] = warnings_dict

    if cautions_dict:
        response["caution"] = cautions_dict

    return response


def _fail(message):
    error_response = {
        "success": False,
        "error": message
    }
    print(json.dumps(error_response, ensure_ascii=False, indent=2))
    sys.exit(1)


def main(argv=None):
    """CLI entry point."""
    parser = argparse.ArgumentParser(description='Vehicle-frame calibration and road roughness from a phone session')
    parser.add_argument('session_file', help='Path to recorded session JSON')
    parser.add_argument('--nmea', help='NMEA file replacing the session GPS track', default=None)
    parser.add_argument('--alpha', type=float, help='Gravity/forward EMA coefficient (0.90-0.99)', default=None)
    parser.add_argument('--observer-alpha', dest='observer_alpha', type=float, help='Observer filter weight (0.01-0.20)', default=None)
    parser.add_argument('--filter-alpha', dest='filter_alpha', type=float, help='Gyro low-pass coefficient (0.50-0.99)', default=None)
    parser.add_argument('--orientation-alpha', dest='orientation_alpha', type=float, help='GPS speed EMA coefficient (0.01-0.95)', default=None)
    parser.add_argument('--dan-decay', dest='dan_decay', type=float, help='DAN mean-square decay (0.80-0.99)', default=None)
    parser.add_argument('--store', help='JSON store for the cumulative histogram and road map', default=None)
    parser.add_argument('--session-id', dest='session_id', help='Session ID (default: sessionId from the file)', default=None)
    parser.add_argument('--segments-output', dest='segments_output', help='Write RoadDAN segments to this JSON file', default=None)
    parser.add_argument('--verbose', action='store_true', help='Debug logging on stderr')
    args = parser.parse_args(argv)

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        for path in (args.session_file, args.nmea):
            if path and not os.path.exists(path):
                _fail(ERRORS['file_not_found'].format(file_path=path))

        try:
            session = load_session(args.session_file)
        except ValueError as e:
            _fail(ERRORS['invalid_session'].format(reason=str(e)))

        if args.nmea:
            try:
                session.gps = extract_gps_fixes(args.nmea)
            except ValueError:
                _fail(ERRORS['invalid_nmea'].format(file_path=args.nmea))

        parameters = {
            "alpha": args.alpha,
            "observer_alpha": args.observer_alpha,
            "filter_alpha": args.filter_alpha,
            "orientation_alpha": args.orientation_alpha,
            "dan_decay": args.dan_decay,
        }

        try:
            result = calibrate(session.accel, session.gyro, session.mag, session.gps, **parameters)
        except ValueError as e:
            _fail(ERRORS['calibration_failed'].format(reason=str(e)))

        session_histogram = histogram_from_segments(result.road_dan_segments)
        logger.info(f"Session histogram: {histogram_to_string(session_histogram)}")

        store_info = None
        if args.store:
            session_id = args.session_id or session.session_id
            if not session_id:
                _fail(ERRORS['session_id_required'])
            try:
                store_info = update_store(args.store, session_id, result.road_dan_segments, session_histogram)
            except (OSError, ValueError) as e:
                _fail(ERRORS['store_failed'].format(reason=str(e)))

        if args.segments_output:
            with open(args.segments_output, 'w', encoding='utf-8') as f:
                json.dump([segment.to_dict() for segment in result.road_dan_segments], f, indent=2)

        warnings_dict, cautions_dict = compute_warnings(result)

        response = format_json_response(
            session,
            result,
            session_histogram,
            parameters,
            calculate_gps_frequency(session.gps),
            store_info,
            warnings_dict,
            cautions_dict
        )

        print(json.dumps(response, ensure_ascii=False, indent=2))

    except Exception as e:
        error_response = {
            "success": False,
            "error": f"Error: {str(e)}"
        }
        print(json.dumps(error_response, ensure_ascii=False, indent=2))
        sys.exit(1)


if __name__ == "__main__":
    main()
