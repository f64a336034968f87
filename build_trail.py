#!/usr/bin/env python3
"""
build_trail.py — Stitch Appalachian Trail fragments into one GeoJSON line.

Stages:
  1. Download — fetch the ArcGIS web map JSON (or reuse the cached copy)
  2. Extract  — keep official-route features, reproject each path to lon/lat
  3. Stitch   — chain segments end-to-end starting at Springer Mountain
  4. Sample   — thin the chain to ~TARGET_POINTS, keeping the terminus
  5. Write    — single-feature GeoJSON FeatureCollection

Usage:
    python3 build_trail.py --download --item-id ITEM_ID
    python3 build_trail.py --build
    python3 build_trail.py --build --stats --target-points 1000
"""

import argparse
import json
import logging
import math
import os
import time

import requests
from shapely.geometry import LineString

from arcgis_source import SourceFormatError, load_segments
from chain_builder import ChainBuilder, EmptySegmentSetError
from config import (
    ANCHOR_LAT, ANCHOR_LON, DOWNLOAD_TIMEOUT, LOG_FILE, MATCH_TOLERANCE,
    OUTPUT_FILE, SOURCE_LAYER_PATH, TARGET_POINTS, TRAIL_NAME,
    WEBMAP_DATA_URL, WEBMAP_FILE,
)
from downsample import downsample

logger = logging.getLogger(__name__)


def setup_logging(log_file=LOG_FILE):
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler()
        ]
    )


class TrailBuilder:
    """Downloads trail fragments and stitches them into a single route."""

    def __init__(self, anchor=(ANCHOR_LON, ANCHOR_LAT), tolerance=MATCH_TOLERANCE,
                 target_points=TARGET_POINTS):
        self.anchor = anchor
        self.tolerance = tolerance
        self.target_points = target_points
        self.webmap = None
        self.segments = []
        self.result = None
        self.sampled = []
        self.data_file = WEBMAP_FILE
        self.output_file = OUTPUT_FILE
        self.layer_path = SOURCE_LAYER_PATH
        self.max_retries = 3
        self.retry_delay = 5

    def download_webmap(self, item_id):
        """Download the web map JSON with retry logic."""
        url = WEBMAP_DATA_URL.format(item_id=item_id)
        logger.info(f"Starting web map download: {url}")

        for attempt in range(self.max_retries):
            try:
                logger.info(f"Attempt {attempt + 1}/{self.max_retries}")
                response = requests.get(url, timeout=DOWNLOAD_TIMEOUT)

                if response.status_code == 200:
                    self.webmap = response.json()
                    logger.info("Web map downloaded successfully")
                    self._save_webmap()
                    return True
                elif response.status_code == 429:
                    logger.warning("Rate limited by ArcGIS, retrying...")
                    time.sleep(self.retry_delay * (attempt + 1))
                else:
                    logger.error(f"Error downloading web map: {response.status_code}")

            except requests.exceptions.Timeout:
                logger.warning(f"Request timeout on attempt {attempt + 1}, retrying...")
                time.sleep(self.retry_delay)
            except ValueError as e:
                # requests' JSONDecodeError is a ValueError subclass
                logger.error(f"Response was not valid JSON: {e}")
            except requests.exceptions.RequestException as e:
                logger.error(f"Network error: {e}")
                if attempt < self.max_retries - 1:
                    time.sleep(self.retry_delay)

        logger.error("Failed to download web map after all retries")
        return False

    def _save_webmap(self):
        """Save the raw web map to data_file."""
        try:
            with open(self.data_file, 'w') as f:
                json.dump(self.webmap, f)
            logger.info(f"Web map saved to {self.data_file}")
        except IOError as e:
            logger.error(f"Error saving web map: {e}")
            raise

    def load_webmap(self, file_path=None):
        """Load a cached web map and extract reprojected segments from it."""
        if file_path is None:
            file_path = self.data_file

        if not os.path.exists(file_path):
            logger.error(f"File not found: {file_path}")
            return False

        try:
            logger.info(f"Loading web map from {file_path}")
            with open(file_path) as f:
                self.webmap = json.load(f)
            self.segments = load_segments(self.webmap, self.layer_path)
            return True

        except json.JSONDecodeError as e:
            logger.error(f"Error parsing JSON: {e}")
            return False
        except SourceFormatError as e:
            logger.error(f"Unexpected web map layout: {e}")
            return False

    def stitch(self):
        """Chain the loaded segments and downsample the result."""
        try:
            builder = ChainBuilder(self.segments, anchor=self.anchor, tolerance=self.tolerance)
        except EmptySegmentSetError as e:
            logger.error(f"Cannot stitch: {e}")
            return False

        self.result = builder.build()
        chain = self.result.points
        logger.info(f"Start: {chain[0]} End: {chain[-1]}")

        self.sampled = downsample(chain, self.target_points)
        logger.info(f"Sampled points: {len(self.sampled)}")
        return True

    def to_geojson(self):
        """Build the single-feature FeatureCollection for the sampled chain."""
        return {
            'type': 'FeatureCollection',
            'features': [{
                'type': 'Feature',
                'properties': {
                    'name': TRAIL_NAME,
                    'segments_used': self.result.used_count,
                    'segments_total': self.result.segment_count,
                    'points': len(self.sampled),
                },
                'geometry': {
                    'type': 'LineString',
                    'coordinates': [[lon, lat] for lon, lat in self.sampled]
                }
            }]
        }

    def build_geojson(self, output_file=None):
        """Write the stitched trail to output_file as GeoJSON."""
        if output_file is None:
            output_file = self.output_file

        if self.result is None:
            logger.error("Nothing to write. Please stitch segments first.")
            return False

        data = self.to_geojson()
        for problem in self.validate_geojson(data):
            logger.warning(f"GeoJSON check: {problem}")

        try:
            with open(output_file, 'w') as f:
                json.dump(data, f, indent=2)
            logger.info(f"Wrote {output_file}")
            return True
        except IOError as e:
            logger.error(f"Error saving GeoJSON: {e}")
            return False

    @staticmethod
    def validate_geojson(data):
        """Return a list of problems with a trail FeatureCollection ([] if fine)."""
        errors = []
        if data.get('type') != 'FeatureCollection':
            errors.append("root type must be 'FeatureCollection'")
        features = data.get('features')
        if not isinstance(features, list):
            errors.append("missing 'features' list")
            return errors

        for i, feature in enumerate(features):
            geometry = feature.get('geometry') or {}
            if geometry.get('type') != 'LineString':
                errors.append(f"feature {i}: geometry type must be 'LineString'")
                continue
            coords = geometry.get('coordinates') or []
            if len(coords) < 2:
                errors.append(f"feature {i}: LineString needs at least 2 coordinates")
            for j, (lon, lat) in enumerate(coords):
                if not -180 <= lon <= 180:
                    errors.append(f"feature {i}: coordinate {j} lon {lon} out of range")
                if not -90 <= lat <= 90:
                    errors.append(f"feature {i}: coordinate {j} lat {lat} out of range")
            if not (feature.get('properties') or {}).get('name'):
                errors.append(f"feature {i}: missing 'name' property")
        return errors

    @staticmethod
    def _haversine_km(lat1, lon1, lat2, lon2):
        """Return the great-circle distance in km between two points."""
        R = 6371.0  # Earth radius in km
        dlat = math.radians(lat2 - lat1)
        dlon = math.radians(lon2 - lon1)
        a = (math.sin(dlat / 2) ** 2 +
             math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) *
             math.sin(dlon / 2) ** 2)
        return R * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    def _chain_length_km(self, points):
        return sum(
            self._haversine_km(points[i][1], points[i][0],
                               points[i + 1][1], points[i + 1][0])
            for i in range(len(points) - 1)
        )

    def get_statistics(self):
        """Return statistics about the stitched trail."""
        if self.result is None:
            return {}

        chain = self.result.points
        length_degrees = LineString(chain).length if len(chain) > 1 else 0.0

        return {
            'total_segments': self.result.segment_count,
            'chained_segments': self.result.used_count,
            'unused_segments': self.result.unused_count,
            'state': self.result.state.value,
            'exact_matches': self.result.exact_matches,
            'fallback_matches': self.result.fallback_matches,
            'chain_points': len(chain),
            'sampled_points': len(self.sampled),
            'length_degrees': round(length_degrees, 6),
            'length_km': round(self._chain_length_km(chain), 2),
            'start': list(chain[0]),
            'end': list(chain[-1]),
        }


def main():
    parser = argparse.ArgumentParser(
        description='Stitch Appalachian Trail segments into a single GeoJSON line',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python build_trail.py --download --item-id 0123456789abcdef
  python build_trail.py --build
  python build_trail.py --build --stats --target-points 1000
        """
    )

    parser.add_argument('--download', action='store_true', help='Download the ArcGIS web map')
    parser.add_argument('--item-id', type=str, help='ArcGIS item id (required for --download)')
    parser.add_argument('--build', action='store_true', help='Stitch segments and write GeoJSON')
    parser.add_argument('--input', type=str, default=WEBMAP_FILE, help='Cached web map JSON')
    parser.add_argument('--output', type=str, default=OUTPUT_FILE, help='Output GeoJSON file')
    parser.add_argument('--target-points', type=int, default=TARGET_POINTS,
                        help='Approximate number of points to keep')
    parser.add_argument('--stats', action='store_true', help='Display statistics about the stitched trail')

    args = parser.parse_args()
    setup_logging()

    if args.target_points <= 0:
        logger.error("--target-points must be positive")
        return False

    builder = TrailBuilder(target_points=args.target_points)
    builder.data_file = args.input
    builder.output_file = args.output

    if args.download:
        if not args.item_id:
            logger.error("--item-id is required for --download")
            return False

        if not builder.download_webmap(args.item_id):
            return False

    if args.build or args.stats:
        if not builder.load_webmap():
            return False

        if not builder.stitch():
            return False

        if args.build and not builder.build_geojson():
            return False

        if args.stats:
            stats = builder.get_statistics()
            logger.info(f"Trail Statistics: {json.dumps(stats, indent=2)}")

    logger.info("Pipeline completed successfully")
    return True


if __name__ == '__main__':
    success = main()
    exit(0 if success else 1)
