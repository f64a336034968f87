"""
projection.py — Spherical (Web) Mercator <-> WGS84 lon/lat.

ArcGIS web maps store geometry in EPSG:3857 metres.  The stitcher works in
degrees, so every vertex is pushed through web_mercator_to_lonlat() once,
right after it is read.
"""

import math

from config import MERCATOR_HALF_EXTENT, OUTPUT_PRECISION


def web_mercator_to_lonlat(x: float, y: float) -> tuple[float, float]:
    """Return (lon, lat) in degrees, rounded to OUTPUT_PRECISION places.

    Longitude scales linearly; latitude goes through the inverse
    Gudermannian.  Non-finite input is not guarded and yields NaN/inf.
    """
    lon = (x / MERCATOR_HALF_EXTENT) * 180
    lat = (y / MERCATOR_HALF_EXTENT) * 180
    lat = (180 / math.pi) * (2 * math.atan(math.exp(lat * math.pi / 180)) - math.pi / 2)
    return round(lon, OUTPUT_PRECISION), round(lat, OUTPUT_PRECISION)


def lonlat_to_web_mercator(lon: float, lat: float) -> tuple[float, float]:
    """Forward projection, (lon, lat) degrees -> (x, y) metres."""
    x = lon * MERCATOR_HALF_EXTENT / 180
    y = math.log(math.tan((90 + lat) * math.pi / 360)) / (math.pi / 180)
    y = y * MERCATOR_HALF_EXTENT / 180
    return x, y
