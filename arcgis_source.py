"""
arcgis_source.py — Turn an ArcGIS web map document into reprojected segments.

A web map keeps its features at
    operationalLayers[i].featureCollection.layers[j].featureSet.features
with polyline geometry as {"paths": [[[x, y], ...], ...]} in Web Mercator.
Every non-empty path of an eligible feature becomes one segment of
(lon, lat) tuples.
"""

import logging
import math

from config import ELIGIBILITY_FIELD, ELIGIBILITY_VALUE, SOURCE_LAYER_PATH
from projection import web_mercator_to_lonlat

logger = logging.getLogger(__name__)


class SourceFormatError(ValueError):
    """The document doesn't have the expected web map / feature set layout."""


def extract_features(document: dict, layer_path=SOURCE_LAYER_PATH) -> list:
    """Return the raw feature list from a web map or a bare feature set."""
    if not isinstance(document, dict):
        raise SourceFormatError("Source document must be a JSON object")

    if "operationalLayers" not in document:
        if isinstance(document.get("features"), list):
            return document["features"]
        raise SourceFormatError("Document has neither 'operationalLayers' nor 'features'")

    layer_idx, sublayer_idx = layer_path
    try:
        layer = document["operationalLayers"][layer_idx]
        sublayer = layer["featureCollection"]["layers"][sublayer_idx]
        features = sublayer["featureSet"]["features"]
    except (IndexError, KeyError, TypeError) as e:
        raise SourceFormatError(
            f"No feature set at operationalLayers[{layer_idx}]"
            f".featureCollection.layers[{sublayer_idx}]: {e!r}"
        ) from e

    if not isinstance(features, list):
        raise SourceFormatError("featureSet.features is not a list")
    return features


def is_eligible(feature: dict, field: str = ELIGIBILITY_FIELD, value: str = ELIGIBILITY_VALUE) -> bool:
    attributes = feature.get("attributes") or {}
    return attributes.get(field) == value


def _path_to_segment(path) -> list:
    segment = []
    for vertex in path:
        if not isinstance(vertex, (list, tuple)) or len(vertex) < 2:
            continue
        x, y = vertex[0], vertex[1]
        if not (isinstance(x, (int, float)) and isinstance(y, (int, float))):
            continue
        if not (math.isfinite(x) and math.isfinite(y)):
            continue
        segment.append(web_mercator_to_lonlat(x, y))
    return segment


def features_to_segments(features, field: str = ELIGIBILITY_FIELD, value: str = ELIGIBILITY_VALUE) -> list:
    """Reprojected segments for every non-empty path of each eligible feature."""
    segments = []
    eligible = 0
    no_geometry = 0
    empty_paths = 0

    for feature in features:
        if not isinstance(feature, dict) or not is_eligible(feature, field, value):
            continue
        eligible += 1

        paths = (feature.get("geometry") or {}).get("paths")
        if not paths:
            no_geometry += 1
            continue

        for path in paths:
            segment = _path_to_segment(path or [])
            if segment:
                segments.append(segment)
            else:
                empty_paths += 1

    logger.info(f"Eligible features ({field} == {value!r}): {eligible}")
    if no_geometry:
        logger.warning(f"{no_geometry} eligible features had no path geometry and were skipped")
    if empty_paths:
        logger.warning(f"{empty_paths} paths had no usable vertices and were skipped")
    logger.info(f"Extracted {len(segments)} segments")
    return segments


def load_segments(document: dict, layer_path=SOURCE_LAYER_PATH) -> list:
    """extract_features() + features_to_segments() in one call."""
    return features_to_segments(extract_features(document, layer_path))
