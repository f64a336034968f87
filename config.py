# config.py — Appalachian Trail stitching pipeline configuration
# Edit this file to change the anchor point, tolerances, output size, etc.

# ── Source document ──────────────────────────────────────────────────
# ArcGIS web map data endpoint.  The item id is supplied on the command
# line with --item-id.
WEBMAP_DATA_URL = "https://www.arcgis.com/sharing/rest/content/items/{item_id}/data?f=json"
DOWNLOAD_TIMEOUT = 120

# Path to the trail feature set inside the web map:
#   operationalLayers[i].featureCollection.layers[j].featureSet.features
SOURCE_LAYER_PATH = (1, 0)

# Only features whose ELIGIBILITY_FIELD equals ELIGIBILITY_VALUE are chained.
ELIGIBILITY_FIELD = "STATUS"
ELIGIBILITY_VALUE = "Official A.T. Route"

# ── Projection ───────────────────────────────────────────────────────
# Half the circumference of the spherical Mercator world, in metres.
MERCATOR_HALF_EXTENT = 20037508.34

# Decimal places kept on reprojected lon/lat (~0.1 m).
OUTPUT_PRECISION = 6

# ── Stitching ────────────────────────────────────────────────────────
# Springer Mountain, GA — southern terminus.  Only used to pick the
# starting segment.
ANCHOR_LON = -84.1927
ANCHOR_LAT = 34.6295

# Decimal places for endpoint keys (~11 m).  Endpoints that round to the
# same key are treated as coincident.
ENDPOINT_KEY_PRECISION = 4

# Max planar distance (degrees) for the nearest-endpoint fallback.
MATCH_TOLERANCE = 0.1

# ── Output ───────────────────────────────────────────────────────────
TRAIL_NAME = "Appalachian Trail"

# Downsample the stitched chain to roughly this many points.
TARGET_POINTS = 500

# ── Cache / output files ─────────────────────────────────────────────
WEBMAP_FILE = "temp_at_data.json"
OUTPUT_FILE = "trail.json"
LOG_FILE = "build_trail.log"
