"""
Bounding box geometry around a center point.

Latitude degrees per km are treated as constant; longitude degrees per km
widen with 1/cos(lat). Near the poles cos(lat) is clamped so the box stays
finite.
"""
import math
from typing import Tuple

from domain.errors import InvalidQuery
from domain.models import BoundingBox, GeoPoint

KM_PER_DEG_LAT = 110.574
KM_PER_DEG_LON_EQUATOR = 111.320
# Beyond |lat| = 89.9 the longitude extent stops growing.
MAX_ABS_LAT_FOR_LON_SCALE = 89.9
MIN_COS_LAT = math.cos(math.radians(MAX_ABS_LAT_FOR_LON_SCALE))


def deg_per_km_at_lat(lat: float) -> Tuple[float, float]:
    """Return (deg_lat_per_km, deg_lon_per_km) at the given latitude."""
    deg_lat_per_km = 1.0 / KM_PER_DEG_LAT
    cos_lat = max(MIN_COS_LAT, math.cos(math.radians(lat)))
    deg_lon_per_km = 1.0 / (KM_PER_DEG_LON_EQUATOR * cos_lat)
    return deg_lat_per_km, deg_lon_per_km


def validate_point(point: GeoPoint) -> None:
    if not -90.0 <= point.lat <= 90.0:
        raise InvalidQuery(f"latitude out of range: {point.lat}")
    if not -180.0 <= point.lon <= 180.0:
        raise InvalidQuery(f"longitude out of range: {point.lon}")


def compute_bbox(point: GeoPoint, radius_km: float) -> BoundingBox:
    """
    Box of `radius_km` across, centered on `point`.

    `radius_km` is the full width of the view (the half extents are
    radius_km / 2), matching the km-width control of the postcard form.
    The box is not wrapped at the antimeridian or clipped at the poles.
    """
    if not radius_km > 0:
        raise InvalidQuery(f"radius must be positive, got {radius_km}")
    validate_point(point)
    deg_lat_per_km, deg_lon_per_km = deg_per_km_at_lat(point.lat)
    half_lat = (radius_km * deg_lat_per_km) / 2
    half_lon = (radius_km * deg_lon_per_km) / 2
    return BoundingBox(
        south=point.lat - half_lat,
        west=point.lon - half_lon,
        north=point.lat + half_lat,
        east=point.lon + half_lon,
    )
