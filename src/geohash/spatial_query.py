from src.geohash.geohash_utils import encode, precision_for_radius, prefix_range
from src.models.geo import SpatialQuery


def spatial_query(latitude, longitude, precision):
    """Build the prefix range covering the cell that contains a coordinate."""
    prefix = encode(latitude, longitude, precision)
    start, end = prefix_range(prefix)
    return SpatialQuery(prefix=prefix, start=start, end=end, precision=precision)


def spatial_query_for_radius(latitude, longitude, radius_km):
    return spatial_query(latitude, longitude, precision_for_radius(radius_km))
