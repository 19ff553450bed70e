import math
from typing import List, NamedTuple, Optional, Tuple

# Base32 character set for geohash encoding
BASE32 = "0123456789bcdefghjkmnpqrstuvwxyz"
BASE32_INDEX = {char: index for index, char in enumerate(BASE32)}

EARTH_RADIUS_KM = 6371.0
KM_PER_DEGREE = math.pi * EARTH_RADIUS_KM / 180

# Appended to a prefix to form the inclusive upper bound of a range query
RANGE_SENTINEL = "\uf8ff"

# (max radius in km, precision), evaluated in ascending order
PRECISION_THRESHOLDS = [
    (0.02, 8),  # ~20m
    (0.15, 7),  # ~150m
    (1.2, 6),   # ~1.2km
    (5, 5),     # ~5km
    (20, 4),    # ~20km
    (80, 3),    # ~80km
]
MIN_PRECISION = 2  # ~300km+

# Lookup tables indexed by geohash length parity: [even, odd]
NEIGHBOR = {
    "n": ["p0r21436x8zb9dcf5h7kjnmqesgutwvy", "bc01fg45238967deuvhjyznpkmstqrwx"],
    "s": ["14365h7k9dcfesgujnmqp0r2twvyx8zb", "238967debc01fg45kmstqrwxuvhjyznp"],
    "e": ["bc01fg45238967deuvhjyznpkmstqrwx", "p0r21436x8zb9dcf5h7kjnmqesgutwvy"],
    "w": ["238967debc01fg45kmstqrwxuvhjyznp", "14365h7k9dcfesgujnmqp0r2twvyx8zb"],
}
BORDER = {
    "n": ["prxz", "bcfguvyz"],
    "s": ["028b", "0145hjnp"],
    "e": ["bcfguvyz", "prxz"],
    "w": ["0145hjnp", "028b"],
}
DIRECTION_ALIASES = {"top": "n", "bottom": "s", "right": "e", "left": "w"}


class Coordinate(NamedTuple):
    latitude: float
    longitude: float


class BoundingBox(NamedTuple):
    lat_min: float
    lat_max: float
    lon_min: float
    lon_max: float


class DecodedGeohash(NamedTuple):
    latitude: float
    longitude: float
    latitude_error: float
    longitude_error: float


def encode(latitude: float, longitude: float, precision: int = 6) -> str:
    """
    Encode a coordinate into a geohash of `precision` characters.

    Bits alternate longitude/latitude starting with longitude. A value exactly on
    a midpoint takes the lower half, so (0, 0) encodes as "7zzzz..." rather than "s0000...".
    Out-of-range inputs are not rejected; they settle into the nearest edge cell.
    """
    lat_min, lat_max = -90.0, 90.0
    lon_min, lon_max = -180.0, 180.0

    chars = []
    idx = 0
    bit = 0
    even_bit = True

    while len(chars) < precision:
        if even_bit:
            lon_mid = (lon_min + lon_max) / 2
            if longitude > lon_mid:
                idx = (idx << 1) + 1
                lon_min = lon_mid
            else:
                idx = idx << 1
                lon_max = lon_mid
        else:
            lat_mid = (lat_min + lat_max) / 2
            if latitude > lat_mid:
                idx = (idx << 1) + 1
                lat_min = lat_mid
            else:
                idx = idx << 1
                lat_max = lat_mid
        even_bit = not even_bit

        bit += 1
        if bit == 5:
            chars.append(BASE32[idx])
            bit = 0
            idx = 0

    return "".join(chars)


def bounds(geohash: str) -> BoundingBox:
    """Return the cell covered by `geohash`. Characters outside the alphabet are skipped."""
    lat_min, lat_max = -90.0, 90.0
    lon_min, lon_max = -180.0, 180.0
    even_bit = True

    for char in geohash:
        idx = BASE32_INDEX.get(char)
        if idx is None:
            continue

        for n in range(4, -1, -1):
            bit_n = (idx >> n) & 1
            if even_bit:
                lon_mid = (lon_min + lon_max) / 2
                if bit_n == 1:
                    lon_min = lon_mid
                else:
                    lon_max = lon_mid
            else:
                lat_mid = (lat_min + lat_max) / 2
                if bit_n == 1:
                    lat_min = lat_mid
                else:
                    lat_max = lat_mid
            even_bit = not even_bit

    return BoundingBox(lat_min, lat_max, lon_min, lon_max)


def decode(geohash: str) -> Coordinate:
    """Decode a geohash into the center of its cell. Never raises."""
    box = bounds(geohash)
    return Coordinate((box.lat_min + box.lat_max) / 2, (box.lon_min + box.lon_max) / 2)


def decode_with_error(geohash: str) -> DecodedGeohash:
    """Decode a geohash into its cell center plus the half-height and half-width of the cell."""
    box = bounds(geohash)
    latitude = (box.lat_min + box.lat_max) / 2
    longitude = (box.lon_min + box.lon_max) / 2
    return DecodedGeohash(latitude, longitude, box.lat_max - latitude, box.lon_max - longitude)


def distance(a, b) -> float:
    """
    Great-circle distance in kilometers between two (latitude, longitude) pairs,
    using the haversine formula.
    """
    lat1, lon1 = a
    lat2, lon2 = b
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)

    h = (math.sin(d_lat / 2) ** 2
         + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2)

    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))
    return EARTH_RADIUS_KM * c


def precision_for_radius(radius_km: float) -> int:
    """Pick the geohash length whose cells roughly match a search radius."""
    for max_radius, precision in PRECISION_THRESHOLDS:
        if radius_km <= max_radius:
            return precision
    return MIN_PRECISION


def adjacent(geohash: str, direction: str) -> str:
    """Return the geohash of the same length next to `geohash` in direction n, s, e or w."""
    if not geohash:
        raise ValueError("geohash must be non-empty")

    direction = DIRECTION_ALIASES.get(direction, direction)
    if direction not in NEIGHBOR:
        raise ValueError(f"Invalid direction: {direction}")

    for char in geohash:
        if char not in BASE32_INDEX:
            raise ValueError(f"Invalid geohash character: {char!r}")

    last_char = geohash[-1]
    parent = geohash[:-1]
    parity = len(geohash) % 2

    # Crossing a cell border means the parent cell changes too
    if last_char in BORDER[direction][parity] and parent:
        parent = adjacent(parent, direction)

    return parent + BASE32[NEIGHBOR[direction][parity].index(last_char)]


def neighbors(geohash: str) -> List[str]:
    """Return the eight surrounding cells in the order n, s, e, w, ne, nw, se, sw."""
    north = adjacent(geohash, "n")
    south = adjacent(geohash, "s")
    return [
        north,
        south,
        adjacent(geohash, "e"),
        adjacent(geohash, "w"),
        adjacent(north, "e"),
        adjacent(north, "w"),
        adjacent(south, "e"),
        adjacent(south, "w"),
    ]


def geohash_range(latitude: float, longitude: float, radius_km: float) -> List[str]:
    """
    Return the cells to scan for a radius search: the center cell followed by its
    neighbors, at the precision chosen for `radius_km`.
    """
    return _with_neighbors(encode(latitude, longitude, precision_for_radius(radius_km)))


def cell_size_km(precision: int, latitude: float) -> Tuple[float, float]:
    """Approximate (height, width) in km of a cell of `precision` characters at `latitude`."""
    lat_bits = 5 * precision // 2
    lon_bits = 5 * precision - lat_bits
    height = 180.0 / 2 ** lat_bits * KM_PER_DEGREE
    width = 360.0 / 2 ** lon_bits * KM_PER_DEGREE * math.cos(math.radians(latitude))
    return height, width


def covering_cells(latitude: float, longitude: float, radius_km: float) -> Optional[List[str]]:
    """
    Cells that together contain every point within `radius_km` of the location.

    Starts at the precision `geohash_range` uses and coarsens the precision until one cell is at least
    `radius_km` tall and wide at the poleward edge of the circle, since cells narrow
    with cos(latitude). Returns None when no precision is wide enough, which happens
    when the circle reaches a pole or for radii of thousands of kilometers.
    """
    far_latitude = min(90.0, abs(latitude) + radius_km / KM_PER_DEGREE)

    for precision in range(precision_for_radius(radius_km), 0, -1):
        height, width = cell_size_km(precision, far_latitude)
        if height >= radius_km and width >= radius_km:
            return _with_neighbors(encode(latitude, longitude, precision))
    return None


def _with_neighbors(center: str) -> List[str]:
    hashes = []
    for geohash in [center] + neighbors(center):
        # Cells wrap over the poles, which can repeat a neighbor
        if geohash not in hashes:
            hashes.append(geohash)
    return hashes


def prefix_range(prefix: str) -> Tuple[str, str]:
    """Inclusive (start, end) key range matching every geohash that starts with `prefix`."""
    return prefix, prefix + RANGE_SENTINEL
