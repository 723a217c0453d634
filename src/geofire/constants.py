import math

BITS_PER_CHAR = 5
MAX_PRECISION = 22
# Length of the geohash stored with every location.
DEFAULT_PRECISION = 10

EARTH_MEAN_RADIUS_KM = 6371.0088
KM_PER_DEGREE = EARTH_MEAN_RADIUS_KM * math.pi / 180
MAX_SUPPORTED_RADIUS_KM = 8587.0
EPSILON = 1e-12
