"""
Shared mathematical utilities for the speed filters.

Contains the great-circle distance used to derive speed from consecutive
GPS fixes, plus the unit conversions the pipeline needs internally.
"""

import math

EARTH_RADIUS_M = 6371000

KMH_PER_MS = 3.6


def haversine_distance(lat1, lon1, lat2, lon2):
    """
    Calculate distance between two GPS coordinates in meters.

    Args:
        lat1, lon1: First coordinate (latitude, longitude in degrees)
        lat2, lon2: Second coordinate (latitude, longitude in degrees)

    Returns:
        float: Distance in meters
    """
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_phi = math.radians(lat2 - lat1)
    delta_lambda = math.radians(lon2 - lon1)

    a = (math.sin(delta_phi/2) ** 2 +
         math.cos(phi1) * math.cos(phi2) * math.sin(delta_lambda/2) ** 2)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1-a))

    return EARTH_RADIUS_M * c


def meters_north(lat, lon, meters):
    """Coordinate `meters` due north of (lat, lon). Used by simulations and replays."""
    return lat + math.degrees(meters / EARTH_RADIUS_M), lon


def ms_to_kmh(speed_ms):
    return speed_ms * KMH_PER_MS


def kmh_to_ms(speed_kmh):
    return speed_kmh / KMH_PER_MS
