"""
Geolocation utilities for the Lecturer Attendance Management System
Great-circle distance and campus geofence checks for onsite attendance
"""

import math

from flask import current_app, has_app_context

EARTH_RADIUS_METERS = 6371e3

DEFAULT_CAMPUS_POINT = (5.6037, -0.1870)
DEFAULT_CAMPUS_RADIUS = 300


def get_distance(point1, point2):
    """Haversine distance in whole metres between two (latitude, longitude) pairs"""
    lat1, lon1 = point1
    lat2, lon2 = point2

    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_phi = math.radians(lat2 - lat1)
    delta_lambda = math.radians(lon2 - lon1)

    a = (math.sin(delta_phi / 2) ** 2
         + math.cos(phi1) * math.cos(phi2) * math.sin(delta_lambda / 2) ** 2)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return round(EARTH_RADIUS_METERS * c)


def is_within_radius(point, centre, radius_meters):
    """True when the point lies on or inside the circle"""
    return get_distance(point, centre) <= radius_meters


def get_campus_point():
    if has_app_context():
        return (current_app.config.get('CAMPUS_LATITUDE', DEFAULT_CAMPUS_POINT[0]),
                current_app.config.get('CAMPUS_LONGITUDE', DEFAULT_CAMPUS_POINT[1]))
    return DEFAULT_CAMPUS_POINT


def get_campus_radius():
    if has_app_context():
        return current_app.config.get('CAMPUS_RADIUS_METERS', DEFAULT_CAMPUS_RADIUS)
    return DEFAULT_CAMPUS_RADIUS


def verify_location_for_attendance(point, centre=None, radius_meters=None):
    """
    Check a submitted position against a reference point.

    Falls back to the configured campus point and radius.
    Returns a dict with verified, distance (metres) and within_radius.
    """
    centre = centre or get_campus_point()
    radius_meters = get_campus_radius() if radius_meters is None else radius_meters

    distance = get_distance(point, centre)
    within_radius = distance <= radius_meters
    return {
        'verified': within_radius,
        'distance': distance,
        'within_radius': within_radius,
        'radius': radius_meters,
    }


def is_valid_coordinates(latitude, longitude):
    """Validate latitude/longitude ranges"""
    try:
        lat = float(latitude)
        lon = float(longitude)
    except (TypeError, ValueError):
        return False
    if math.isnan(lat) or math.isnan(lon):
        return False
    return -90 <= lat <= 90 and -180 <= lon <= 180
