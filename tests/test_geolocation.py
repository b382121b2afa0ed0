"""
Unit tests for distance and geofence helpers
"""

import unittest

from utils.geolocation import (DEFAULT_CAMPUS_POINT, get_distance, is_valid_coordinates,
                               is_within_radius, verify_location_for_attendance)


class TestGeolocation(unittest.TestCase):

    def test_zero_distance(self):
        """Test the distance from a point to itself"""
        self.assertEqual(get_distance(DEFAULT_CAMPUS_POINT, DEFAULT_CAMPUS_POINT), 0)

    def test_distance_is_symmetric(self):
        """Test distance does not depend on argument order"""
        a, b = (5.6037, -0.1870), (5.6100, -0.1800)
        self.assertEqual(get_distance(a, b), get_distance(b, a))

    def test_known_distance(self):
        """Test one degree of latitude is about 111 km"""
        distance = get_distance((0.0, 0.0), (1.0, 0.0))
        self.assertAlmostEqual(distance, 111195, delta=5)

    def test_radius_boundary_is_inclusive(self):
        """Test a point exactly on the boundary counts as inside"""
        centre = (5.6037, -0.1870)
        point = (5.6060, -0.1870)
        distance = get_distance(point, centre)

        self.assertTrue(is_within_radius(point, centre, distance))
        self.assertFalse(is_within_radius(point, centre, distance - 1))

    def test_verify_location_defaults_to_campus(self):
        """Test verification without a centre uses the campus point"""
        result = verify_location_for_attendance(DEFAULT_CAMPUS_POINT)
        self.assertTrue(result['verified'])
        self.assertEqual(result['distance'], 0)
        self.assertEqual(result['radius'], 300)

    def test_verify_location_outside_radius(self):
        """Test a far point is rejected and reports its distance"""
        result = verify_location_for_attendance((5.65, -0.1870), centre=(5.6037, -0.1870), radius_meters=300)
        self.assertFalse(result['verified'])
        self.assertFalse(result['within_radius'])
        self.assertGreater(result['distance'], 300)

    def test_coordinate_validation(self):
        """Test latitude and longitude ranges"""
        self.assertTrue(is_valid_coordinates(5.6, -0.18))
        self.assertTrue(is_valid_coordinates('90', '-180'))
        self.assertFalse(is_valid_coordinates(91, 0))
        self.assertFalse(is_valid_coordinates(0, 181))
        self.assertFalse(is_valid_coordinates('north', 0))
        self.assertFalse(is_valid_coordinates(None, 0))
        self.assertFalse(is_valid_coordinates(float('nan'), 0))


if __name__ == '__main__':
    unittest.main()
