# apps/utils/tests.py
from django.test import SimpleTestCase
from rest_framework import status
from rest_framework.exceptions import ValidationError

from apps.utils.exceptions import (
    ConflictException,
    ForbiddenException,
    NotFoundException,
    UnauthenticatedException,
    custom_exception_handler,
)
from apps.utils.geo import haversine_m


class HaversineTestCase(SimpleTestCase):
    POINTS = [
        (0.0, 0.0),
        (12.9716, 77.5946),
        (-33.8688, 151.2093),
        (51.5074, -0.1278),
        (89.9, 179.9),
        (-45.0, -120.0),
    ]

    def test_symmetric(self):
        for a in self.POINTS:
            for b in self.POINTS:
                self.assertAlmostEqual(haversine_m(*a, *b), haversine_m(*b, *a), places=6)

    def test_zero_for_identical_points(self):
        for p in self.POINTS:
            self.assertEqual(haversine_m(*p, *p), 0.0)

    def test_monotone_along_meridian(self):
        distances = [haversine_m(0, 0, lat, 0) for lat in (0.001, 0.01, 0.1, 1, 10, 90)]
        self.assertEqual(distances, sorted(distances))

    def test_known_distance(self):
        # One millidegree of latitude is ~111 m
        self.assertAlmostEqual(haversine_m(0, 0, 0.001, 0), 111.19, delta=0.05)

    def test_antipodal_points(self):
        self.assertAlmostEqual(haversine_m(0, 0, 0, 180), 20015086.8, delta=1)

    def test_accepts_decimals(self):
        from decimal import Decimal
        self.assertAlmostEqual(
            haversine_m(Decimal("0.001"), Decimal("0"), 0, 0), haversine_m(0.001, 0, 0, 0)
        )


class ExceptionHandlerTestCase(SimpleTestCase):
    def test_typed_errors_map_to_status(self):
        cases = [
            (UnauthenticatedException("no driver"), status.HTTP_401_UNAUTHORIZED, "unauthenticated"),
            (ForbiddenException("not yours"), status.HTTP_403_FORBIDDEN, "forbidden"),
            (NotFoundException("gone"), status.HTTP_404_NOT_FOUND, "not_found"),
            (ConflictException("taken", code="offer_taken"), status.HTTP_409_CONFLICT, "offer_taken"),
        ]
        for exc, expected_status, expected_code in cases:
            response = custom_exception_handler(exc, {})
            self.assertEqual(response.status_code, expected_status)
            self.assertEqual(response.data["error"]["code"], expected_code)
            self.assertEqual(response.data["error"]["type"], type(exc).__name__)

    def test_validation_errors_wrapped(self):
        response = custom_exception_handler(ValidationError({"latitude": ["required"]}), {})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["error"]["code"], "validation_error")
        self.assertIn("latitude", response.data["error"]["details"])
