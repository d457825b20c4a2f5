from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import generics
from rest_framework.permissions import IsAuthenticated, IsAdminUser
from rest_framework.response import Response
from rest_framework.throttling import ScopedRateThrottle
from rest_framework.views import APIView

from apps.accounts.permissions import IsDriver
from .filters import DriverLocationFilter
from .serializers import (
    CoordinatesSerializer,
    DriverLocationSerializer,
    DriverProfileSerializer,
    DriverStatsSerializer,
    WorkingSerializer,
)
from .services import DriverLocatorService, DriverService, validate_period


class MyDriverProfileAPIView(APIView):
    """
    Driver App Home: profile, approval status and counters.
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        driver = DriverService.for_user(request.user)
        return Response(DriverProfileSerializer(driver).data)


class DriverLocationUpdateAPIView(APIView):
    """
    Driver App: background GPS ping outside of offer polling.
    """
    permission_classes = [IsAuthenticated, IsDriver]
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "location_ping"

    def post(self, request):
        driver = DriverService.for_user(request.user)

        serializer = CoordinatesSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        DriverLocatorService.update_location(
            driver,
            serializer.validated_data["latitude"],
            serializer.validated_data["longitude"],
        )
        return Response({"status": "location updated"})


class DriverWorkingAPIView(APIView):
    """
    Toggle online/offline.
    """
    permission_classes = [IsAuthenticated, IsDriver]

    def post(self, request):
        driver = DriverService.for_user(request.user)

        serializer = WorkingSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        is_working = serializer.validated_data["is_working"]
        DriverService.set_working(driver, is_working)
        return Response({"status": "working state updated", "is_working": is_working})


class DriverStatsAPIView(APIView):
    permission_classes = [IsAuthenticated, IsDriver]

    def get(self, request):
        driver = DriverService.for_user(request.user)
        month, year = validate_period(
            request.query_params.get("month"), request.query_params.get("year")
        )
        stats = DriverService.get_stats(driver, month=month, year=year)
        return Response(DriverStatsSerializer(stats).data)


class AdminDriverLocationsAPIView(generics.ListAPIView):
    """
    Admin: live map of approved drivers.
    """
    permission_classes = [IsAdminUser]
    serializer_class = DriverLocationSerializer
    filter_backends = [DjangoFilterBackend]
    filterset_class = DriverLocationFilter
    pagination_class = None

    def get_queryset(self):
        return DriverLocatorService.all_with_locations()
