# apps/drivers/urls.py
from django.urls import path
from .views import (
    MyDriverProfileAPIView,
    DriverLocationUpdateAPIView,
    DriverWorkingAPIView,
    DriverStatsAPIView,
    AdminDriverLocationsAPIView,
)

urlpatterns = [
    # Driver App
    path("me/", MyDriverProfileAPIView.as_view()),
    path("location/", DriverLocationUpdateAPIView.as_view()),
    path("working/", DriverWorkingAPIView.as_view()),
    path("stats/", DriverStatsAPIView.as_view()),

    # Admin
    path("admin/locations/", AdminDriverLocationsAPIView.as_view()),
]
