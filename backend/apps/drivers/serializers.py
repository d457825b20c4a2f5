from rest_framework import serializers

from apps.accounts.serializers import UserSerializer
from .models import DriverProfile, DriverEarning


class DriverProfileSerializer(serializers.ModelSerializer):
    user = UserSerializer(read_only=True)

    class Meta:
        model = DriverProfile
        fields = (
            "id",
            "uid",
            "user",
            "status",
            "is_working",
            "latitude",
            "longitude",
            "location_updated_at",
            "total_deliveries",
            "total_earnings",
            "created_at",
        )
        read_only_fields = fields


class DriverLocationSerializer(serializers.ModelSerializer):
    """
    Admin map row.
    """
    name = serializers.CharField(source="user.display_name", read_only=True)
    phone = serializers.CharField(source="user.phone", read_only=True)

    class Meta:
        model = DriverProfile
        fields = (
            "id",
            "uid",
            "name",
            "phone",
            "status",
            "is_working",
            "latitude",
            "longitude",
            "location_updated_at",
        )


class DriverEarningSerializer(serializers.ModelSerializer):
    class Meta:
        model = DriverEarning
        fields = ("id", "order", "amount", "reference", "created_at")


class CoordinatesSerializer(serializers.Serializer):
    latitude = serializers.FloatField(min_value=-90, max_value=90)
    longitude = serializers.FloatField(min_value=-180, max_value=180)


class WorkingSerializer(serializers.Serializer):
    is_working = serializers.BooleanField()


class DriverStatsSerializer(serializers.Serializer):
    driver = DriverProfileSerializer()
    stats = serializers.DictField()
    period = serializers.CharField()
