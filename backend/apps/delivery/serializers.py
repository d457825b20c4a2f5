from decimal import Decimal

from rest_framework import serializers

from apps.orders.models import Order
from . import conf


class CoordinatesQuerySerializer(serializers.Serializer):
    latitude = serializers.FloatField(min_value=-90, max_value=90)
    longitude = serializers.FloatField(min_value=-180, max_value=180)


class NearbyQuerySerializer(CoordinatesQuerySerializer):
    radius = serializers.FloatField(required=False, min_value=1)
    limit = serializers.IntegerField(required=False, min_value=1, max_value=50, default=10)

    def validate_radius(self, value):
        max_radius = conf.get("MAX_SEARCH_RADIUS_METERS")
        return min(value, max_radius)


class OrderIdSerializer(serializers.Serializer):
    order_id = serializers.IntegerField(min_value=1)


class HistoryQuerySerializer(serializers.Serializer):
    month = serializers.IntegerField(required=False, min_value=1, max_value=12)
    year = serializers.IntegerField(required=False, min_value=2000, max_value=9999)


class OfferSerializer(serializers.Serializer):
    """
    Renders apps.delivery.matcher.Offer.
    """
    order_id = serializers.IntegerField()
    store_id = serializers.IntegerField()
    store_name = serializers.CharField()
    total_price = serializers.DecimalField(max_digits=10, decimal_places=2)
    distance_to_store = serializers.FloatField(allow_null=True)
    estimated_earnings = serializers.DecimalField(max_digits=10, decimal_places=2)
    expires_at = serializers.DateTimeField()
    remaining_seconds = serializers.IntegerField()
    store_latitude = serializers.FloatField()
    store_longitude = serializers.FloatField()
    customer_latitude = serializers.FloatField()
    customer_longitude = serializers.FloatField()
    customer_address = serializers.CharField(allow_blank=True)


class ReclaimableOrderSerializer(serializers.Serializer):
    order_id = serializers.IntegerField()
    store_id = serializers.IntegerField()
    store_name = serializers.CharField()
    total_price = serializers.DecimalField(max_digits=10, decimal_places=2)
    distance_to_store = serializers.FloatField(allow_null=True)
    estimated_earnings = serializers.DecimalField(max_digits=10, decimal_places=2)
    store_latitude = serializers.FloatField(allow_null=True)
    store_longitude = serializers.FloatField(allow_null=True)


class OrderSnapshotSerializer(serializers.ModelSerializer):
    """
    What the driver app needs to work an assigned order.
    """
    store_name = serializers.CharField(source="store.name", read_only=True)
    store_phone = serializers.CharField(source="store.phone", read_only=True)
    store_latitude = serializers.DecimalField(source="store.latitude", max_digits=9, decimal_places=6, read_only=True)
    store_longitude = serializers.DecimalField(source="store.longitude", max_digits=9, decimal_places=6, read_only=True)
    customer_name = serializers.CharField(source="user.display_name", read_only=True)
    customer_phone = serializers.CharField(source="user.phone", read_only=True)
    customer_latitude = serializers.DecimalField(source="user.latitude", max_digits=9, decimal_places=6, read_only=True)
    customer_longitude = serializers.DecimalField(source="user.longitude", max_digits=9, decimal_places=6, read_only=True)

    class Meta:
        model = Order
        fields = (
            "id",
            "status",
            "store",
            "store_name",
            "store_phone",
            "store_latitude",
            "store_longitude",
            "customer_name",
            "customer_phone",
            "customer_latitude",
            "customer_longitude",
            "shipping_address",
            "total_price",
            "driver",
            "picked_up_at",
            "delivered_at",
            "created_at",
        )
        read_only_fields = fields


class NearbyOrderSerializer(serializers.Serializer):
    order_id = serializers.IntegerField(source="order.id")
    store_id = serializers.IntegerField(source="order.store_id")
    store_name = serializers.CharField(source="order.store.name")
    total_price = serializers.DecimalField(source="order.total_price", max_digits=10, decimal_places=2)
    distance_to_store = serializers.FloatField(source="distance")
    estimated_earnings = serializers.SerializerMethodField()

    def get_estimated_earnings(self, obj):
        return str(conf.earnings_for(obj["order"].total_price))


class DeliveryHistorySerializer(serializers.ModelSerializer):
    store_name = serializers.CharField(source="store.name", read_only=True)
    earnings = serializers.SerializerMethodField()

    class Meta:
        model = Order
        fields = ("id", "store", "store_name", "total_price", "earnings", "picked_up_at", "delivered_at")
        read_only_fields = fields

    def get_earnings(self, obj):
        # Ledger row is missing when crediting failed; fall back to the current rate
        earning = getattr(obj, "driver_earning", None)
        amount = earning.amount if earning is not None else conf.earnings_for(obj.total_price)
        return str(Decimal(amount).quantize(Decimal("0.01")))
