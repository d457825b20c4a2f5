# apps/delivery/views.py
from rest_framework import generics
from rest_framework.pagination import PageNumberPagination
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.throttling import ScopedRateThrottle
from rest_framework.views import APIView

from apps.drivers.services import DriverService
from apps.orders.services import OrderQueueService

from .assignment import AssignmentService
from .matcher import DispatchMatcher
from .serializers import (
    CoordinatesQuerySerializer,
    DeliveryHistorySerializer,
    HistoryQuerySerializer,
    NearbyOrderSerializer,
    NearbyQuerySerializer,
    OfferSerializer,
    OrderIdSerializer,
    OrderSnapshotSerializer,
    ReclaimableOrderSerializer,
)
from .services import DeliveryService


def _coordinates(data):
    serializer = CoordinatesQuerySerializer(data=data)
    serializer.is_valid(raise_exception=True)
    return serializer.validated_data["latitude"], serializer.validated_data["longitude"]


def _order_id(data):
    serializer = OrderIdSerializer(data=data)
    serializer.is_valid(raise_exception=True)
    return serializer.validated_data["order_id"]


class OfferAPIView(APIView):
    """
    Driver poll: reports position and returns at most one offer.
    """
    permission_classes = [IsAuthenticated]
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = 'location_ping'

    def get(self, request):
        driver = DriverService.for_user(request.user)
        lat, lng = _coordinates(request.query_params)

        offer = DispatchMatcher.poll(driver, lat, lng)
        return Response({"offer": OfferSerializer(offer.as_dict()).data if offer else None})


class AcceptOfferAPIView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request):
        driver = DriverService.for_user(request.user)
        order = AssignmentService.accept(_order_id(request.data), driver)
        return Response({"status": "order accepted", "order_id": order.id})


class SkipOfferAPIView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request):
        driver = DriverService.for_user(request.user)
        order = AssignmentService.skip(_order_id(request.data), driver)
        return Response({"status": "order skipped", "order_id": order.id})


class SkippedOrdersAPIView(APIView):
    """
    Orders this driver declined that can still be taken back.
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        driver = DriverService.for_user(request.user)
        lat, lng = _coordinates(request.query_params)

        rows = AssignmentService.list_reclaimable(driver, lat, lng)
        return Response(ReclaimableOrderSerializer(rows, many=True).data)


class ReclaimOrderAPIView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request):
        driver = DriverService.for_user(request.user)
        order = AssignmentService.reclaim(_order_id(request.data), driver)
        return Response({"status": "order reclaimed", "order_id": order.id})


class PickupAPIView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request, order_id):
        driver = DriverService.for_user(request.user)
        order = DeliveryService.pickup(order_id, driver)
        return Response(OrderSnapshotSerializer(order).data)


class MarkDeliveredAPIView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request, order_id):
        driver = DriverService.for_user(request.user)
        result = DeliveryService.mark_delivered(order_id, driver)
        return Response({
            "status": "delivered",
            "order_id": result["order_id"],
            "earnings": str(result["earnings"]),
        })


class TrackOrderAPIView(APIView):
    """
    Driver: GPS updates while carrying an order.
    """
    permission_classes = [IsAuthenticated]
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = 'location_ping'

    def post(self, request, order_id):
        driver = DriverService.for_user(request.user)
        lat, lng = _coordinates(request.data)
        return Response(DeliveryService.track(order_id, driver, lat, lng))


class ActiveOrderAPIView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        driver = DriverService.for_user(request.user)
        order = OrderQueueService.active_for_driver(driver.uid)
        return Response({"order": OrderSnapshotSerializer(order).data if order else None})


class NearbyOrdersAPIView(APIView):
    """
    Browse dispatchable orders around a point. Read-only: no offers are made.
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        DriverService.for_user(request.user)

        serializer = NearbyQuerySerializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)
        params = serializer.validated_data

        pairs = OrderQueueService.nearby(
            params["latitude"],
            params["longitude"],
            radius_m=params.get("radius"),
            limit=params["limit"],
        )
        rows = [{"order": order, "distance": distance} for order, distance in pairs]
        return Response(NearbyOrderSerializer(rows, many=True).data)


class HistoryPagination(PageNumberPagination):
    page_size = 50
    page_size_query_param = 'page_size'
    max_page_size = 100


class DeliveryHistoryAPIView(generics.ListAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = DeliveryHistorySerializer
    pagination_class = HistoryPagination

    def get_queryset(self):
        driver = DriverService.for_user(self.request.user)

        serializer = HistoryQuerySerializer(data=self.request.query_params)
        serializer.is_valid(raise_exception=True)

        return DeliveryService.history(
            driver,
            month=serializer.validated_data.get("month"),
            year=serializer.validated_data.get("year"),
        )
