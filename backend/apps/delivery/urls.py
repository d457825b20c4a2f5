# apps/delivery/urls.py
from django.urls import path
from .views import (
    OfferAPIView,
    AcceptOfferAPIView,
    SkipOfferAPIView,
    SkippedOrdersAPIView,
    ReclaimOrderAPIView,
    PickupAPIView,
    MarkDeliveredAPIView,
    TrackOrderAPIView,
    ActiveOrderAPIView,
    NearbyOrdersAPIView,
    DeliveryHistoryAPIView,
)

urlpatterns = [
    # Offer polling
    path("offer/", OfferAPIView.as_view()),
    path("offer/accept/", AcceptOfferAPIView.as_view()),
    path("offer/skip/", SkipOfferAPIView.as_view()),
    path("skipped/", SkippedOrdersAPIView.as_view()),
    path("skipped/reclaim/", ReclaimOrderAPIView.as_view()),

    # Assigned order lifecycle
    path("orders/<int:order_id>/pickup/", PickupAPIView.as_view()),
    path("orders/<int:order_id>/deliver/", MarkDeliveredAPIView.as_view()),
    path("orders/<int:order_id>/location/", TrackOrderAPIView.as_view()),
    path("active/", ActiveOrderAPIView.as_view()),

    # Browse & history
    path("nearby/", NearbyOrdersAPIView.as_view()),
    path("history/", DeliveryHistoryAPIView.as_view()),
]
