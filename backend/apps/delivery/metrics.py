# apps/delivery/metrics.py
from prometheus_client import Counter

# Dispatch counters, exported through django-prometheus' /metrics endpoint
offers_created = Counter(
    'dispatch_offers_created_total', 'Offers handed to a polling driver', ['branch']
)
assignments_total = Counter(
    'dispatch_assignments_total', 'Orders bound to a driver', ['path']
)
conflicts_total = Counter(
    'dispatch_conflicts_total', 'Accept/reclaim/lifecycle calls rejected with a conflict', ['reason']
)
skip_list_resets = Counter(
    'dispatch_skip_list_resets_total', 'Starvation-breaking skip list resets'
)
deliveries_completed = Counter(
    'dispatch_deliveries_completed_total', 'Orders marked delivered'
)
