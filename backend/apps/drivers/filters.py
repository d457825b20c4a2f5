import django_filters

from .models import DriverProfile


class DriverLocationFilter(django_filters.FilterSet):
    status = django_filters.ChoiceFilter(choices=DriverProfile.STATUS_CHOICES)
    is_working = django_filters.BooleanFilter()
    updated_since = django_filters.IsoDateTimeFilter(
        field_name="location_updated_at", lookup_expr="gte"
    )

    class Meta:
        model = DriverProfile
        fields = ["status", "is_working"]
