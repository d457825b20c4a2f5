from django.contrib import admin, messages
from django.contrib.auth import get_user_model
from django.utils import timezone
from import_export import resources, fields
from import_export.widgets import ForeignKeyWidget
from import_export.admin import ImportExportModelAdmin

from apps.utils.exceptions import BusinessLogicException
from apps.stores.models import Store
from .models import Order
from .services import OrderService

User = get_user_model()


class OrderResource(resources.ModelResource):
    user = fields.Field(
        column_name='user_phone',
        attribute='user',
        widget=ForeignKeyWidget(User, 'phone')
    )
    store = fields.Field(
        column_name='store_name',
        attribute='store',
        widget=ForeignKeyWidget(Store, 'name')
    )

    class Meta:
        model = Order
        fields = (
            'id',
            'user',
            'store',
            'status',
            'delivery_option',
            'total_price',
            'driver',
            'picked_up_at',
            'delivered_at',
            'created_at',
        )
        export_order = fields


@admin.register(Order)
class OrderAdmin(ImportExportModelAdmin):
    resource_class = OrderResource
    list_display = ('id', 'store', 'user', 'status', 'delivery_option', 'total_price', 'driver', 'offer_state', 'created_at')
    list_filter = ('status', 'delivery_option', 'created_at')
    search_fields = ('id', 'user__phone', 'store__name', 'driver__uid')
    list_select_related = ('store', 'user')
    raw_id_fields = ('user', 'store', 'driver', 'current_offer_driver')
    # Dispatch state is written by the delivery services only
    readonly_fields = (
        'driver', 'current_offer_driver', 'offer_expires_at', 'skipped_driver_ids',
        'picked_up_at', 'delivered_at', 'cancelled_at', 'driver_location',
        'created_at', 'updated_at',
    )
    actions = ['confirm_orders', 'cancel_orders']

    @admin.display(description="Offer")
    def offer_state(self, obj):
        if obj.current_offer_driver_id and obj.offer_expires_at:
            if obj.offer_expires_at > timezone.now():
                return f"Live ({obj.current_offer_driver_id})"
            return "Expired"
        return "-"

    def _run(self, request, queryset, operation, label):
        done = 0
        for order in queryset:
            try:
                operation(order)
                done += 1
            except BusinessLogicException as e:
                self.message_user(request, f"Order #{order.id}: {e.message}", messages.WARNING)
        self.message_user(request, f"{done} orders {label}.")

    @admin.action(description="Confirm selected orders (release to dispatch)")
    def confirm_orders(self, request, queryset):
        self._run(request, queryset, OrderService.confirm_order, "confirmed")

    @admin.action(description="Cancel selected orders")
    def cancel_orders(self, request, queryset):
        self._run(request, queryset, OrderService.cancel_order, "cancelled")
