from django.contrib import admin
from import_export import resources, fields
from import_export.widgets import ForeignKeyWidget
from import_export.admin import ImportExportModelAdmin

from .models import DriverProfile, DriverEarning


class DriverEarningResource(resources.ModelResource):
    driver = fields.Field(
        column_name='driver_uid',
        attribute='driver',
        widget=ForeignKeyWidget(DriverProfile, 'uid')
    )

    class Meta:
        model = DriverEarning
        fields = ('id', 'driver', 'order', 'amount', 'reference', 'created_at')
        export_order = fields


@admin.register(DriverProfile)
class DriverProfileAdmin(admin.ModelAdmin):
    list_display = ('uid', 'driver_name', 'status', 'is_working', 'total_deliveries', 'total_earnings', 'location_updated_at')
    list_filter = ('status', 'is_working')
    search_fields = ('uid', 'user__phone', 'user__first_name', 'user__last_name')
    list_select_related = ('user',)
    raw_id_fields = ('user',)
    # Approval is managed by driver accounts; dispatch only reads it
    readonly_fields = ('status', 'total_deliveries', 'total_earnings', 'location_updated_at', 'created_at')

    def driver_name(self, obj):
        return obj.user.display_name


@admin.register(DriverEarning)
class DriverEarningAdmin(ImportExportModelAdmin):
    resource_class = DriverEarningResource
    list_display = ('driver', 'amount', 'reference', 'created_at')
    search_fields = ('driver__uid', 'reference')
    raw_id_fields = ('driver', 'order')
    date_hierarchy = 'created_at'
