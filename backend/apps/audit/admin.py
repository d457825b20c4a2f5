from django.contrib import admin
from django.contrib.auth import get_user_model
from django.utils.html import format_html
from django.utils.timezone import localtime
from import_export import resources, fields, widgets
from import_export.admin import ExportMixin
from .models import AuditLog

User = get_user_model()

ACTION_COLORS = {
    'order_assigned': '#28a745',
    'order_reclaimed': '#6f42c1',
    'skip_list_reset': '#ffc107',
    'order_picked_up': '#007bff',
    'delivery_completed': '#17a2b8',
    'order_cancelled': '#dc3545',
}


class AuditLogResource(resources.ModelResource):
    user = fields.Field(
        column_name='user',
        attribute='user',
        widget=widgets.ForeignKeyWidget(User, 'phone')
    )

    class Meta:
        model = AuditLog
        fields = ('id', 'action', 'reference_id', 'user', 'metadata', 'created_at')


@admin.register(AuditLog)
class AuditLogAdmin(ExportMixin, admin.ModelAdmin):
    # Export only; importing would bypass immutability
    resource_class = AuditLogResource
    list_display = ('action_badge', 'reference_id', 'user_info', 'metadata_preview', 'created_at_date')
    list_filter = ('action', 'created_at')
    search_fields = ('reference_id', 'user__phone')
    list_select_related = ('user',)
    list_per_page = 25
    readonly_fields = ('action', 'reference_id', 'user', 'metadata', 'created_at')

    @admin.display(description="Action")
    def action_badge(self, obj):
        color = ACTION_COLORS.get(obj.action, '#6c757d')
        return format_html(
            '<span style="background-color: {}; color: white; padding: 2px 6px; border-radius: 3px;">{}</span>',
            color,
            obj.get_action_display()
        )

    @admin.display(description="User", ordering='user__phone')
    def user_info(self, obj):
        return obj.user.phone if obj.user else "System"

    @admin.display(description="Metadata")
    def metadata_preview(self, obj):
        if obj.metadata:
            preview = str(obj.metadata)
            return preview[:50] + "..." if len(preview) > 50 else preview
        return "N/A"

    @admin.display(description="Timestamp", ordering='created_at')
    def created_at_date(self, obj):
        return localtime(obj.created_at).strftime('%d/%m/%Y %H:%M:%S')

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    def has_change_permission(self, request, obj=None):
        return False
