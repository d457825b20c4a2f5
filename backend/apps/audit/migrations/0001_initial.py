import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="AuditLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("action", models.CharField(choices=[("order_assigned", "Order Assigned"), ("order_reclaimed", "Order Reclaimed"), ("skip_list_reset", "Skip List Reset"), ("order_picked_up", "Order Picked Up"), ("delivery_completed", "Delivery Completed"), ("order_cancelled", "Order Cancelled")], max_length=50)),
                ("reference_id", models.CharField(help_text="Order ID", max_length=100)),
                ("metadata", models.JSONField(default=dict)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("user", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["action"], name="audit_action_idx"),
                    models.Index(fields=["reference_id"], name="audit_reference_idx"),
                ],
            },
        ),
    ]
