import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("drivers", "0001_initial"),
        ("orders", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="DriverEarning",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("amount", models.DecimalField(decimal_places=2, max_digits=10)),
                ("reference", models.CharField(max_length=100)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("driver", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="earnings", to="drivers.driverprofile")),
                ("order", models.OneToOneField(on_delete=django.db.models.deletion.PROTECT, related_name="driver_earning", to="orders.order")),
            ],
            options={
                "indexes": [models.Index(fields=["driver", "-created_at"], name="driver_earning_ledger_idx")],
            },
        ),
    ]
