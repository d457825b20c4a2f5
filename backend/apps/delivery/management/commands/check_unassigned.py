from django.core.management.base import BaseCommand

from apps.delivery.tasks import monitor_unassigned_orders


class Command(BaseCommand):
    help = "Run the unassigned-order SLA check now instead of waiting for beat"

    def handle(self, *args, **kwargs):
        result = monitor_unassigned_orders()

        if result.startswith("[SLA BREACH]"):
            self.stdout.write(self.style.WARNING(result))
        else:
            self.stdout.write(self.style.SUCCESS(result))
