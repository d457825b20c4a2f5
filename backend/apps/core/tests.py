# apps/core/tests.py
import logging
import time

from django.test import TestCase, RequestFactory
from django.core.cache import cache
from django.http import JsonResponse

from apps.core.middleware import CorrelationIDMiddleware, get_correlation_id
from apps.core.tasks import beat_heartbeat
from apps.utils.logging import CorrelationIdFilter, GDPRJsonFormatter


class MiddlewareTestCase(TestCase):
    def setUp(self):
        self.factory = RequestFactory()
        cache.clear()

    def test_correlation_id_generation(self):
        middleware = CorrelationIDMiddleware(lambda req: JsonResponse({"status": "ok"}))
        request = self.factory.get("/")
        response = middleware(request)

        self.assertTrue(response.has_header("X-Request-ID"))
        self.assertEqual(response["X-Request-ID"], request.correlation_id)

    def test_correlation_id_visible_while_handling(self):
        seen = {}

        def get_response(req):
            seen["id"] = get_correlation_id()
            return JsonResponse({})

        middleware = CorrelationIDMiddleware(get_response)
        middleware(self.factory.get("/", HTTP_X_REQUEST_ID="poll-123"))

        self.assertEqual(seen["id"], "poll-123")
        # Reset once the request is done
        self.assertIsNone(get_correlation_id())


class LoggingTestCase(TestCase):
    def _record(self, **extra):
        record = logging.LogRecord("apps.delivery", logging.INFO, __file__, 1, "offer created", None, None)
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_filter_defaults_correlation_id(self):
        record = self._record()
        self.assertTrue(CorrelationIdFilter().filter(record))
        self.assertEqual(record.correlation_id, "N/A")

    def test_json_formatter_masks_customer_address(self):
        record = self._record(metadata={"order_id": 7, "customer_address": "12 Main St"})
        output = GDPRJsonFormatter().format(record)

        self.assertIn('"order_id": 7', output)
        self.assertNotIn("12 Main St", output)


class HealthCheckTestCase(TestCase):
    def setUp(self):
        cache.clear()

    def test_health_check_warming_up(self):
        response = self.client.get("/health/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["services"]["beat"], "warming_up")

    def test_health_check_after_heartbeat(self):
        beat_heartbeat()
        response = self.client.get("/health/")
        self.assertEqual(response.json()["status"], "ok")

    def test_stale_heartbeat_degrades(self):
        cache.set("celery_beat_health", time.time() - 300)
        response = self.client.get("/health/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "degraded")
