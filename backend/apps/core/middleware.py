import uuid
import logging
from contextvars import ContextVar

logger = logging.getLogger(__name__)

# Request id of the current request or Celery task (async safe)
_correlation_id = ContextVar("correlation_id", default=None)

def get_correlation_id():
    return _correlation_id.get()

class CorrelationIDMiddleware:
    """
    Attaches a unique Request ID (Trace ID) to every request.
    Driver polls are high-frequency, so the id is what ties an offer log
    line to the accept/skip that follows it.
    """
    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        request_id = request.headers.get('X-Request-ID') or str(uuid.uuid4())
        token = _correlation_id.set(request_id)
        request.correlation_id = request_id

        try:
            response = self.get_response(request)
            response['X-Request-ID'] = request_id
            return response
        finally:
            _correlation_id.reset(token)
