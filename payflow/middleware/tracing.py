import logging
import time
import uuid
from typing import Dict, List

import httpx

from payflow.core.config import settings
from payflow.core.metrics import API_REQUEST_COUNT, API_REQUEST_DURATION

logger = logging.getLogger(__name__)


class RequestTracingHook:
    """httpx request hook adding a correlation ID to every outgoing request."""

    def __init__(self, environment: str = settings.ENVIRONMENT):
        self.trace_header = "X-Request-ID"
        self.environment = environment

    async def __call__(self, request: httpx.Request) -> None:
        # Keep a caller-supplied ID
        if self.trace_header not in request.headers:
            request.headers[self.trace_header] = str(uuid.uuid4())

        request.extensions["start_time"] = time.monotonic()

        if self.environment == "development":
            logger.info(
                f"Request {request.headers[self.trace_header]}: {request.method} {request.url.path}"
            )


class RequestTimingHook:
    """httpx response hook for timing and slow-request logging."""

    def __init__(self, slow_threshold: float = settings.SLOW_REQUEST_THRESHOLD):
        self.slow_threshold = slow_threshold

    async def __call__(self, response: httpx.Response) -> None:
        request = response.request
        start_time = request.extensions.get("start_time")
        if start_time is None:
            return

        process_time = time.monotonic() - start_time
        API_REQUEST_DURATION.observe(process_time)
        API_REQUEST_COUNT.labels(method=request.method, status=response.status_code).inc()

        logger.debug(f"{request.method} {request.url.path} - {response.status_code} - {process_time:.3f}s")

        if process_time > self.slow_threshold:
            logger.warning(
                f"Slow request detected: {request.method} {request.url.path} "
                f"took {process_time:.2f}s (trace_id: {request.headers.get('X-Request-ID')})"
            )


def build_event_hooks(
    slow_threshold: float = settings.SLOW_REQUEST_THRESHOLD,
    environment: str = settings.ENVIRONMENT
) -> Dict[str, List]:
    """Event hooks to pass to ``httpx.AsyncClient(event_hooks=...)``."""
    return {
        "request": [RequestTracingHook(environment)],
        "response": [RequestTimingHook(slow_threshold)],
    }
