import time
import uuid
import logging
from typing import Callable
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)


class LoggingMiddleware(BaseHTTPMiddleware):
    """Логирование запросов: метод, путь, статус, время. Тело запроса не пишем (там текст сочинения)."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex[:12]
        method = request.method
        path = request.url.path
        client_host = request.client.host if request.client else "unknown"

        logger.info(f"→ [{request_id}] {method} {path} | Client: {client_host}")

        try:
            response = await call_next(request)
        except Exception as e:
            process_time = time.time() - start_time
            logger.error(
                f"✗ [{request_id}] {method} {path} | Error: {str(e)} | Time: {process_time:.3f}s",
                exc_info=True
            )
            raise

        process_time = time.time() - start_time
        status_code = response.status_code
        log_level = logging.INFO
        if status_code >= 500:
            log_level = logging.ERROR
        elif status_code >= 400:
            log_level = logging.WARNING
        logger.log(log_level, f"← [{request_id}] {method} {path} | Status: {status_code} | Time: {process_time:.3f}s")

        response.headers["X-Process-Time"] = f"{process_time:.3f}"
        response.headers["X-Request-ID"] = request_id
        return response
