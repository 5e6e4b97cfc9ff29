"""Request logging middleware"""

import time
import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from authserver.core.config import logger
from authserver.core.dependencies import get_client_ip
from authserver.services.stats_service import stats_service


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    """Logs each request with a correlation ID and counts it"""

    async def dispatch(self, request: Request, call_next):
        correlation_id = request.headers.get("X-Correlation-ID") or str(uuid.uuid4())
        request.state.correlation_id = correlation_id
        stats_service.increment("httpRequest")

        start_time = time.time()
        client_ip = get_client_ip(request)

        logger.debug(
            f"Request started: {request.method} {request.url.path}",
            extra={
                "correlation_id": correlation_id,
                "method": request.method,
                "path": request.url.path,
                "client_ip": client_ip,
            },
        )

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                f"Request failed: {request.method} {request.url.path} - {e}",
                extra={
                    "correlation_id": correlation_id,
                    "path": request.url.path,
                    "duration_ms": round((time.time() - start_time) * 1000, 2),
                    "client_ip": client_ip,
                },
                exc_info=True,
            )
            raise

        logger.info(
            f"{request.method} {request.url.path} - {response.status_code}",
            extra={
                "correlation_id": correlation_id,
                "status_code": response.status_code,
                "duration_ms": round((time.time() - start_time) * 1000, 2),
                "client_ip": client_ip,
            },
        )

        response.headers["X-Correlation-ID"] = correlation_id
        return response
