from __future__ import annotations

import logging
import time
import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from staff_auth.core.request_context import get_tenant_id, get_user_id, request_scope

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class ObservabilityMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id

        status_code = 500
        endpoint = request.url.path
        method = request.method

        with request_scope(request_id):
            response = None
            try:
                response = await call_next(request)
                status_code = response.status_code
                return response
            finally:
                duration_ms = round((time.perf_counter() - start) * 1000, 2)
                logger.info(
                    "request completed",
                    extra={
                        "request_id": request_id,
                        "tenant_id": get_tenant_id() or _extract_tenant_id(request),
                        "user_id": get_user_id() or _extract_user_id(request),
                        "endpoint": endpoint,
                        "method": method,
                        "status_code": status_code,
                        "duration_ms": duration_ms,
                    },
                )
                if response is not None:
                    response.headers[REQUEST_ID_HEADER] = request_id


def _extract_tenant_id(request: Request) -> str | None:
    user = getattr(request.state, "user", None)
    if user is not None and getattr(user, "tenant_id", None) is not None:
        return str(user.tenant_id)
    tenant = request.path_params.get("tenant_id") or request.query_params.get("tenant_id")
    return str(tenant) if tenant else None


def _extract_user_id(request: Request) -> str | None:
    user = getattr(request.state, "user", None)
    if user is None:
        return None
    user_id = getattr(user, "id", None)
    return str(user_id) if user_id is not None else None
