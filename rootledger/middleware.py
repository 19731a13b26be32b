from __future__ import annotations
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from rootledger.metrics import REQS, LAT
import time


class MetricsMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start = time.time()
        resp = await call_next(request)
        dur = time.time() - start
        # label by route template so per-root paths do not explode cardinality
        route = request.scope.get("route")
        path = getattr(route, "path", request.url.path)
        LAT.labels(path=path, method=request.method).observe(dur)
        REQS.labels(path=path, method=request.method, status=str(resp.status_code)).inc()
        return resp
