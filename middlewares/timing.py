import logging
import time
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from config.settings import settings

logger = logging.getLogger(__name__)

class TimingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        request.state.started_at = start          # 에러 핸들러가 latency_ms 계산에 사용
        response = await call_next(request)
        latency_ms = int((time.perf_counter() - start) * 1000)
        response.headers["X-Latency-Ms"] = str(latency_ms)
        if latency_ms >= settings.SLOW_REQUEST_MS:
            logger.warning(f"느린 요청: {request.method} {request.url.path} {latency_ms}ms")
        return response
