import logging
import time
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from schemas.common import ErrorDetail, ErrorResponse
from services.errors import MarksError

logger = logging.getLogger(__name__)


def _latency_ms(request: Request) -> int:
    started = getattr(request.state, "started_at", None)
    return int((time.perf_counter() - started) * 1000) if started else 0


def _error_response(request: Request, status_code: int, code: str, message: str) -> JSONResponse:
    body = ErrorResponse(error=ErrorDetail(code=code, message=message), latency_ms=_latency_ms(request))
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


def add_error_handlers(app: FastAPI):
    # ✅ 워크플로우 예외 → 코드별 HTTP 상태 (PersistenceError는 재시도 가능, NoReviewerAssigned는 배정부터 수정)
    @app.exception_handler(MarksError)
    async def marks_error_handler(request: Request, exc: MarksError):
        logger.warning(f"{request.method} {request.url.path} 실패: {exc.code} - {exc.message}")
        return _error_response(request, exc.status_code, exc.code, exc.message)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception(f"처리되지 않은 예외: {request.method} {request.url.path}")
        return _error_response(request, 500, "INTERNAL_ERROR", str(exc))
