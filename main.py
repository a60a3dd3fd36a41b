from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging

from config.settings import settings

# ✅ 로깅 설정
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
# HTTP 라이브러리 디버그 로그 비활성화
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)
logger = logging.getLogger(__name__)

from database.db import Base, engine
import models.assessment_records, models.students, models.class_teachers  # noqa: F401  테이블 등록

# ✅ 미들웨어 임포트
from middlewares.timing import TimingMiddleware
from middlewares.error_handler import add_error_handlers

# ✅ 라우터 임포트
from routers import marks_entry, marks_review, marks_changes, results

# ✅ 상태 변경 알림
from services.notifications import ChangeNotifier, RecentChangesFeed, log_status_change

app = FastAPI(
    title=settings.APP_TITLE,
    description=settings.APP_DESCRIPTION,
    version=settings.APP_VERSION,
)

# ✅ CORS 설정 (프론트엔드 연동)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ✅ 요청 지연 측정 미들웨어 (응답 헤더 X-Latency-Ms 추가)
app.add_middleware(TimingMiddleware)

# ✅ 전역 에러 핸들러 등록 (일관된 JSON 에러 포맷)
add_error_handlers(app)

# ✅ 알림 허브: 로그 + 대시보드용 최근 변경 피드 구독
app.state.notifier = ChangeNotifier()
app.state.change_feed = RecentChangesFeed(maxlen=settings.CHANGE_FEED_SIZE)
app.state.notifier.subscribe(log_status_change)
app.state.notifier.subscribe(app.state.change_feed)

# ✅ /v1 프리픽스 라우터 등록
app.include_router(marks_entry.router,    prefix="/v1")   # ✅ 과목 교사 성적 입력
app.include_router(marks_review.router,   prefix="/v1")   # ✅ 담임 검토/공개
app.include_router(results.router,        prefix="/v1")   # ✅ 학생/학부모 공개 성적
app.include_router(marks_changes.router,  prefix="/v1")   # ✅ 상태 변경 피드


@app.on_event("startup")
def _create_tables():
    Base.metadata.create_all(bind=engine)
    logger.info(f"DB 테이블 확인 완료 ({settings.DB_DIALECT})")


# ✅ 헬스체크 엔드포인트
@app.get("/health")
def health_check():
    return {"status": "ok", "message": "API is running"}


# ✅ 루트 엔드포인트
@app.get("/")
def root():
    return {"message": f"{settings.APP_TITLE} - {settings.APP_DESCRIPTION}"}
