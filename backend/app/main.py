import logging
from contextlib import asynccontextmanager
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import settings
from app.db.session import close_db, init_db
from app.routers import auth, essays
from app.middleware import LoggingMiddleware
from app.utils.rate_limiter import check_rate_limit

# Настройка логирования
log_level = getattr(logging, settings.log_level.upper(), logging.INFO)
logging.basicConfig(
    level=log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S"
)

logging.getLogger("uvicorn.access").setLevel(logging.INFO)
logging.getLogger("uvicorn").setLevel(logging.INFO)

# SQL логирование (включается через настройку)
if settings.log_sql:
    logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO)
else:
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("🚀 Starting Essay Corrector API server...")
    logger.info(f"📊 Environment: {'Development' if settings.secret_key == 'change-me-in-production-use-env' else 'Production'}")
    logger.info(f"🔗 Database: {settings.database_url.split('@')[1] if '@' in settings.database_url else 'configured'}")
    logger.info(f"🤖 Grader: {settings.ai_priority} ({settings.openai_model if settings.ai_priority == 'gpt' else settings.gemini_model})")
    if settings.root_path:
        logger.info(f"🌐 Root path: {settings.root_path} (all routes will be prefixed with this)")
    if settings.auto_create_tables:
        await init_db()
        logger.info("🗄️ Tables created (auto_create_tables)")
    logger.info("✅ Server started successfully")
    yield
    logger.info("🛑 Shutting down server...")
    await close_db()


# Получаем root_path из настроек (для работы за reverse proxy)
app = FastAPI(title="Essay Corrector API", version="0.1.0", root_path=settings.root_path, lifespan=lifespan)

# Middleware для логирования (должен быть первым, чтобы логировать все запросы)
app.add_middleware(LoggingMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production (frontend origin)
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Глобальный обработчик исключений
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(
        f"Unhandled exception: {exc.__class__.__name__}: {str(exc)}",
        exc_info=True,
        extra={"path": str(request.url), "method": request.method}
    )
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


rate_limited = [Depends(check_rate_limit)]
app.include_router(auth.router, prefix="/auth", tags=["auth"], dependencies=rate_limited)
app.include_router(essays.router, prefix="/api/essays", tags=["essays"], dependencies=rate_limited)


@app.get("/health")
def health():
    return {"status": "ok"}
