"""
Timed Quiz API - Main Application
FILE: timed_quiz/main.py
"""
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging
import time

from timed_quiz.core.config import settings
from timed_quiz.core.security import RateLimiter
from timed_quiz.db.mongodb import connect_to_mongo, close_mongo_connection, get_database, is_connected
from timed_quiz.api.quiz import router as quiz_router
from timed_quiz.services import llm_client
from timed_quiz.services.quiz_service import init_quiz_service

# Configure logging
logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

RATE_LIMIT_EXEMPT_PATHS = {"/health", "/hi"}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    # Startup
    logger.info("🚀 Starting Timed Quiz API...")

    try:
        db = None
        if settings.ledger_backend.lower() == "mongo":
            await connect_to_mongo()
            db = get_database()
            logger.info("✓ MongoDB connected")

        init_quiz_service(db=db)
        logger.info("✓ Quiz service initialized")

    except Exception as e:
        logger.error(f"❌ Startup error: {e}")
        raise

    yield

    # Shutdown
    logger.info("🛑 Shutting down Timed Quiz API...")

    if is_connected():
        await close_mongo_connection()
        logger.info("✓ MongoDB disconnected")


def create_app() -> FastAPI:
    app = FastAPI(
        title="Timed Quiz API",
        description="""
        Timed multiple-choice quiz backend.

        ## Endpoints
        - **Check roll**: `/check-roll/{id}` - cooldown pre-check for a roll number
        - **Generate quiz**: `/generate-quiz` - shuffled questions without answer key
        - **Submit quiz**: `/submit-quiz` - server-side grading and attempt logging
        - **Health**: `/health` - liveness probe
        """,
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc"
    )

    app.state.rate_limiter = RateLimiter(
        limit=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds
    )

    # Rate limiting middleware
    @app.middleware("http")
    async def rate_limit(request: Request, call_next):
        """Fixed request budget per client address"""
        if request.url.path in RATE_LIMIT_EXEMPT_PATHS or request.method == "OPTIONS":
            return await call_next(request)

        client = request.client.host if request.client else "unknown"
        allowed, retry_after = request.app.state.rate_limiter.hit(client)

        if not allowed:
            logger.warning(f"⚠️ Rate limit exceeded for {client}")
            return JSONResponse(
                status_code=429,
                content={"detail": "Too many requests, please try again later"},
                headers={"Retry-After": str(retry_after)}
            )

        return await call_next(request)

    # Request timing middleware
    @app.middleware("http")
    async def add_process_time_header(request: Request, call_next):
        """Add processing time to response headers"""
        start_time = time.time()
        response = await call_next(request)
        process_time = (time.time() - start_time) * 1000  # Convert to ms
        response.headers["X-Process-Time-Ms"] = str(round(process_time, 2))
        return response

    # Request logging middleware
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log all incoming requests"""
        logger.info(f"📨 {request.method} {request.url.path}")
        response = await call_next(request)
        logger.info(
            f"📤 {request.method} {request.url.path} - "
            f"Status: {response.status_code}"
        )
        return response

    # CORS middleware (added last so it wraps the others, 429s included)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ==================== INCLUDE ROUTERS ====================

    app.include_router(quiz_router)

    # ==================== ROOT ENDPOINTS ====================

    @app.get("/", tags=["Root"])
    async def root():
        """Root endpoint with API information"""
        return {
            "message": "Timed Quiz API",
            "version": app.version,
            "status": "operational",
            "endpoints": {
                "docs": "/docs",
                "check_roll": "/check-roll/{id}",
                "generate_quiz": "/generate-quiz",
                "submit_quiz": "/submit-quiz",
                "health": "/health"
            }
        }

    @app.get("/hi", tags=["Health"])
    async def hi():
        return {"message": "hi"}

    @app.get("/health", tags=["Health"])
    async def health_check():
        """
        Liveness probe

        Reports configuration of the question source and ledger; it does
        not call the upstream APIs.
        """
        components = {
            "question_source": {"kind": settings.question_source},
            "ledger": {"backend": settings.ledger_backend}
        }

        if settings.question_source.lower() == "generated":
            components["llm"] = llm_client.health_check(settings.llm_provider)

        if settings.ledger_backend.lower() == "mongo":
            components["ledger"]["connected"] = is_connected()

        return {
            "message": "hi",
            "status": "healthy",
            "timestamp": time.time(),
            "components": components
        }

    return app


app = create_app()


# ==================== RUN APPLICATION ====================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "timed_quiz.main:app",
        host="0.0.0.0",
        port=5000,
        reload=False,
        log_level=settings.log_level.lower()
    )
