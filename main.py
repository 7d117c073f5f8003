"""
Formcraft Backend
Accounts, forms, and Paystack-backed subscriptions
"""

from pathlib import Path
import logging
import traceback

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

# Import routers
from auth import auth_router
from routers.forms_router import forms_router
from routers.payments_router import payments_router
from routers.responses_router import responses_router
from backend.utils.errors import AppError, InternalError
from backend.utils.responses import error_response, success_response
from utils.rate_limit import RateLimiterMiddleware, build_rate_limiter_options
from database import init_db
from config.settings import settings

# ============================================================================
# LOGGING
# ============================================================================

# Logging setup - write ALL events to <LOG_DIR>/app.log
LOGS_DIR = Path(settings.log_dir)
LOGS_DIR.mkdir(parents=True, exist_ok=True)
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.FileHandler(LOGS_DIR / "app.log"),
        logging.StreamHandler()
    ]
)
logger = logging.getLogger(__name__)

# ============================================================================
# FASTAPI APP SETUP
# ============================================================================

app = FastAPI(title="Formcraft")


# Uncaught exception middleware - logs all unhandled exceptions and returns 500
class UncaughtExceptionMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        try:
            return await call_next(request)
        except Exception as e:
            logger.error(f"Uncaught exception: {e}\n{traceback.format_exc()}")
            return error_response(
                InternalError.error_code,
                status=500,
                message=InternalError.default_message,
            )


# Security headers middleware
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses: HSTS, X-Frame-Options, X-Content-Type-Options"""
    async def dispatch(self, request, call_next):
        response = await call_next(request)

        # Only set HSTS in production where HTTPS is guaranteed
        if settings.env and settings.env.lower() == "production":
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        # X-Frame-Options: Prevent clickjacking attacks
        response.headers["X-Frame-Options"] = "DENY"

        # X-Content-Type-Options: Prevent MIME type sniffing
        response.headers["X-Content-Type-Options"] = "nosniff"

        return response


app.add_middleware(UncaughtExceptionMiddleware)
app.add_middleware(RateLimiterMiddleware, **build_rate_limiter_options())
app.add_middleware(SecurityHeadersMiddleware)

# CORS MUST be near the bottom
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.frontend_url],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Render service errors; internal ones are logged, never explained."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc!r}")
    return error_response(exc.error_code, status=exc.status_code, message=exc.message)


# ============================================================================
# STARTUP CHECKS
# ============================================================================
@app.on_event("startup")
async def check_env_keys_on_startup():
    """Check for missing environment variables on startup (non-fatal warning)"""
    key_checks = {
        "JWT_SECRET_KEY": settings.jwt_secret_key,
        "PAYSTACK_SECRET_KEY": settings.paystack_secret_key,
    }
    missing = [env_key for env_key, value in key_checks.items() if not value]
    if missing:
        logger.warning(f"Startup check: Missing environment variables: {', '.join(missing)}")
    else:
        logger.info("Startup check: All critical environment variables are set")


# Initialize database on startup
@app.on_event("startup")
async def initialize_database():
    """Create all tables."""
    try:
        await init_db()
        logger.info("✅ Database initialized successfully")
    except Exception as e:
        logger.error(f"❌ Database initialization failed: {e}")
        raise


@app.get("/health")
async def health():
    return success_response({"status": "healthy"})


# ============================================================================
# INCLUDE ROUTERS
# ============================================================================
app.include_router(auth_router)
app.include_router(payments_router)
app.include_router(forms_router)
app.include_router(responses_router)

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
