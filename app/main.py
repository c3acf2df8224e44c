import asyncio
import logging
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from app.config import settings
from app.core.rate_limit import limiter
from app.database.supabase_client import get_supabase
from app.modules.auth import routes as auth_routes
from app.modules.payments import routes as payments_routes
from app.modules.picks import routes as picks_routes
from app.modules.vip import routes as vip_routes
from app.modules.wallet import routes as wallet_routes
from app.modules.webhooks import routes as webhooks_routes
from app.modules.notifications import routes as notifications_routes
from app.modules.tracking import routes as tracking_routes
from app.modules.currency import routes as currency_routes
from app.modules.promotions import routes as promotions_routes
from app.modules.entries import routes as entries_routes

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%SZ",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.app_name,
    debug=settings.debug,
    redirect_slashes=False,
)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled exception: %s", exc)
    if settings.is_production:
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})
    return JSONResponse(status_code=500, content={"detail": str(exc)})


class SecurityHeadersMiddleware:
    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        async def send_with_headers(message):
            if message["type"] == "http.response.start":
                message.setdefault("headers", [])
                message["headers"].extend([
                    (b"X-Content-Type-Options", b"nosniff"),
                    (b"X-Frame-Options", b"DENY"),
                    (b"Referrer-Policy", b"strict-origin-when-cross-origin"),
                ])
            await send(message)

        await self.app(scope, receive, send_with_headers)


app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include module routes
app.include_router(auth_routes.router, prefix="/api")
app.include_router(payments_routes.router, prefix="/api")
app.include_router(picks_routes.router, prefix="/api")
app.include_router(vip_routes.router, prefix="/api")
app.include_router(wallet_routes.router, prefix="/api")
app.include_router(webhooks_routes.router, prefix="/api")
app.include_router(notifications_routes.router, prefix="/api")
app.include_router(tracking_routes.router, prefix="/api")
app.include_router(currency_routes.router, prefix="/api")
app.include_router(promotions_routes.router, prefix="/api")
app.include_router(entries_routes.router, prefix="/api")


@app.on_event("startup")
async def startup_event():
    logger.info("Application startup")
    if settings.pending_cleanup_enabled:
        from app.modules.picks.pending_cleanup import pending_cleanup_loop
        app.state.pending_cleanup_task = asyncio.create_task(pending_cleanup_loop())
        logger.info("Pending cleanup started - stale pick checkouts expire every 5 minutes")


@app.on_event("shutdown")
async def shutdown_event():
    task = getattr(app.state, "pending_cleanup_task", None)
    if task:
        task.cancel()
    logger.info("Application shutdown")


@app.get("/")
async def root():
    return {"message": "Welcome to motormania-backend", "status": "healthy"}


@app.get("/health")
@limiter.exempt
async def health():
    return {"status": "healthy"}


@app.get("/ready")
@limiter.exempt
async def ready():
    """Readiness probe: the service is ready once Supabase answers a trivial query."""
    try:
        get_supabase().table("clerk_users").select("clerk_id").limit(1).execute()
    except Exception as e:
        logger.warning(f"Readiness check failed: {e}")
        return JSONResponse(status_code=503, content={"status": "unavailable", "database": "unreachable"})
    return {"status": "ready", "database": "ok"}
