from fastapi import FastAPI, APIRouter, Request
from fastapi.responses import JSONResponse
from starlette.middleware.cors import CORSMiddleware
import logging

from .config import Settings, get_settings
from .database import create_mongo_client
from .integrations.midtrans import MidtransClient
from .ratelimit import RateLimiter, create_rate_limiter
from .api.routes import dev, payments, vouchers

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def create_app(
    settings: Settings = None,
    db=None,
    gateway: MidtransClient = None,
    rate_limiter: RateLimiter = None,
) -> FastAPI:
    """
    Build the API. Collaborators not passed in are created from settings;
    the Mongo client is only opened when no database handle is given.
    """
    settings = settings or get_settings()

    app = FastAPI(title="Travedia Booking API", version="1.0.0")
    app.state.settings = settings
    app.state.mongo_client = None

    if db is None:
        app.state.mongo_client = create_mongo_client(settings)
        db = app.state.mongo_client[settings.db_name]
    app.state.db = db
    app.state.gateway = gateway or MidtransClient.from_settings(settings)
    app.state.rate_limiter = rate_limiter or create_rate_limiter(settings)

    api_router = APIRouter(prefix="/api")

    # Health Check
    @api_router.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "ok",
            "environment": settings.environment,
            "midtrans": "production" if settings.midtrans_is_production else "sandbox",
            "payments_dry_run": settings.payments_dry_run,
            "signature_verification": settings.verify_webhook_signature,
        }

    app.include_router(api_router)
    app.include_router(payments.router, prefix="/api/payment")
    app.include_router(payments.router, prefix="/api/payments", include_in_schema=False)
    app.include_router(payments.webhook_router)
    app.include_router(payments.booking_router)
    app.include_router(vouchers.router)

    # Never exposed outside development
    if settings.is_development:
        app.include_router(dev.router)
        logger.info("🛠️ Development routes mounted under /api/dev")

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_credentials=True,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(Exception)
    async def unhandled_exception(request: Request, exc: Exception):
        logger.error(f"💥 Unhandled error on {request.method} {request.url.path}: {exc}")
        message = "Something went wrong!" if settings.is_production else str(exc)
        return JSONResponse(status_code=500, content={"success": False, "message": message})

    @app.on_event("startup")
    async def log_startup():
        logger.info(f"🚀 Travedia API starting ({settings.environment})")
        logger.info(f"📱 Frontend URL: {settings.frontend_url}")
        logger.info(f"🔔 Midtrans webhook URL: {settings.webhook_url}")
        if not settings.midtrans_server_key:
            logger.warning("⚠️ MIDTRANS_SERVER_KEY not set; gateway calls will fail")

    @app.on_event("shutdown")
    async def shutdown_clients():
        await app.state.rate_limiter.close()
        if app.state.mongo_client is not None:
            app.state.mongo_client.close()

    return app
