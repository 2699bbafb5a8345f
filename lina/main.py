"""
LINA Backend API
Chat relay with trial quota, subscriptions and Bold payments.
"""
from dotenv import load_dotenv
load_dotenv()

import logging
import sys
from typing import Optional

# Render captures stdout; logging module is more reliable than print
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler(sys.stdout)],
    force=True  # Override any existing configuration
)

logger = logging.getLogger(__name__)

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from lina.api.routes import auth, chat, payments, webhooks
from lina.core.config import Settings
from lina.core.errors import ConfigurationError, InvalidInput, LinaError, PayloadTooLarge
from lina.core.rate_limit import configure_limiter, limiter
from lina.db.session import create_db_engine
from lina.schemas.chat import HealthResponse
from lina.services.bold_client import BoldClient
from lina.services.completion import CompletionRelay, build_relay
from lina.services.gate import Gate
from lina.services.identity import IdentityIssuer
from lina.services.ledger import AccessLedger, InMemoryLedger, SqlLedger


def build_ledger(settings: Settings) -> AccessLedger:
    if settings.ledger_backend == "sql":
        ledger = SqlLedger(create_db_engine(settings.database_url))
        ledger.create_tables()
        logger.info("Access ledger: SQL (%s)", settings.database_url.split("@")[-1])
        return ledger
    logger.warning("Access ledger: in-memory; all records are lost on restart")
    return InMemoryLedger()


def create_app(
    settings: Optional[Settings] = None,
    ledger: Optional[AccessLedger] = None,
    relay: Optional[CompletionRelay] = None,
    bold_client: Optional[BoldClient] = None,
) -> FastAPI:
    settings = settings or Settings.from_env()

    app = FastAPI(title="LINA Backend")
    app.state.settings = settings
    app.state.ledger = ledger
    app.state.relay = relay
    app.state.bold_client = bold_client
    app.state.limiter = limiter
    configure_limiter(settings.rate_limit_per_min)

    @app.on_event("startup")
    async def startup_event():
        """Refuse to serve traffic without required configuration."""
        try:
            settings.validate()
        except ConfigurationError as e:
            logger.critical("Configuration error, server will not start: %s", e)
            raise

        if app.state.ledger is None:
            app.state.ledger = build_ledger(settings)
        if app.state.relay is None:
            app.state.relay = build_relay(settings)
        if app.state.bold_client is None:
            app.state.bold_client = BoldClient(settings.bold_api_key, settings.bold_base_url)
        app.state.issuer = IdentityIssuer(app.state.ledger, settings)
        app.state.gate = Gate(app.state.ledger, settings)

        logger.info(
            "LINA backend ready (provider=%s, model=%s, payments=%s, free_questions=%s)",
            settings.llm_provider, app.state.relay.model, settings.payments_mode,
            settings.free_question_limit,
        )

    @app.exception_handler(LinaError)
    async def lina_error_handler(request: Request, exc: LinaError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        logger.info("Rejected malformed request to %s: %s", request.url.path, exc.errors())
        return JSONResponse(status_code=400, content=InvalidInput().to_dict())

    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    @app.middleware("http")
    async def body_size_guard(request: Request, call_next):
        # Rejected on the declared length, before the body is read
        content_length = request.headers.get("content-length")
        if content_length and content_length.isdigit() and int(content_length) > settings.max_body_bytes:
            logger.warning("Rejected %s byte body on %s", content_length, request.url.path)
            error = PayloadTooLarge()
            return JSONResponse(status_code=error.status_code, content=error.to_dict())
        return await call_next(request)

    # Add CORS middleware
    allow_all = "*" in settings.allowed_origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if allow_all else settings.allowed_origins,
        allow_credentials=not allow_all,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[chat.TOKEN_HEADER],
    )

    @app.get("/health", response_model=HealthResponse)
    async def health():
        return {"ok": True, "model": settings.model, "provider": settings.llm_provider}

    # Register routers
    app.include_router(auth.router, prefix="/api", tags=["Auth"])
    app.include_router(chat.router, prefix="/api", tags=["Chat"])
    app.include_router(payments.router, prefix="/api", tags=["Payments"])
    app.include_router(webhooks.router, prefix="/webhooks", tags=["Webhooks"])

    return app


app = create_app()
