"""FastAPI application wiring for the account service."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from psycopg_pool import ConnectionPool

from .api.errors import register_exception_handlers
from .api.routes import router as v1_router
from .config import Settings, get_settings
from .domain.service import AccountService
from .notifications.email import EmailSender, LoggingEmailSender, NotificationServiceEmailSender
from .repository import AccountRepository
from .security.passwords import PasswordHasher
from .security.rate_limiter import LoginThrottle, SlidingWindowRateLimiter
from .security.redis_rate_limiter import RedisSlidingWindowRateLimiter
from .security.tokens import TokenIssuer
from .storage.local import LocalFileStorage
from .storage.object_storage import S3ObjectStorage

logger = logging.getLogger(__name__)


def build_login_throttle(settings: Settings) -> LoginThrottle:
    """Instantiate the configured throttle backend, preferring Redis when available."""
    if settings.rate_limit_backend == "redis" and settings.redis_url:
        import redis

        try:
            client = redis.from_url(settings.redis_url)
            # ensure connectivity early to fail fast and fall back
            client.ping()
        except redis.RedisError as exc:
            logger.warning("redis login throttle unavailable, falling back to in-memory: %s", exc)
        else:
            logger.info("login throttle configured for redis backend")
            return RedisSlidingWindowRateLimiter(
                client,
                max_requests=settings.login_rate_limit_requests,
                window_seconds=settings.login_rate_limit_window_seconds,
            )

    logger.info("login throttle using in-memory backend")
    return SlidingWindowRateLimiter(
        max_requests=settings.login_rate_limit_requests,
        window_seconds=settings.login_rate_limit_window_seconds,
    )


def build_email_sender(settings: Settings) -> EmailSender:
    if settings.email_backend == "http":
        return NotificationServiceEmailSender(
            settings.notification_service_url,
            timeout_seconds=settings.email_timeout_seconds,
        )
    return LoggingEmailSender()


def build_account_service(
    settings: Settings, pool: ConnectionPool, email_sender: EmailSender
) -> AccountService:
    """Wire the account service and its collaborators from settings."""
    object_storage = None
    if settings.s3_bucket:
        object_storage = S3ObjectStorage.from_settings(settings).upload
    else:
        logger.warning("S3_BUCKET not set; object storage uploads are disabled")

    return AccountService(
        AccountRepository(pool),
        hasher=PasswordHasher(rounds=settings.bcrypt_rounds),
        tokens=TokenIssuer(
            secret=settings.jwt_secret,
            issuer=settings.jwt_issuer,
            access_ttl_seconds=settings.jwt_ttl_seconds,
            verification_ttl_seconds=settings.verification_ttl_seconds,
        ),
        email_sender=email_sender,
        verification_base_url=settings.verification_base_url,
        object_storage=object_storage,
        local_storage=LocalFileStorage(settings.upload_dir).save,
    )


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the FastAPI application; shared resources open in the lifespan."""
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Initialise shared resources (Postgres pool, services) for the app lifecycle."""
        if not settings.jwt_secret:
            raise RuntimeError("JWT_SECRET must be set before the account service starts")
        pool = ConnectionPool(
            settings.database_url,
            min_size=settings.db_pool_min_size,
            max_size=settings.db_pool_max_size,
            timeout=settings.db_pool_timeout_seconds,
            kwargs={"options": f"-c statement_timeout={settings.db_statement_timeout_ms}"},
            open=False,
        )
        pool.open()
        email_sender = build_email_sender(settings)
        app.state.pool = pool
        app.state.account_service = build_account_service(settings, pool, email_sender)
        app.state.login_throttle = build_login_throttle(settings)
        try:
            yield
        finally:
            if isinstance(email_sender, NotificationServiceEmailSender):
                email_sender.close()
            pool.close()

    app = FastAPI(title=settings.app_name, version=settings.version, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        max_age=600,
    )
    register_exception_handlers(app)

    @app.get("/healthz", tags=["health"])
    def healthz() -> dict[str, str]:
        """Return a minimal readiness indicator used by orchestration systems."""
        return {"status": "ok"}

    @app.get("/metrics", include_in_schema=False)
    def metrics() -> Response:
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    app.include_router(v1_router)
    return app


app = create_app()
