import logging
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from dispo.api.deps import GuardDenied
from dispo.config import Settings, settings as default_settings
from dispo.database import seeded_store
from dispo.middleware.logging_config import configure_logging
from dispo.middleware.metrics import PrometheusMiddleware
from dispo.middleware.request_context import RequestContextMiddleware
from dispo.middleware.security_headers import SecurityHeadersMiddleware
from dispo.services.audit_service import AuditLog
from dispo.services.digest_scheduler import DigestScheduler
from dispo.services.email_provider import EmailProvider, build_email_provider
from dispo.services.notification_service import NotificationService
from dispo.services.notification_store import NotificationStorage, build_storage
from dispo.services.rule_engine import AssignmentBlockedError, RuleEngine

from dispo.api.analytics import router as analytics_router
from dispo.api.audit import router as audit_router
from dispo.api.management import router as management_router
from dispo.api.notifications import router as notifications_router
from dispo.api.rules import router as rules_router
from dispo.api.shifts import router as shifts_router
from dispo.api.templates import router as templates_router

logger = logging.getLogger("dispo")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: digest timer
    scheduler: DigestScheduler = app.state.digest_scheduler
    scheduler.start()
    yield
    # Shutdown
    await scheduler.stop()
    await app.state.notification_service.email_provider.aclose()
    await app.state.notification_service.storage.aclose()


def create_app(
    settings: Settings | None = None,
    *,
    email_provider: EmailProvider | None = None,
    storage: NotificationStorage | None = None,
) -> FastAPI:
    settings = settings or default_settings

    app = FastAPI(
        title="Disposition SWA",
        description="Shift dispatch back end: role-based guards and assignment notifications",
        version="0.1.0",
        lifespan=lifespan,
    )

    # ── Services ──────────────────────────────────────────────────────────────
    service = NotificationService(
        email_provider or build_email_provider(settings),
        storage or build_storage(settings.notification_storage, settings.redis_url),
        digest_schedule=settings.digest_schedule,
        is_enabled=settings.notifications_enabled,
        send_timeout=settings.email_send_timeout_seconds,
    )
    app.state.settings = settings
    app.state.notification_service = service
    app.state.digest_scheduler = DigestScheduler(service, settings.digest_schedule)
    app.state.audit_log = AuditLog()
    app.state.rule_engine = RuleEngine(app.state.audit_log)
    app.state.shift_store = seeded_store()

    # ── Middleware ────────────────────────────────────────────────────────────
    origins = [o.strip() for o in settings.allowed_origins.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
        allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
    )
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(PrometheusMiddleware)
    app.add_middleware(SecurityHeadersMiddleware, hsts=settings.environment == "production")

    # ── Error handling ────────────────────────────────────────────────────────
    @app.exception_handler(GuardDenied)
    async def guard_denied_handler(request: Request, exc: GuardDenied):
        return JSONResponse(status_code=exc.status_code, content=exc.body)

    @app.exception_handler(AssignmentBlockedError)
    async def assignment_blocked_handler(request: Request, exc: AssignmentBlockedError):
        return JSONResponse(status_code=409, content={
            "error": "Conflict",
            "message": str(exc),
            **exc.evaluation.summary(),
        })

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        tb = traceback.format_exc()
        logger.error(
            "Unhandled %s on %s %s: %s\n%s",
            type(exc).__name__, request.method, request.url.path, exc, tb,
        )
        content = {"error": "Internal Server Error"}
        if settings.environment == "development":
            content["message"] = f"{type(exc).__name__}: {exc}"
        return JSONResponse(status_code=500, content=content)

    # ── Routes ────────────────────────────────────────────────────────────────
    app.include_router(shifts_router)
    app.include_router(audit_router)
    app.include_router(management_router)
    app.include_router(templates_router)
    app.include_router(analytics_router)
    app.include_router(notifications_router)
    app.include_router(rules_router)

    @app.get("/api/health")
    async def health_check():
        return {
            "status": "healthy",
            "environment": settings.environment,
            "notifications": {
                "enabled": service.is_enabled,
                "digest_schedule": settings.digest_schedule,
                "scheduler_running": app.state.digest_scheduler.running,
            },
        }

    @app.get("/metrics", include_in_schema=False)
    async def metrics():
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    return app


configure_logging(default_settings.log_level, default_settings.log_format)
app = create_app()
