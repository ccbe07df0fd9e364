from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import Response

from .db.dynamodb.errors import DdbError
from .errors import HTTP_STATUS_BY_KIND, LeadHubError
from .middleware.access_log import AccessLogMiddleware
from .middleware.auth import AuthMiddleware
from .middleware.cors import build_allowed_origins
from .middleware.request_context import RequestContextMiddleware
from .modules.directory.directory_service import DirectoryService
from .modules.leads.commands import LeadCommands
from .modules.leads.lead_service import LeadService
from .modules.notifications.dispatcher import NotificationDispatcher
from .modules.notifications.registry import ConnectionRegistry
from .observability.logging import configure_logging, get_logger
from .problem_details import problem_response
from .routers.health import router as health_router
from .routers.notifications import router as notifications_router
from .routers.pm_leads import router as pm_leads_router
from .routers.projects import router as projects_router
from .routers.vendor_leads import router as vendor_leads_router
from .routers.workspaces import router as workspaces_router
from .settings import settings


@dataclass
class AppServices:
    registry: ConnectionRegistry
    dispatcher: NotificationDispatcher
    directory: DirectoryService
    commands: LeadCommands

    def close(self) -> None:
        self.dispatcher.close()
        self.directory.close()
        self.registry.clear()


def build_services() -> AppServices:
    registry = ConnectionRegistry()
    dispatcher = NotificationDispatcher(
        registry,
        max_workers=settings.notify_max_workers,
        timeout_s=settings.notify_timeout_seconds,
    )
    directory = DirectoryService(
        timeout_s=settings.directory_timeout_seconds,
        cache_ttl_s=settings.vendor_directory_cache_ttl_seconds,
    )
    service = LeadService(directory=directory, dispatcher=dispatcher)
    return AppServices(registry=registry, dispatcher=dispatcher, directory=directory, commands=LeadCommands(service))


def create_app(*, services: AppServices | None = None) -> FastAPI:
    # Logging must be configured before the app starts handling requests.
    configure_logging(level=settings.log_level)
    log = get_logger("startup")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        svc = services or build_services()
        app.state.connection_registry = svc.registry
        app.state.notification_dispatcher = svc.dispatcher
        app.state.lead_commands = svc.commands
        log.info("app_started", settings=settings.to_log_safe_dict())
        try:
            yield
        finally:
            svc.close()
            log.info("app_stopped")

    app = FastAPI(
        title="LeadHub Backend",
        version="1.0.0",
        default_response_class=ORJSONResponse,
        redirect_slashes=False,
        lifespan=lifespan,
    )

    # Middlewares (last added is outermost). Auth runs inside CORS so auth
    # failures still carry CORS headers.
    app.add_middleware(AuthMiddleware)
    app.add_middleware(AccessLogMiddleware, exclude_paths={"/"})
    app.add_middleware(
        CORSMiddleware,
        allow_origins=build_allowed_origins(
            frontend_base_url=settings.frontend_base_url,
            frontend_urls=settings.frontend_urls,
            include_dev=not settings.is_production,
        ),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Requested-With", "X-Request-Id"],
        expose_headers=["X-Request-Id"],
        max_age=3000,
    )
    app.add_middleware(RequestContextMiddleware)

    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(LeadHubError, _lead_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(DdbError, _ddb_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _unhandled_exception_handler)

    app.include_router(health_router)
    app.include_router(projects_router, prefix="/api/projects")
    app.include_router(pm_leads_router, prefix="/api/pm-leads")
    app.include_router(vendor_leads_router, prefix="/api/vendor-leads")
    app.include_router(workspaces_router, prefix="/api/workspaces")
    app.include_router(notifications_router, prefix="/api/notifications")

    return app


def _lead_error_handler(request: Request, exc: LeadHubError) -> Response:
    return problem_response(
        request=request,
        status_code=HTTP_STATUS_BY_KIND.get(exc.kind, 500),
        title=exc.kind.value,
        detail=exc.message,
        extensions={"errorKind": exc.kind.value, **({"details": exc.details} if exc.details else {})},
    )


def _ddb_error_handler(request: Request, exc: DdbError) -> Response:
    return problem_response(
        request=request,
        status_code=exc.status_code,
        title=exc.title,
        detail=exc.message,
        extensions=exc.problem_extensions(),
    )


def _http_exception_handler(request: Request, exc: StarletteHTTPException) -> Response:
    status_code = int(getattr(exc, "status_code", 500) or 500)
    detail = getattr(exc, "detail", None)
    safe_detail = str(detail) if detail is not None else None
    if status_code == 404:
        safe_detail = safe_detail if safe_detail and safe_detail != "Not Found" else "Route not found"
    return problem_response(request=request, status_code=status_code, detail=safe_detail)


def _validation_error_handler(request: Request, exc: RequestValidationError) -> Response:
    errors: list[dict[str, object]] = []
    for e in exc.errors():
        loc = e.get("loc") or ()
        errors.append(
            {
                "location": list(loc) if isinstance(loc, (list, tuple)) else [],
                "path": ".".join(str(x) for x in loc if x not in ("body", "query", "path")),
                "message": e.get("msg", "Invalid value"),
                "type": e.get("type"),
            }
        )
    return problem_response(
        request=request,
        status_code=422,
        title="Validation Failed",
        detail="Request validation failed",
        errors=errors,
    )


def _unhandled_exception_handler(request: Request, exc: Exception) -> Response:
    actor = getattr(getattr(request, "state", None), "actor", None)
    get_logger("unhandled").exception(
        "unhandled_exception",
        http_method=str(getattr(request, "method", "") or "").upper() or None,
        path=str(getattr(getattr(request, "url", None), "path", "") or ""),
        actor_id=getattr(actor, "id", None),
    )
    return problem_response(
        request=request,
        status_code=500,
        title="Internal Server Error",
        detail=str(exc) if exc else None,
    )


app = create_app()
