from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

# Core
from core.config import settings
from core.config_validator import validate_config_on_startup
from core.logging_config import logger
from services.provisioning import ProvisioningError

# -------------------------------------------------
# Routers
# -------------------------------------------------
from routers.auth import router as auth_router
from routers.signup import router as signup_router
from routers.admin import router as admin_router
from routers.permissions import router as permissions_router

from routers.tenants import router as tenants_router
from routers.properties import router as properties_router

from routers.reservations import router as reservations_router
from routers.tasks import router as tasks_router
from routers.checklists import router as checklists_router
from routers.notes import router as notes_router
from routers.contacts import router as contacts_router
from routers.inventory import router as inventory_router
from routers.manual import router as manual_router
from routers.cleaning import router as cleaning_router

from routers.health import router as health_router


# -------------------------------------------------
# Error body: {"success": false, "error": "..."} + extras
# -------------------------------------------------
def error_body(detail) -> dict:
    if isinstance(detail, dict):
        body = {"success": False, **detail}
        body["error"] = str(detail.get("error") or detail.get("message") or "Request failed")
        return body
    return {"success": False, "error": str(detail)}


def validation_fields(exc: RequestValidationError) -> list:
    fields = []
    for err in exc.errors():
        # loc = ("body", "property", "name") → "property.name"
        loc = [str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path")]
        fields.append({"field": ".".join(loc) or None, "message": err.get("msg")})
    return fields


# -------------------------------------------------
# Create the Application
# -------------------------------------------------
def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.PROJECT_NAME,
        version="1.0.0",
        description="Stia API: vacation-property management on Supabase",
    )

    # -------------------------------------------------
    # CORS
    # -------------------------------------------------
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.BACKEND_CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # -------------------------------------------------
    # Startup
    # -------------------------------------------------
    @app.on_event("startup")
    async def on_startup():
        logger.info(f"Starting {settings.PROJECT_NAME} ({settings.ENV})")
        validate_config_on_startup()
        logger.info(f"{len(app.routes)} routes registered")

    # -------------------------------------------------
    # Error handling
    # -------------------------------------------------
    @app.exception_handler(StarletteHTTPException)
    async def handle_http(request: Request, exc: StarletteHTTPException):
        if exc.status_code in (401, 403, 500):
            logger.warning(f"HTTP {exc.status_code} at {request.url.path}: {exc.detail}")
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(exc.detail),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def handle_validation(request: Request, exc: RequestValidationError):
        fields = validation_fields(exc)
        first = fields[0] if fields else {}
        message = f"{first.get('field')}: {first.get('message')}" if first.get("field") else first.get("message")
        return JSONResponse(
            status_code=400,
            content={
                "success": False,
                "error": f"Invalid request: {message or 'malformed body'}",
                "fields": fields,
            },
        )

    @app.exception_handler(ProvisioningError)
    async def handle_provisioning(request: Request, exc: ProvisioningError):
        logger.warning(
            f"Provisioning failed at {request.url.path}: step={exc.step} "
            f"created={exc.created} partial={exc.partial_success}"
        )
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(Exception)
    async def handle_unhandled(request: Request, exc: Exception):
        logger.error("Unhandled error at %s", request.url, exc_info=exc)
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": "Internal server error"},
        )

    # -------------------------------------------------
    # Register Routers
    # -------------------------------------------------

    # Auth
    app.include_router(auth_router)
    app.include_router(signup_router)

    # Admin
    app.include_router(admin_router)
    app.include_router(permissions_router)

    # Tenancy
    app.include_router(tenants_router)
    app.include_router(properties_router)

    # Features
    app.include_router(reservations_router)
    app.include_router(tasks_router)
    app.include_router(checklists_router)
    app.include_router(notes_router)
    app.include_router(contacts_router)
    app.include_router(inventory_router)
    app.include_router(manual_router)
    app.include_router(cleaning_router)

    # Health
    app.include_router(health_router)

    @app.get("/", include_in_schema=False)
    async def root():
        if settings.BASE_URL:
            return RedirectResponse(settings.BASE_URL)
        return {"service": settings.PROJECT_NAME, "docs": "/docs"}

    return app


# Create the global FastAPI instance
app = create_app()
