from datetime import datetime
import logging
import os
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.utils import get_openapi
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from unidash.config.settings import (
    API_DESCRIPTION,
    API_TITLE,
    API_VERSION,
    AUTO_CREATE_TABLES,
    CORS_ORIGINS,
    ENV,
    IS_PRODUCTION,
)
from unidash.config.database import init_db
from unidash.core.errors import ModuleContentError
from unidash.routers import admin, auth, health, history, modules

logger = logging.getLogger(__name__)

app = FastAPI(
    title=API_TITLE,
    version=API_VERSION,
    description=API_DESCRIPTION,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    swagger_ui_parameters={"defaultModelsExpandDepth": -1},  # Collapse models by default
)


# Custom OpenAPI schema to include security scheme
def custom_openapi():
    if app.openapi_schema:
        return app.openapi_schema
    openapi_schema = get_openapi(
        title=app.title,
        version=app.version,
        description=app.description,
        routes=app.routes,
    )
    openapi_schema.setdefault("components", {})["securitySchemes"] = {
        "Bearer": {
            "type": "http",
            "scheme": "bearer",
            "bearerFormat": "JWT",
            "description": "Enter JWT token in the format: Bearer <token>"
        }
    }
    openapi_schema["security"] = [{"Bearer": []}]
    app.openapi_schema = openapi_schema
    return app.openapi_schema


app.openapi = custom_openapi

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=CORS_ORIGINS != ["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


# Add request timing middleware
@app.middleware("http")
async def add_timing_middleware(request: Request, call_next):
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time
    response.headers["X-Process-Time"] = str(process_time)
    return response


@app.exception_handler(ModuleContentError)
async def module_content_error_handler(request: Request, exc: ModuleContentError):
    """Domain errors carry their own status code"""
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.detail}")
    else:
        logger.info(f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.detail}")

    content = {"detail": exc.detail, "error_type": type(exc).__name__}
    content.update(exc.extra)
    return JSONResponse(content=content, status_code=exc.status_code)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle HTTPException"""
    logger.info(f"HTTPException: {exc.status_code} - {exc.detail}")
    return JSONResponse(
        content={"detail": exc.detail},
        status_code=exc.status_code,
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler"""
    error_id = f"ERR-{int(datetime.now().timestamp())}-{os.urandom(4).hex()}"
    logger.exception(f"{error_id}: unhandled {type(exc).__name__} on {request.method} {request.url.path}")

    return JSONResponse(
        status_code=500,
        content={
            "detail": str(exc) if not IS_PRODUCTION else "Internal server error",
            "error_type": type(exc).__name__,
            "error_id": error_id,
            "timestamp": datetime.now().isoformat(),
            "path": str(request.url.path),
        },
    )


app.include_router(auth.router)
app.include_router(modules.router)
app.include_router(history.router)
app.include_router(admin.router)
app.include_router(health.router)


# Root endpoint
@app.get("/")
async def root():
    return {"msg": "Welcome", "version": API_VERSION}


@app.on_event("startup")
async def startup_event():
    """Initialize application on startup"""
    logger.info(f"Starting {API_TITLE} v{API_VERSION} ({ENV})")
    logger.info(f"CORS origins: {CORS_ORIGINS}")
    if AUTO_CREATE_TABLES:
        try:
            init_db()
        except Exception as e:
            logger.error(f"Database initialization failed: {str(e)}")
            raise


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("unidash.main:app", host="0.0.0.0", port=int(os.getenv("PORT", "8000")), reload=not IS_PRODUCTION)
