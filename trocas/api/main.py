"""FastAPI application entry point."""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from trocas.api.middleware.rate_limit import RateLimitMiddleware
from trocas.api.routes import commerce, health, oauth, portal, returns, shipping, stores
from trocas.config import settings
from trocas.exceptions import TrocasError, UpstreamError
from trocas.services.cache import get_cache

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("application_startup", env=settings.app_env)
    yield
    await get_cache().close()
    logger.info("application_shutdown")


# Create FastAPI app
app = FastAPI(
    title="Trocas.app",
    description="Returns and exchanges for Nuvemshop stores",
    version="0.1.0",
    lifespan=lifespan,
)


@app.exception_handler(TrocasError)
async def trocas_error_handler(request: Request, exc: TrocasError):
    log = logger.error if exc.status_code >= 500 else logger.warning
    extra = {}
    if isinstance(exc, UpstreamError):
        extra = {"upstream_status": exc.upstream_status, "raw_response": (exc.raw_response or "")[:500]}
    log(
        "request_failed",
        path=request.url.path,
        code=exc.code,
        error=exc.message,
        **extra,
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=422,
        content={
            "success": False,
            "error": "Dados inválidos",
            "details": jsonable_encoder(exc.errors()),
        },
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("unhandled_error", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=500, content={"success": False, "error": "Erro interno"})


# Rate limiting (public portal only)
if settings.rate_limit_enabled:
    app.add_middleware(RateLimitMiddleware)

# CORS middleware; the portal is embedded on merchant domains
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(portal.router, prefix="/api/v1", tags=["Portal"])
app.include_router(oauth.router, prefix="/api/v1", tags=["OAuth"])
app.include_router(commerce.router, prefix="/api/v1", tags=["Commerce"])
app.include_router(stores.router, prefix="/api/v1", tags=["Stores"])
app.include_router(returns.router, prefix="/api/v1", tags=["Return Requests"])
app.include_router(shipping.router, prefix="/api/v1", tags=["Shipping"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "Trocas.app",
        "version": "0.1.0",
        "status": "running",
    }


def main():
    import uvicorn

    uvicorn.run(
        "trocas.api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.is_development,
    )


if __name__ == "__main__":
    main()
