"""Main FastAPI application"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.sessions import SessionMiddleware

from authserver.api.errors import OAuthHTTPError, error_response, oauth_http_error_handler
from authserver.core.config import logger, settings


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    logger.info("Starting Auth Server...")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"Version: {settings.version}")
    logger.info(f"Token store backend: {settings.token_store_backend}")

    from authserver.services.sweeper import expiry_sweeper

    try:
        from authserver.core.security import rsa_key_manager
        rsa_key_manager.load_keys()
        logger.info("✓ RSA keys loaded")

        from authserver.models import init_db
        await init_db()
        logger.info("✓ Database initialized")

        from authserver.core.seed import seed_default_data
        await seed_default_data()
        logger.info("✓ Default data seeded")

        expiry_sweeper.start()

    except Exception as e:
        logger.error(f"Failed to initialize: {e}")
        raise

    yield

    logger.info("Shutting down Auth Server...")
    await expiry_sweeper.stop()

    from authserver.services.brute_force_protection import brute_force_protection
    await brute_force_protection.close()

    from authserver.models import close_db
    await close_db()


app = FastAPI(
    title="Auth Server",
    description="OAuth2 Authorization Server",
    version=settings.version,
    docs_url="/docs" if settings.is_development else None,
    redoc_url="/redoc" if settings.is_development else None,
    lifespan=lifespan,
)

from authserver.middleware.logging import StructuredLoggingMiddleware

app.add_middleware(StructuredLoggingMiddleware)

app.add_middleware(
    SessionMiddleware,
    secret_key=settings.session_secret,
    max_age=settings.session_max_age,
    https_only=settings.is_production,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.is_development else [],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(OAuthHTTPError, oauth_http_error_handler)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """Storage or other internal failures; never leaks details to the caller"""
    logger.error(f"Unhandled error on {request.url.path}: {exc}", exc_info=True)
    return error_response("server_error", "Internal server error", status_code=500)


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return JSONResponse(
        content={
            "status": "healthy",
            "version": settings.version,
            "environment": settings.environment,
        }
    )


@app.get("/")
async def root():
    """Root endpoint"""
    return JSONResponse(
        content={
            "service": "Auth Server",
            "version": settings.version,
            "issuer": settings.issuer,
            "docs": "/docs" if settings.is_development else None,
        }
    )


# Include routers
from authserver.api.v1 import authorize, jwks, oauth

app.include_router(oauth.router, prefix="/oauth", tags=["OAuth2"])
app.include_router(authorize.router, tags=["Authorization"])
app.include_router(jwks.router, prefix="/.well-known", tags=["JWKS"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "authserver.main:app",
        host="0.0.0.0",
        port=settings.port,
        reload=settings.is_development,
        log_level=settings.log_level.lower(),
    )
