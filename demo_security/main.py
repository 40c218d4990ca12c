"""
Main FastAPI application: a greeting API protected by Azure AD bearer tokens.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import Depends, FastAPI, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from demo_security.auth import (
    JWTValidator,
    get_bearer_token,
    get_current_principal,
    get_jwt_validator,
    get_token_payload,
    require_any_authority,
    require_authority,
)
from demo_security.config import get_settings
from demo_security.models import AuthenticatedPrincipal, Greeting, GreetingCounter, TokenDetails

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

greeting_counter = GreetingCounter()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager for startup and shutdown events.
    """
    logger.info("Starting up application...")
    logger.info(f"Tenant ID: {settings.tenant_id}")
    logger.info(f"Client ID: {settings.client_id}")
    logger.info(f"Issuer: {settings.expected_issuer}")
    logger.info(f"Accepted audiences: {settings.accepted_audiences}")

    yield

    logger.info("Shutting down application...")
    await get_jwt_validator().close()
    logger.info("Application shutdown complete")


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Greeting API protected by Azure AD (Entra ID) JWT bearer tokens",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/", tags=["Health"])
async def root():
    """
    Root endpoint - public access.
    """
    return {
        "message": "Welcome to the Demo Security API",
        "version": settings.app_version,
        "status": "operational",
    }


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check endpoint - public access.
    """
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@app.get("/greeting", response_model=Greeting, tags=["Greeting"])
async def greeting(
    name: str = Query(default="World", max_length=200),
    principal: AuthenticatedPrincipal = Depends(
        require_any_authority(*settings.greeting_authorities_list)
    ),
) -> Greeting:
    """
    Greet the caller.

    Requires one of the configured greeting authorities, by default the
    delegated scope Greeting.Read (SCOPE_Greeting.Read) or the app role
    Greeting.Read (APPROLE_Greeting.Read).
    """
    logger.debug(f"Greeting requested by {principal.display_name}")
    return greeting_counter.greet(settings.greeting_template, name)


@app.get("/admin/greeting", response_model=Greeting, tags=["Greeting"])
async def admin_greeting(
    name: str = Query(default="World", max_length=200),
    principal: AuthenticatedPrincipal = Depends(require_authority(settings.admin_authority)),
) -> Greeting:
    """
    Greeting reserved for administrators.

    Requires the configured admin authority (APPROLE_Admin by default).
    """
    logger.info(f"Admin greeting requested by {principal.display_name}")
    return greeting_counter.greet(settings.greeting_template, name)


@app.get("/token_details", response_model=TokenDetails, tags=["Token"])
async def token_details(
    token: str = Depends(get_bearer_token),
    claims: Dict[str, Any] = Depends(get_token_payload),
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
    validator: JWTValidator = Depends(get_jwt_validator),
) -> TokenDetails:
    """
    Describe the caller's token: validated claims, JOSE header and the
    authorities derived from its scopes and roles.
    """
    return TokenDetails.build(
        principal,
        header=validator.get_unverified_header(token),
        claims=claims,
    )


@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """
    Global exception handler for unhandled exceptions.
    """
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "message": "An unexpected error occurred. Please try again later.",
        },
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "demo_security.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
