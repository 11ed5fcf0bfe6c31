import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.provisioning.api.v1.routes_accounts import router as accounts_router_v1
from src.provisioning.api.v1.routes_reconciliation import router as reconciliation_router_v1
from src.provisioning.api.v1.routes_system import router as system_router_v1
from src.provisioning.api.v1.routes_whitelist import router as whitelist_router_v1
from src.provisioning.config import settings
from src.provisioning.errors import register_exception_handlers
from src.provisioning.infra.db.bootstrap import (
    bootstrap_admin_if_needed,
    init_identity_store,
    init_sql_repositories,
)

logging.basicConfig(level=settings.log_level.upper())

app = FastAPI(title="Whitelist Provisioning API")


@app.on_event("startup")
async def on_startup() -> None:
    """Application startup hook.

    Wires the configured record and identity stores (in-memory by default)
    and creates the bootstrap admin when BOOTSTRAP_ADMIN_* is set.
    """

    init_sql_repositories()
    init_identity_store()
    bootstrap_admin_if_needed()


register_exception_handlers(app)

# CORS: all origins unless CORS_ALLOW_ORIGINS lists them. Set it in
# production deployments.
allow_origins = [origin.strip() for origin in settings.cors_allow_origins.split(",") if origin.strip()] or ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health", tags=["system"])
async def health_check() -> dict:
    """Basic liveness probe for the API root."""
    return {"status": "ok"}


# Versioned API routers
app.include_router(system_router_v1, prefix="/api/v1")
app.include_router(whitelist_router_v1, prefix="/api/v1")
app.include_router(reconciliation_router_v1, prefix="/api/v1")
app.include_router(accounts_router_v1, prefix="/api/v1")
