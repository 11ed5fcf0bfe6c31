from fastapi import APIRouter

from src.provisioning.config import settings

router = APIRouter(prefix="", tags=["system"])


@router.get("/health")
async def health_check_v1() -> dict:
    """API v1 health endpoint, with the configured store backends."""
    return {
        "status": "ok",
        "version": "v1",
        "identity_backend": settings.identity_backend,
        "record_store": "sql" if settings.use_sql_repos and settings.database_url else "memory",
    }
