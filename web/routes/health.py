"""
Health check endpoint

GET /api/health - server status
"""

from fastapi import APIRouter, Depends

from core.register import SchemaRegistry
from core.utils.timezone import now_utc
from web.dependencies import get_schemas
from web.models.responses import HealthResponse

router = APIRouter(prefix="/api", tags=["Health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(
    schemas: SchemaRegistry = Depends(get_schemas),
) -> HealthResponse:
    """Server status

    Returns:
        HealthResponse: status, configured register types, server time
    """
    return HealthResponse(
        status="ok",
        register_types=schemas.register_types,
        timestamp=now_utc(),
    )
