"""
Web model package

Pydantic schema definitions
"""

from web.models.requests import (
    AnnotationCreateRequest,
    BalanceCheckRequest,
    EntryAppendRequest,
    LedgerOpenRequest,
)
from web.models.responses import (
    ActivePharmacistResponse,
    AnnotationResponse,
    BalanceCheckResponse,
    BalanceReportResponse,
    EditHistoryResponse,
    EntryListResponse,
    EntryResponse,
    ErrorResponse,
    GridResponse,
    GridRowResponse,
    HealthResponse,
    IntegrityResponse,
    LedgerResponse,
)

__all__ = [
    # Requests
    "LedgerOpenRequest",
    "EntryAppendRequest",
    "BalanceCheckRequest",
    "AnnotationCreateRequest",
    # Responses
    "HealthResponse",
    "ErrorResponse",
    "LedgerResponse",
    "EntryResponse",
    "EntryListResponse",
    "GridResponse",
    "GridRowResponse",
    "BalanceReportResponse",
    "BalanceCheckResponse",
    "EditHistoryResponse",
    "AnnotationResponse",
    "IntegrityResponse",
    "ActivePharmacistResponse",
]
