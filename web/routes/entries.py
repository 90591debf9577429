"""
Entry routes

Single entry lookup, edit history and annotations.
"""

from fastapi import APIRouter, Depends, Path

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.register import RegisterError, RegisterService, SchemaRegistry
from web.dependencies import get_db, get_db_write, get_schemas
from web.errors import http_error
from web.models.requests import AnnotationCreateRequest
from web.models.responses import AnnotationResponse, EditHistoryResponse, EntryResponse

router = APIRouter(prefix="/api/entries", tags=["Entries"])


@router.get("/{entry_id}", response_model=EntryResponse)
async def get_entry(
    entry_id: str = Path(..., description="Entry ID"),
    db: SQLiteAdapter = Depends(get_db),
    schemas: SchemaRegistry = Depends(get_schemas),
) -> EntryResponse:
    """Entry by id"""
    service = RegisterService(db, schemas)

    try:
        entry = await service.get_entry(entry_id)
    except RegisterError as e:
        raise http_error(e) from e

    return EntryResponse.from_entry(entry)


@router.get("/{entry_id}/history", response_model=EditHistoryResponse)
async def get_history(
    entry_id: str = Path(..., description="Any entry of the record"),
    db: SQLiteAdapter = Depends(get_db),
    schemas: SchemaRegistry = Depends(get_schemas),
) -> EditHistoryResponse:
    """Edit history: original entry followed by its corrections"""
    service = RegisterService(db, schemas)

    try:
        history = await service.get_history(entry_id)
    except RegisterError as e:
        raise http_error(e) from e

    return EditHistoryResponse.from_history(history)


@router.post("/{entry_id}/annotations", response_model=AnnotationResponse, status_code=201)
async def add_annotation(
    request: AnnotationCreateRequest,
    entry_id: str = Path(..., description="Entry ID"),
    db: SQLiteAdapter = Depends(get_db_write),
    schemas: SchemaRegistry = Depends(get_schemas),
) -> AnnotationResponse:
    """Annotate an entry (the entry itself is never changed)"""
    service = RegisterService(db, schemas)

    try:
        annotation = await service.annotate(
            entry_id=entry_id,
            annotation_type=request.annotation_type,
            text=request.annotation_text,
            created_by=request.created_by,
        )
    except RegisterError as e:
        raise http_error(e) from e

    return AnnotationResponse.from_annotation(annotation)


@router.get("/{entry_id}/annotations", response_model=list[AnnotationResponse])
async def list_annotations(
    entry_id: str = Path(..., description="Entry ID"),
    db: SQLiteAdapter = Depends(get_db),
    schemas: SchemaRegistry = Depends(get_schemas),
) -> list[AnnotationResponse]:
    """Annotations of an entry, oldest first"""
    service = RegisterService(db, schemas)

    try:
        annotations = await service.list_annotations(entry_id)
    except RegisterError as e:
        raise http_error(e) from e

    return [AnnotationResponse.from_annotation(a) for a in annotations]
