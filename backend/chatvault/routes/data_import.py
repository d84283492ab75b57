"""
Routes for importing exported user data.
"""
from typing import Optional, List, Dict, Any
from fastapi import APIRouter, Depends, Header, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from pydantic import BaseModel, Field

from chatvault.database import get_db
from chatvault.models import User
from chatvault.importer import DataImportService, LegacyImporterNotConfiguredError, get_data_import_service

router = APIRouter(prefix="/api/import", tags=["import"])


class SnapshotImport(BaseModel):
    """Table snapshot export: rows keyed by table name."""
    mode: Optional[str] = None  # "sqlite" or "postgres" on the exporting side
    schema_hash: Optional[str] = None
    data: Dict[str, List[Dict[str, Any]]] = Field(default_factory=dict)


class LegacyImport(BaseModel):
    """Older export format, handed to the legacy importer as-is."""
    data: Dict[str, Any]


async def get_current_user_id(
    x_user_id: Optional[str] = Header(default=None),
    db: AsyncSession = Depends(get_db),
) -> str:
    """Resolve the importing user from the X-User-Id header."""
    if not x_user_id:
        raise HTTPException(status_code=400, detail="X-User-Id header is required")
    user = await db.get(User, x_user_id)
    # the import runs its own transaction; do not hold this one open across it
    await db.close()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user.id


@router.get("/plans")
async def list_import_plans(
    service: DataImportService = Depends(get_data_import_service),
):
    """List the tables the importer handles, in the order it imports them."""
    return {"plans": service.get_plan_summaries()}


@router.post("/snapshot")
async def import_snapshot(
    payload: SnapshotImport,
    user_id: str = Depends(get_current_user_id),
    service: DataImportService = Depends(get_data_import_service),
):
    """
    Merge a table snapshot into the current user's data.

    Always answers 200 with the aggregate result; a failed import has
    success=false and nothing from it is persisted.
    """
    result = await service.import_snapshot(payload.data, user_id)
    return result.to_dict()


@router.post("/legacy")
async def import_legacy(
    payload: LegacyImport,
    user_id: str = Depends(get_current_user_id),
    service: DataImportService = Depends(get_data_import_service),
):
    """Import an export in the older, pre-snapshot format."""
    if not service.has_legacy_importer:
        raise HTTPException(status_code=501, detail=str(LegacyImporterNotConfiguredError()))
    result = await service.import_legacy_data(payload.data, user_id)
    return result.to_dict()
