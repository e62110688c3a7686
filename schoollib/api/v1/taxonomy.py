from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from schoollib.core.database import get_db
from schoollib.core.security import require_capability
from schoollib.models.taxonomy import TaxonomyType
from schoollib.services.taxonomy_service import TaxonomyService
from schoollib.schemas.taxonomy import TaxonomyCreate, TaxonomyResponse

router = APIRouter()


@router.get("/taxonomy", response_model=List[TaxonomyResponse])
async def get_taxonomy(
    entry_type: Optional[TaxonomyType] = Query(None, alias="type"),
    db: AsyncSession = Depends(get_db)
):
    """Categories and subjects offered when cataloguing books."""
    return await TaxonomyService.get_entries(db, entry_type)


@router.post("/taxonomy", response_model=TaxonomyResponse, status_code=status.HTTP_201_CREATED)
async def create_taxonomy_entry(
    data: TaxonomyCreate,
    db: AsyncSession = Depends(get_db)
):
    return await TaxonomyService.add_entry(db, data.type, data.name)


@router.delete(
    "/taxonomy/{entry_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_capability)]
)
async def delete_taxonomy_entry(
    entry_id: int,
    db: AsyncSession = Depends(get_db)
):
    await TaxonomyService.delete_entry(db, entry_id)
    return None
