from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from dispensary.api.deps import get_settings
from dispensary.api.v1.drugs.schemas import (
    DrugCreate,
    DrugUpdate,
    DrugDelete,
    DrugResponse,
    DrugListResponse,
    DrugEnvelope,
)
from dispensary.core.config import Settings
from dispensary.domain.inventory.service import InventoryService
from dispensary.infrastructure.database import get_db

router = APIRouter(prefix="/drugs", tags=["Drugs"])


@router.get("", response_model=DrugListResponse)
async def list_drugs(
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings)
):
    """List live drugs, newest first"""
    drugs = await InventoryService(db, settings).list_drugs()
    return DrugListResponse(drugs=[DrugResponse.model_validate(d) for d in drugs])


@router.post("", response_model=DrugEnvelope, status_code=status.HTTP_201_CREATED)
async def create_drug(
    drug_in: DrugCreate,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings)
):
    drug = await InventoryService(db, settings).create_drug(drug_in.model_dump())
    return DrugEnvelope(drug=DrugResponse.model_validate(drug))


@router.put("", response_model=DrugEnvelope)
async def update_drug(
    drug_in: DrugUpdate,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings)
):
    drug = await InventoryService(db, settings).update_drug(
        drug_in.drug_id, drug_in.changes(), updated_by=drug_in.updated_by
    )
    return DrugEnvelope(drug=DrugResponse.model_validate(drug))


@router.delete("", response_model=DrugEnvelope)
async def delete_drug(
    drug_in: DrugDelete,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings)
):
    """Soft delete a drug"""
    drug = await InventoryService(db, settings).delete_drug(drug_in.drug_id)
    return DrugEnvelope(drug=DrugResponse.model_validate(drug))
