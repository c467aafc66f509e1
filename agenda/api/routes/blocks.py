from datetime import datetime

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from agenda.api.deps import get_session, get_tenant_id
from agenda.models.block import AvailabilityBlockCreate, AvailabilityBlockPublic
from agenda.services.block_service import create_block, delete_block, list_blocks

router = APIRouter(prefix="/blocks", tags=["blocks"])


@router.get("", response_model=list[AvailabilityBlockPublic])
async def list_availability_blocks(
    start: datetime = Query(...),
    end: datetime = Query(...),
    location_id: int | None = Query(None),
    provider_id: int | None = Query(None),
    session: AsyncSession = Depends(get_session),
    tenant_id: int = Depends(get_tenant_id),
) -> list[AvailabilityBlockPublic]:
    blocks = await list_blocks(session, tenant_id, start, end, location_id=location_id, provider_id=provider_id)
    return [AvailabilityBlockPublic.model_validate(b, from_attributes=True) for b in blocks]


@router.post("", response_model=AvailabilityBlockPublic, status_code=status.HTTP_201_CREATED)
async def create_availability_block(
    body: AvailabilityBlockCreate,
    session: AsyncSession = Depends(get_session),
    tenant_id: int = Depends(get_tenant_id),
) -> AvailabilityBlockPublic:
    block = await create_block(session, tenant_id, body)
    return AvailabilityBlockPublic.model_validate(block, from_attributes=True)


@router.delete("/{block_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_availability_block(
    block_id: int,
    session: AsyncSession = Depends(get_session),
    tenant_id: int = Depends(get_tenant_id),
) -> None:
    await delete_block(session, tenant_id, block_id)
