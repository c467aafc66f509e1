import logging
from datetime import UTC, datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from agenda.core.clock import to_naive_utc
from agenda.core.errors import BlockNotFound, InvalidProvider, InvalidWindow, LocationNotFound
from agenda.models.block import AvailabilityBlock, AvailabilityBlockCreate
from agenda.services import repository

logger = logging.getLogger(__name__)


def _aware(dt: datetime) -> datetime:
    return dt.replace(tzinfo=UTC) if dt.tzinfo is None else dt


async def create_block(session: AsyncSession, tenant_id: int, data: AvailabilityBlockCreate) -> AvailabilityBlock:
    start, end = _aware(data.start_at), _aware(data.end_at)
    if start >= end:
        raise InvalidWindow("Block start must be before its end")
    if data.location_id is not None:
        if await repository.get_location_by_id(session, tenant_id, data.location_id) is None:
            raise LocationNotFound(f"Location {data.location_id} not found")
    if data.provider_id is not None:
        if await repository.get_provider_by_id(session, tenant_id, data.provider_id) is None:
            raise InvalidProvider(f"Provider {data.provider_id} not found")

    block = AvailabilityBlock(
        tenant_id=tenant_id,
        location_id=data.location_id,
        provider_id=data.provider_id,
        start_at=to_naive_utc(start),
        end_at=to_naive_utc(end),
        reason=data.reason,
    )
    session.add(block)
    await session.flush()
    await session.refresh(block)
    logger.info(
        "Block %s created: location=%s provider=%s %s..%s",
        block.id,
        block.location_id,
        block.provider_id,
        block.start_at.isoformat(),
        block.end_at.isoformat(),
    )
    return block


async def list_blocks(
    session: AsyncSession,
    tenant_id: int,
    start: datetime,
    end: datetime,
    location_id: int | None = None,
    provider_id: int | None = None,
) -> list[AvailabilityBlock]:
    if _aware(start) >= _aware(end):
        raise InvalidWindow("Range start must be before its end")
    return await repository.query_blocks(session, tenant_id, _aware(start), _aware(end), location_id, provider_id)


async def delete_block(session: AsyncSession, tenant_id: int, block_id: int) -> None:
    result = await session.execute(
        select(AvailabilityBlock).where(AvailabilityBlock.id == block_id, AvailabilityBlock.tenant_id == tenant_id)
    )
    block = result.scalar_one_or_none()
    if block is None:
        raise BlockNotFound(f"Block {block_id} not found")
    await session.delete(block)
    await session.flush()
    logger.info("Block %s deleted", block_id)
