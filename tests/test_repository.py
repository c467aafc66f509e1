from datetime import datetime

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from agenda.core.errors import ConstraintViolation, StorageUnavailable
from agenda.models import Appointment
from agenda.services import repository


def _appointment(seed, **overrides) -> Appointment:
    values = dict(
        tenant_id=seed.tenant_id,
        location_id=seed.location_id,
        patient_id=seed.patient_id,
        start_at=datetime(2030, 1, 3, 13, 0),
        end_at=datetime(2030, 1, 3, 13, 30),
        status="pending",
    )
    values.update(overrides)
    return Appointment(**values)


async def test_operational_error_becomes_storage_unavailable(session, seed, monkeypatch) -> None:
    async def unreachable(self, *args, **kwargs):
        raise OperationalError("SELECT 1", {}, ConnectionRefusedError("connection refused"))

    monkeypatch.setattr(AsyncSession, "execute", unreachable)

    with pytest.raises(StorageUnavailable) as exc_info:
        await repository.get_location_by_id(session, seed.tenant_id, seed.location_id)
    assert exc_info.value.status_code == 503
    assert isinstance(exc_info.value.__cause__, OperationalError)


@pytest.mark.parametrize(
    "overrides",
    [
        {"location_id": 9999},
        {"patient_id": 9999},
        {"end_at": datetime(2030, 1, 3, 13, 0)},
    ],
)
async def test_invalid_appointment_row_is_a_constraint_violation(session, seed, overrides: dict) -> None:
    with pytest.raises(ConstraintViolation) as exc_info:
        await repository.insert_appointment(session, _appointment(seed, **overrides))

    assert exc_info.value.status_code == 409
    # the savepoint was rolled back and the session is still usable
    stored = await repository.insert_appointment(session, _appointment(seed))
    assert stored.id is not None
