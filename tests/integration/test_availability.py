"""
Integration tests for availability resolution against the database.
"""

import pytest
from sqlalchemy.exc import OperationalError

from clinic_scheduler.core.errors import InvalidArgumentError, NotFoundError, UnavailableError
from clinic_scheduler.models import AppointmentStatus
from clinic_scheduler.services.schedule_service import ScheduleCache, get_clinic_schedule
from clinic_scheduler.services.slot_service import (
    get_available_slots,
    get_available_slots_for_range,
    get_booked_times,
)
from tests.utils import MONDAY, SUNDAY, add_appointment, create_clinic

FULL_DAY = [f"{h:02d}:{m:02d}" for h in range(9, 17) for m in (0, 30)]


class _UnreachableSession:
    """Stands in for a session whose database connection is gone."""

    async def execute(self, statement):
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))


class TestGetAvailableSlots:
    """Test get_available_slots."""

    @pytest.mark.asyncio
    async def test_open_day_without_bookings(self, db_session):
        clinic = await create_clinic(db_session)

        slots = await get_available_slots(db_session, clinic.id, MONDAY, doctor_id=10)

        assert slots == FULL_DAY
        assert len(slots) == 16

    @pytest.mark.asyncio
    async def test_closed_day_is_empty_not_an_error(self, db_session):
        clinic = await create_clinic(db_session)

        assert await get_available_slots(db_session, clinic.id, SUNDAY, doctor_id=10) == []

    @pytest.mark.asyncio
    async def test_doctor_bookings_are_removed(self, db_session):
        clinic = await create_clinic(db_session)
        await add_appointment(db_session, clinic.id, MONDAY, "09:30", doctor_id=10, patient_id=100)
        await add_appointment(db_session, clinic.id, MONDAY, "14:00", doctor_id=10, patient_id=101)

        slots = await get_available_slots(db_session, clinic.id, MONDAY, doctor_id=10)

        assert "09:30" not in slots
        assert "14:00" not in slots
        assert len(slots) == 14
        assert slots == sorted(slots)

    @pytest.mark.asyncio
    async def test_other_doctors_bookings_do_not_block(self, db_session):
        clinic = await create_clinic(db_session)
        await add_appointment(db_session, clinic.id, MONDAY, "09:30", doctor_id=11, patient_id=100)

        slots = await get_available_slots(db_session, clinic.id, MONDAY, doctor_id=10)

        assert slots == FULL_DAY

    @pytest.mark.asyncio
    async def test_either_party_being_booked_blocks_the_slot(self, db_session):
        clinic = await create_clinic(db_session)
        await add_appointment(db_session, clinic.id, MONDAY, "10:00", doctor_id=10, patient_id=999)
        await add_appointment(db_session, clinic.id, MONDAY, "11:00", doctor_id=77, patient_id=100)

        slots = await get_available_slots(db_session, clinic.id, MONDAY, doctor_id=10, patient_id=100)

        assert "10:00" not in slots
        assert "11:00" not in slots
        assert len(slots) == 14

    @pytest.mark.asyncio
    async def test_patient_only_query(self, db_session):
        clinic = await create_clinic(db_session)
        await add_appointment(db_session, clinic.id, MONDAY, "16:30", doctor_id=10, patient_id=100)

        slots = await get_available_slots(db_session, clinic.id, MONDAY, patient_id=100)

        assert slots == FULL_DAY[:-1]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [AppointmentStatus.CANCELED.value, AppointmentStatus.COMPLETED.value])
    async def test_inactive_appointments_do_not_block(self, db_session, status):
        clinic = await create_clinic(db_session)
        await add_appointment(db_session, clinic.id, MONDAY, "09:00", doctor_id=10, status=status)

        assert await get_available_slots(db_session, clinic.id, MONDAY, doctor_id=10) == FULL_DAY

    @pytest.mark.asyncio
    async def test_in_progress_appointment_blocks(self, db_session):
        clinic = await create_clinic(db_session)
        await add_appointment(
            db_session, clinic.id, MONDAY, "09:00", doctor_id=10, status=AppointmentStatus.IN_PROGRESS.value
        )

        assert "09:00" not in await get_available_slots(db_session, clinic.id, MONDAY, doctor_id=10)

    @pytest.mark.asyncio
    async def test_legacy_times_with_seconds_are_truncated(self, db_session):
        clinic = await create_clinic(db_session)
        await add_appointment(db_session, clinic.id, MONDAY, "12:30:00", doctor_id=10)

        assert await get_booked_times(db_session, clinic.id, MONDAY, doctor_id=10) == {"12:30"}
        assert "12:30" not in await get_available_slots(db_session, clinic.id, MONDAY, doctor_id=10)

    @pytest.mark.asyncio
    async def test_other_clinics_bookings_do_not_block(self, db_session):
        clinic = await create_clinic(db_session)
        other = await create_clinic(db_session, name="Otra Clinica")
        await add_appointment(db_session, other.id, MONDAY, "09:00", doctor_id=10)

        assert await get_available_slots(db_session, clinic.id, MONDAY, doctor_id=10) == FULL_DAY

    @pytest.mark.asyncio
    async def test_repaired_schedule_is_used(self, db_session):
        clinic = await create_clinic(
            db_session,
            schedule={"monday": [{"start": "09:00", "end": "12:00"}, {"start": "03:00", "end": "19:00"}]},
        )

        slots = await get_available_slots(db_session, clinic.id, MONDAY, doctor_id=10)

        assert slots[:6] == ["09:00", "09:30", "10:00", "10:30", "11:00", "11:30"]
        assert slots[6] == "15:00"
        assert slots[-1] == "18:30"

    @pytest.mark.asyncio
    async def test_date_is_required(self, db_session):
        clinic = await create_clinic(db_session)

        with pytest.raises(InvalidArgumentError):
            await get_available_slots(db_session, clinic.id, None, doctor_id=10)

    @pytest.mark.asyncio
    async def test_doctor_or_patient_is_required(self, db_session):
        clinic = await create_clinic(db_session)

        with pytest.raises(InvalidArgumentError):
            await get_available_slots(db_session, clinic.id, MONDAY)

    @pytest.mark.asyncio
    async def test_unknown_clinic(self, db_session):
        with pytest.raises(NotFoundError):
            await get_available_slots(db_session, 4040, MONDAY, doctor_id=10)

    @pytest.mark.asyncio
    async def test_clinic_without_schedule(self, db_session):
        clinic = await create_clinic(db_session, schedule=None)

        with pytest.raises(NotFoundError):
            await get_available_slots(db_session, clinic.id, MONDAY, doctor_id=10)

    @pytest.mark.asyncio
    async def test_store_failure_propagates_as_unavailable(self):
        with pytest.raises(UnavailableError):
            await get_available_slots(_UnreachableSession(), 1, MONDAY, doctor_id=10)


class TestAvailabilityRange:
    """Test get_available_slots_for_range and the per-request schedule cache."""

    @pytest.mark.asyncio
    async def test_week_of_availability(self, db_session):
        clinic = await create_clinic(db_session)
        await add_appointment(db_session, clinic.id, MONDAY, "09:00", doctor_id=10)

        week = await get_available_slots_for_range(db_session, clinic.id, MONDAY, 7, doctor_id=10)

        assert [d.isoformat() for d, _ in week] == [f"2024-01-0{n}" for n in range(1, 8)]
        assert week[0][1] == FULL_DAY[1:]
        assert all(slots == FULL_DAY for _, slots in week[1:5])
        assert week[5][1] == []
        assert week[6][1] == []

    @pytest.mark.asyncio
    async def test_schedule_is_read_once_per_cache(self, db_session):
        clinic = await create_clinic(db_session)
        cache = ScheduleCache()

        await get_available_slots_for_range(db_session, clinic.id, MONDAY, 3, doctor_id=10, cache=cache)

        assert cache.get(clinic.id) is not None
        assert await get_clinic_schedule(_UnreachableSession(), clinic.id, cache=cache) is cache.get(clinic.id)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("days", [0, -1, 15])
    async def test_days_out_of_range(self, db_session, days):
        clinic = await create_clinic(db_session)

        with pytest.raises(InvalidArgumentError):
            await get_available_slots_for_range(db_session, clinic.id, MONDAY, days, doctor_id=10)
