"""
Tests for the delivery status state machine.
Transitions, idempotent completion and driver release.
"""

import asyncio
import gc
import uuid
from dataclasses import replace

import pytest
from medcourier.core.exceptions import (
    DeliveryNotFoundError,
    DriverNotFoundError,
    DriverUnavailableError,
    InvalidTransitionError,
    PersistenceError,
)
from medcourier.models import DeliveryStatus, DriverStatus
from medcourier.services.status_machine import (
    DeliveryStateMachine,
    ManualStatus,
    can_transition,
)
from tests.fixtures.test_data import SAN_ANTONIO_DROPOFF, SAN_ANTONIO_PICKUP


@pytest.fixture
def machine(memory_store):
    return DeliveryStateMachine(memory_store)


@pytest.fixture
def assigned(memory_store):
    """In-progress delivery held by a driver."""
    driver = memory_store.add_driver()
    delivery = memory_store.add_delivery(
        SAN_ANTONIO_PICKUP, SAN_ANTONIO_DROPOFF,
        status=DeliveryStatus.IN_PROGRESS, driver_id=driver.id,
    )
    memory_store.drivers[driver.id] = replace(
        driver, current_delivery_id=delivery.id, status=DriverStatus.ON_DELIVERY
    )
    return delivery, driver


class TestTransitionTable:

    def test_allowed(self):
        assert can_transition(DeliveryStatus.PENDING, DeliveryStatus.IN_PROGRESS)
        assert can_transition(DeliveryStatus.PENDING, DeliveryStatus.DECLINED)
        assert can_transition(DeliveryStatus.IN_PROGRESS, DeliveryStatus.COMPLETED)

    def test_terminal_states_have_no_exits(self):
        for terminal in (DeliveryStatus.COMPLETED, DeliveryStatus.DECLINED):
            assert terminal.is_terminal
            for target in DeliveryStatus:
                assert not can_transition(terminal, target)

    def test_no_skipping_to_completed(self):
        assert not can_transition(DeliveryStatus.PENDING, DeliveryStatus.COMPLETED)


class TestAssignDriver:

    @pytest.mark.asyncio
    async def test_assign_starts_delivery(self, machine, memory_store):
        delivery = memory_store.add_delivery(SAN_ANTONIO_PICKUP, SAN_ANTONIO_DROPOFF)
        driver = memory_store.add_driver()

        result = await machine.assign_driver(delivery.id, driver.id)

        assert result.changed is True
        assert result.delivery.status == DeliveryStatus.IN_PROGRESS
        assert result.delivery.assigned_driver_id == driver.id
        assert memory_store.drivers[driver.id].current_delivery_id == delivery.id
        assert [u.status for u in memory_store.updates] == ["Driver Assigned"]

    @pytest.mark.asyncio
    async def test_busy_driver_rejected(self, machine, memory_store):
        delivery = memory_store.add_delivery(SAN_ANTONIO_PICKUP, SAN_ANTONIO_DROPOFF)
        driver = memory_store.add_driver(on_delivery=uuid.uuid4())

        with pytest.raises(DriverUnavailableError):
            await machine.assign_driver(delivery.id, driver.id)
        assert memory_store.updates == []

    @pytest.mark.asyncio
    async def test_unknown_driver(self, machine, memory_store):
        delivery = memory_store.add_delivery(SAN_ANTONIO_PICKUP, SAN_ANTONIO_DROPOFF)
        with pytest.raises(DriverNotFoundError):
            await machine.assign_driver(delivery.id, uuid.uuid4())

    @pytest.mark.asyncio
    async def test_assign_twice_is_invalid(self, machine, memory_store):
        delivery = memory_store.add_delivery(SAN_ANTONIO_PICKUP, SAN_ANTONIO_DROPOFF)
        await machine.assign_driver(delivery.id, memory_store.add_driver().id)

        with pytest.raises(InvalidTransitionError):
            await machine.assign_driver(delivery.id, memory_store.add_driver().id)


class TestComplete:
    """Completion side effects and idempotence."""

    @pytest.mark.asyncio
    async def test_complete_pins_logs_and_releases(self, machine, memory_store, assigned):
        delivery, driver = assigned

        result = await machine.complete(delivery.id)

        assert result.changed is True
        assert result.driver_released is True
        assert result.delivery.status == DeliveryStatus.COMPLETED
        assert result.delivery.current == SAN_ANTONIO_DROPOFF
        assert result.update.status == "Delivered"
        assert result.update.location == delivery.delivery_location
        assert result.update.note == "Package has been delivered successfully"

        released = memory_store.drivers[driver.id]
        assert released.current_delivery_id is None
        assert released.status == DriverStatus.AVAILABLE

    @pytest.mark.asyncio
    async def test_complete_twice_is_noop(self, machine, memory_store, assigned):
        delivery, _ = assigned

        await machine.complete(delivery.id)
        second = await machine.complete(delivery.id)

        assert second.changed is False
        assert len(memory_store.updates) == 1
        assert memory_store.driver_releases == 1

    @pytest.mark.asyncio
    async def test_concurrent_completions_release_driver_once(self, machine, memory_store, assigned):
        delivery, _ = assigned

        results = await asyncio.gather(
            machine.complete(delivery.id),
            machine.complete(delivery.id),
            machine.apply_manual_status(delivery.id, ManualStatus.DELIVERED),
        )

        assert sum(r.changed for r in results) == 1
        assert len(memory_store.updates) == 1
        assert memory_store.driver_releases == 1

    @pytest.mark.asyncio
    async def test_driver_moved_on_is_not_released(self, machine, memory_store, assigned):
        """Only clear the driver's slot if it still points at this delivery."""
        delivery, driver = assigned
        other = uuid.uuid4()
        memory_store.drivers[driver.id] = replace(
            memory_store.drivers[driver.id], current_delivery_id=other
        )

        result = await machine.complete(delivery.id)

        assert result.driver_released is False
        assert memory_store.drivers[driver.id].current_delivery_id == other

    @pytest.mark.asyncio
    async def test_pending_cannot_complete(self, machine, memory_store):
        delivery = memory_store.add_delivery(SAN_ANTONIO_PICKUP, SAN_ANTONIO_DROPOFF)
        with pytest.raises(InvalidTransitionError):
            await machine.complete(delivery.id)

    @pytest.mark.asyncio
    async def test_unknown_delivery(self, machine):
        with pytest.raises(DeliveryNotFoundError):
            await machine.complete(uuid.uuid4())

    @pytest.mark.asyncio
    async def test_persistence_failure_surfaces(self, machine, memory_store, assigned):
        delivery, _ = assigned
        memory_store.fail_status_writes = True

        with pytest.raises(PersistenceError):
            await machine.complete(delivery.id)
        assert memory_store.deliveries[delivery.id].status == DeliveryStatus.IN_PROGRESS
        assert memory_store.updates == []

    @pytest.mark.asyncio
    async def test_retry_after_failed_log_finishes_completion(self, machine, memory_store, assigned):
        delivery, driver = assigned
        memory_store.fail_appends = True

        with pytest.raises(PersistenceError):
            await machine.complete(delivery.id)
        assert memory_store.deliveries[delivery.id].status == DeliveryStatus.COMPLETED
        assert memory_store.drivers[driver.id].current_delivery_id == delivery.id

        memory_store.fail_appends = False
        retry = await machine.complete(delivery.id)

        assert retry.changed is False
        assert retry.driver_released is True
        assert retry.update.status == "Delivered"
        assert [u.status for u in memory_store.updates] == ["Delivered"]
        assert memory_store.drivers[driver.id].current_delivery_id is None
        assert memory_store.driver_releases == 1

    @pytest.mark.asyncio
    async def test_retry_after_failed_release_frees_driver(self, machine, memory_store, assigned):
        delivery, driver = assigned
        memory_store.fail_releases = True

        with pytest.raises(PersistenceError):
            await machine.complete(delivery.id)

        memory_store.fail_releases = False
        retry = await machine.apply_manual_status(delivery.id, ManualStatus.DELIVERED)

        assert retry.driver_released is True
        assert retry.update is None
        assert [u.status for u in memory_store.updates] == ["Delivered"]
        assert memory_store.drivers[driver.id].status == DriverStatus.AVAILABLE

    @pytest.mark.asyncio
    async def test_completed_off_destination_is_pinned(self, machine, memory_store):
        delivery = memory_store.add_delivery(
            SAN_ANTONIO_PICKUP, SAN_ANTONIO_DROPOFF,
            status=DeliveryStatus.COMPLETED, current=SAN_ANTONIO_PICKUP,
        )

        result = await machine.complete(delivery.id)

        assert result.changed is False
        assert result.delivery.current == SAN_ANTONIO_DROPOFF
        assert memory_store.status_writes == [DeliveryStatus.COMPLETED]


class TestLocks:
    """Per-delivery locks do not outlive the transitions using them."""

    @pytest.mark.asyncio
    async def test_locks_released_after_transitions(self, machine, memory_store, assigned):
        delivery, _ = assigned
        pending = memory_store.add_delivery(SAN_ANTONIO_PICKUP, SAN_ANTONIO_DROPOFF)

        await machine.complete(delivery.id)
        await machine.decline(pending.id)
        gc.collect()

        assert len(machine._locks) == 0

    @pytest.mark.asyncio
    async def test_waiters_share_one_lock(self, machine, assigned):
        delivery, _ = assigned

        assert machine._lock_for(delivery.id) is machine._lock_for(delivery.id)


class TestDecline:

    @pytest.mark.asyncio
    async def test_decline_pending(self, machine, memory_store):
        delivery = memory_store.add_delivery(SAN_ANTONIO_PICKUP, SAN_ANTONIO_DROPOFF)

        result = await machine.decline(delivery.id, "Outside service area")

        assert result.delivery.status == DeliveryStatus.DECLINED
        assert result.update.status == "Declined"
        assert result.update.note == "Outside service area"

    @pytest.mark.asyncio
    async def test_decline_is_idempotent(self, machine, memory_store):
        delivery = memory_store.add_delivery(SAN_ANTONIO_PICKUP, SAN_ANTONIO_DROPOFF)
        await machine.decline(delivery.id)
        again = await machine.decline(delivery.id)

        assert again.changed is False
        assert len(memory_store.updates) == 1

    @pytest.mark.asyncio
    async def test_in_progress_cannot_decline(self, machine, assigned):
        delivery, _ = assigned
        with pytest.raises(InvalidTransitionError):
            await machine.decline(delivery.id)


class TestManualStatus:
    """Hand-reported statuses."""

    @pytest.mark.asyncio
    async def test_picked_up_logs_at_pickup(self, machine, assigned):
        delivery, _ = assigned

        result = await machine.apply_manual_status(delivery.id, ManualStatus.PICKED_UP)

        assert result.changed is False
        assert result.update.status == "Package Picked Up by Driver"
        assert result.update.location == delivery.pickup_location
        assert result.update.note == "Status updated by driver to picked up"

    @pytest.mark.asyncio
    async def test_picked_up_starts_pending_delivery(self, machine, memory_store):
        delivery = memory_store.add_delivery(SAN_ANTONIO_PICKUP, SAN_ANTONIO_DROPOFF)

        result = await machine.apply_manual_status(delivery.id, ManualStatus.PICKED_UP)

        assert result.changed is True
        assert result.delivery.status == DeliveryStatus.IN_PROGRESS

    @pytest.mark.asyncio
    async def test_in_transit(self, machine, assigned):
        delivery, _ = assigned
        result = await machine.apply_manual_status(delivery.id, ManualStatus.IN_TRANSIT)
        assert result.update.status == "Package In Transit to Destination"
        assert result.update.location == "En Route"

    @pytest.mark.asyncio
    async def test_delivered_runs_completion(self, machine, memory_store, assigned):
        delivery, driver = assigned

        result = await machine.apply_manual_status(delivery.id, "delivered")

        assert result.delivery.status == DeliveryStatus.COMPLETED
        assert result.update.status == "Package Delivered"
        assert result.driver_released is True
        assert memory_store.drivers[driver.id].current_delivery_id is None

    @pytest.mark.asyncio
    async def test_terminal_rejects_manual_updates(self, machine, memory_store):
        delivery = memory_store.add_delivery(
            SAN_ANTONIO_PICKUP, SAN_ANTONIO_DROPOFF, status=DeliveryStatus.DECLINED
        )
        with pytest.raises(InvalidTransitionError):
            await machine.apply_manual_status(delivery.id, ManualStatus.IN_TRANSIT)
