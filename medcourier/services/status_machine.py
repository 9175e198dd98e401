"""
Delivery status state machine.

    pending ──assign──▶ in_progress ──arrive / deliver──▶ completed
       │
       └──decline──▶ declined

completed and declined are terminal. Every transition appends exactly one
tracking update. Completion pins the courier to the destination and frees
the assigned driver; repeating it only fills in steps that failed.
"""

import asyncio
import enum
import logging
import uuid
import weakref
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, FrozenSet, Optional

from medcourier.core.exceptions import (
    DeliveryNotFoundError,
    DriverNotFoundError,
    DriverUnavailableError,
    InvalidTransitionError,
)
from medcourier.models import DeliveryStatus
from medcourier.services.store import DeliverySnapshot, TrackingStore, TrackingUpdateRecord

logger = logging.getLogger(__name__)


ALLOWED_TRANSITIONS: Dict[DeliveryStatus, FrozenSet[DeliveryStatus]] = {
    DeliveryStatus.PENDING: frozenset({DeliveryStatus.IN_PROGRESS, DeliveryStatus.DECLINED}),
    DeliveryStatus.IN_PROGRESS: frozenset({DeliveryStatus.COMPLETED}),
    DeliveryStatus.COMPLETED: frozenset(),
    DeliveryStatus.DECLINED: frozenset(),
}

# Log labels written by a completion
COMPLETION_LABELS: FrozenSet[str] = frozenset({"Delivered", "Package Delivered"})


def can_transition(current: DeliveryStatus, target: DeliveryStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


class ManualStatus(str, enum.Enum):
    """Status updates a driver or administrator can report by hand."""
    PICKED_UP = "picked_up"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"


# Label, location (None = use the delivery's own address) and target status
_MANUAL_UPDATES = {
    ManualStatus.PICKED_UP: ("Package Picked Up by Driver", None, DeliveryStatus.IN_PROGRESS),
    ManualStatus.IN_TRANSIT: ("Package In Transit to Destination", "En Route", DeliveryStatus.IN_PROGRESS),
    ManualStatus.DELIVERED: ("Package Delivered", None, DeliveryStatus.COMPLETED),
}


@dataclass(frozen=True)
class TransitionResult:
    """Outcome of a state-machine call."""
    delivery: DeliverySnapshot
    changed: bool
    update: Optional[TrackingUpdateRecord] = None
    driver_released: bool = False


class DeliveryStateMachine:
    """
    Applies delivery transitions against a TrackingStore.

    Transitions on the same delivery are serialized with a per-delivery lock,
    so two concurrent completions cannot both run the side effects. Store
    failures propagate to the caller.
    """

    def __init__(
        self,
        store: TrackingStore,
        clock: Callable[[], datetime] = datetime.utcnow,
    ) -> None:
        self.store = store
        self._clock = clock
        self._locks: "weakref.WeakValueDictionary[uuid.UUID, asyncio.Lock]" = (
            weakref.WeakValueDictionary()
        )

    def _lock_for(self, delivery_id: uuid.UUID) -> asyncio.Lock:
        # Locks live only while a transition holds or waits on them
        lock = self._locks.get(delivery_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[delivery_id] = lock
        return lock

    async def _load(self, delivery_id: uuid.UUID) -> DeliverySnapshot:
        delivery = await self.store.get_delivery(delivery_id)
        if delivery is None:
            raise DeliveryNotFoundError(delivery_id)
        return delivery

    async def _log(
        self, delivery_id: uuid.UUID, status: str, location: str, note: str
    ) -> TrackingUpdateRecord:
        record = TrackingUpdateRecord(
            delivery_id=delivery_id,
            status=status,
            timestamp=self._clock(),
            location=location,
            note=note,
        )
        await self.store.append_tracking_update(record)
        return record

    # ==================== pending -> in_progress ====================

    async def assign_driver(
        self, delivery_id: uuid.UUID, driver_id: uuid.UUID
    ) -> TransitionResult:
        """Assign a free driver to a pending delivery and start it."""
        async with self._lock_for(delivery_id):
            delivery = await self._load(delivery_id)
            if not can_transition(delivery.status, DeliveryStatus.IN_PROGRESS):
                raise InvalidTransitionError(
                    delivery_id, delivery.status.value, DeliveryStatus.IN_PROGRESS.value
                )

            driver = await self.store.get_driver(driver_id)
            if driver is None:
                raise DriverNotFoundError(driver_id)
            if driver.current_delivery_id is not None:
                raise DriverUnavailableError(
                    f"Driver {driver_id} is already on delivery {driver.current_delivery_id}"
                )

            await self.store.assign_driver(delivery_id, driver_id)
            record = await self._log(
                delivery_id,
                status="Driver Assigned",
                location="Driver location",
                note="Driver assigned to delivery",
            )
            logger.info(f"Driver {driver_id} assigned to delivery {delivery_id}")

            return TransitionResult(
                delivery=await self._load(delivery_id),
                changed=True,
                update=record,
            )

    # ==================== in_progress -> completed ====================

    async def complete(
        self,
        delivery_id: uuid.UUID,
        label: str = "Delivered",
        note: str = "Package has been delivered successfully",
    ) -> TransitionResult:
        """
        Complete an in-progress delivery.

        Side effects, in order: pin the current coordinate to the
        destination, log the delivery, release the assigned driver.
        Completing an already-completed delivery only finishes side effects
        an earlier attempt left undone.
        """
        async with self._lock_for(delivery_id):
            return await self._complete_locked(delivery_id, label, note)

    async def _complete_locked(
        self, delivery_id: uuid.UUID, label: str, note: str
    ) -> TransitionResult:
        delivery = await self._load(delivery_id)
        if delivery.status == DeliveryStatus.COMPLETED:
            return await self._finish_completion(delivery, label, note)
        if not can_transition(delivery.status, DeliveryStatus.COMPLETED):
            raise InvalidTransitionError(
                delivery_id, delivery.status.value, DeliveryStatus.COMPLETED.value
            )

        await self.store.update_delivery_status(
            delivery_id,
            DeliveryStatus.COMPLETED,
            coordinate=delivery.destination,
        )
        record = await self._log(
            delivery_id,
            status=label,
            location=delivery.delivery_location,
            note=note,
        )
        released = await self._release_driver(delivery)

        logger.info(f"Delivery {delivery_id} completed")
        return TransitionResult(
            delivery=await self._load(delivery_id),
            changed=True,
            update=record,
            driver_released=released,
        )

    async def _finish_completion(
        self, delivery: DeliverySnapshot, label: str, note: str
    ) -> TransitionResult:
        """
        Re-run whichever completion side effects are missing.

        The status write, the log entry and the driver release are separate
        store calls, so an earlier completion may have stopped part way.
        Each step checks before writing, so a clean repeat changes nothing.
        """
        delivery_id = delivery.id
        repaired = False

        if delivery.destination is not None and delivery.current != delivery.destination:
            await self.store.update_delivery_status(
                delivery_id, DeliveryStatus.COMPLETED, coordinate=delivery.destination
            )
            repaired = True

        record = None
        updates = await self.store.list_tracking_updates(delivery_id)
        if not updates or updates[-1].status not in COMPLETION_LABELS:
            record = await self._log(
                delivery_id,
                status=label,
                location=delivery.delivery_location,
                note=note,
            )
            repaired = True

        released = await self._release_driver(delivery)

        if repaired or released:
            logger.warning(f"Delivery {delivery_id} was already completed, finished missing steps")
            delivery = await self._load(delivery_id)
        else:
            logger.debug(f"Delivery {delivery_id} already completed, ignoring")
        return TransitionResult(
            delivery=delivery,
            changed=False,
            update=record,
            driver_released=released,
        )

    async def _release_driver(self, delivery: DeliverySnapshot) -> bool:
        if delivery.assigned_driver_id is None:
            return False
        released = await self.store.clear_driver_current_delivery(
            delivery.assigned_driver_id, delivery.id
        )
        if released:
            logger.info(f"Driver {delivery.assigned_driver_id} released")
        return released

    # ==================== pending -> declined ====================

    async def decline(
        self, delivery_id: uuid.UUID, reason: Optional[str] = None
    ) -> TransitionResult:
        """Administratively reject a pending delivery."""
        async with self._lock_for(delivery_id):
            delivery = await self._load(delivery_id)
            if delivery.status == DeliveryStatus.DECLINED:
                return TransitionResult(delivery=delivery, changed=False)
            if not can_transition(delivery.status, DeliveryStatus.DECLINED):
                raise InvalidTransitionError(
                    delivery_id, delivery.status.value, DeliveryStatus.DECLINED.value
                )

            await self.store.update_delivery_status(delivery_id, DeliveryStatus.DECLINED)
            record = await self._log(
                delivery_id,
                status="Declined",
                location=delivery.pickup_location,
                note=reason or "Delivery request declined",
            )
            return TransitionResult(
                delivery=await self._load(delivery_id),
                changed=True,
                update=record,
            )

    # ==================== manual updates ====================

    async def apply_manual_status(
        self, delivery_id: uuid.UUID, manual: ManualStatus
    ) -> TransitionResult:
        """
        Record a hand-reported status.

        picked_up and in_transit keep (or put) the delivery in progress;
        delivered runs the full completion.
        """
        manual = ManualStatus(manual)
        label, location, target = _MANUAL_UPDATES[manual]
        note = f"Status updated by driver to {manual.value.replace('_', ' ')}"

        async with self._lock_for(delivery_id):
            if target == DeliveryStatus.COMPLETED:
                return await self._complete_locked(delivery_id, label, note)

            delivery = await self._load(delivery_id)
            if delivery.status.is_terminal:
                raise InvalidTransitionError(
                    delivery_id, delivery.status.value, manual.value
                )

            changed = delivery.status != target
            if changed:
                await self.store.update_delivery_status(delivery_id, target)
            record = await self._log(
                delivery_id,
                status=label,
                location=location or delivery.pickup_location,
                note=note,
            )
            return TransitionResult(
                delivery=await self._load(delivery_id),
                changed=changed,
                update=record,
            )
