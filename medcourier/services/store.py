"""
Persistence boundary for the tracking engine.

The engine only reads and writes deliveries, drivers and tracking updates
through a TrackingStore. SqlTrackingStore is the SQLAlchemy implementation;
every write is idempotent by id and safe to retry.
"""

import logging
import secrets
import uuid
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import AsyncIterator, List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from medcourier.core.exceptions import (
    DeliveryNotFoundError,
    DriverNotFoundError,
    PersistenceError,
)
from medcourier.database import session_scope
from medcourier.models import (
    DeliveryRequest,
    DeliveryStatus,
    Driver,
    DriverStatus,
    TrackingUpdate,
    VehicleType,
)
from medcourier.services.geo import Coordinate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeliverySnapshot:
    """Read model of a delivery as the tracking engine sees it."""
    id: uuid.UUID
    tracking_id: str
    status: DeliveryStatus
    pickup_location: str
    delivery_location: str
    pickup: Optional[Coordinate]
    destination: Optional[Coordinate]
    current: Optional[Coordinate]
    assigned_driver_id: Optional[uuid.UUID] = None


@dataclass(frozen=True)
class DriverSnapshot:
    """Read model of a driver."""
    id: uuid.UUID
    name: str
    status: DriverStatus
    vehicle_type: VehicleType = VehicleType.CAR
    phone: Optional[str] = None
    current_delivery_id: Optional[uuid.UUID] = None


@dataclass(frozen=True)
class TrackingUpdateRecord:
    """One immutable tracking-log entry."""
    delivery_id: uuid.UUID
    status: str
    timestamp: datetime
    location: str
    note: str


def _coordinate(lat: Optional[float], lng: Optional[float]) -> Optional[Coordinate]:
    if lat is None or lng is None:
        return None
    return Coordinate(lat=lat, lng=lng)


def delivery_to_snapshot(row: DeliveryRequest) -> DeliverySnapshot:
    return DeliverySnapshot(
        id=row.id,
        tracking_id=row.tracking_id,
        status=row.status,
        pickup_location=row.pickup_location,
        delivery_location=row.delivery_location,
        pickup=_coordinate(row.pickup_lat, row.pickup_lng),
        destination=_coordinate(row.delivery_lat, row.delivery_lng),
        current=_coordinate(row.current_lat, row.current_lng),
        assigned_driver_id=row.assigned_driver_id,
    )


def driver_to_snapshot(row: Driver) -> DriverSnapshot:
    return DriverSnapshot(
        id=row.id,
        name=row.name,
        status=row.status,
        vehicle_type=row.vehicle_type,
        phone=row.phone,
        current_delivery_id=row.current_delivery_id,
    )


def new_tracking_id() -> str:
    """Customer-facing tracking reference, e.g. MED-3F9A1C."""
    return f"MED-{secrets.token_hex(3).upper()}"


class TrackingStore(ABC):
    """Operations the tracking engine needs from the backing store."""

    @abstractmethod
    async def get_delivery(self, delivery_id: uuid.UUID) -> Optional[DeliverySnapshot]:
        ...

    @abstractmethod
    async def get_driver(self, driver_id: uuid.UUID) -> Optional[DriverSnapshot]:
        ...

    @abstractmethod
    async def update_delivery_coordinate(
        self, delivery_id: uuid.UUID, coordinate: Coordinate
    ) -> bool:
        """
        Move an in-progress delivery's courier.

        Returns False (and changes nothing) when the delivery has already
        left in_progress, e.g. a late simulated step after completion.
        """

    @abstractmethod
    async def update_delivery_status(
        self,
        delivery_id: uuid.UUID,
        status: DeliveryStatus,
        coordinate: Optional[Coordinate] = None,
    ) -> None:
        """Set status, and the current coordinate in the same write when given."""

    @abstractmethod
    async def append_tracking_update(self, record: TrackingUpdateRecord) -> None:
        ...

    @abstractmethod
    async def clear_driver_current_delivery(
        self, driver_id: uuid.UUID, delivery_id: Optional[uuid.UUID] = None
    ) -> bool:
        """
        Free the driver's current-delivery slot.

        When ``delivery_id`` is given the slot is only cleared if it still
        points at that delivery. Returns True when something was cleared.
        """

    @abstractmethod
    async def assign_driver(self, delivery_id: uuid.UUID, driver_id: uuid.UUID) -> None:
        """Link driver and delivery and mark the delivery in progress."""

    @abstractmethod
    async def list_tracking_updates(self, delivery_id: uuid.UUID) -> List[TrackingUpdateRecord]:
        ...


class SqlTrackingStore(TrackingStore):
    """
    TrackingStore over async SQLAlchemy.
    Each operation runs in its own short transaction.
    """

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]) -> None:
        self._session_maker = session_maker

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        try:
            async with session_scope(self._session_maker) as session:
                yield session
        except SQLAlchemyError as e:
            raise PersistenceError(str(e)) from e

    # ==================== Reads ====================

    async def get_delivery(self, delivery_id: uuid.UUID) -> Optional[DeliverySnapshot]:
        async with self._session() as db:
            row = await db.get(DeliveryRequest, delivery_id)
            return delivery_to_snapshot(row) if row else None

    async def get_driver(self, driver_id: uuid.UUID) -> Optional[DriverSnapshot]:
        async with self._session() as db:
            row = await db.get(Driver, driver_id)
            return driver_to_snapshot(row) if row else None

    async def list_tracking_updates(self, delivery_id: uuid.UUID) -> List[TrackingUpdateRecord]:
        async with self._session() as db:
            result = await db.execute(
                select(TrackingUpdate)
                .where(TrackingUpdate.delivery_id == delivery_id)
                .order_by(TrackingUpdate.timestamp, TrackingUpdate.id)
            )
            return [
                TrackingUpdateRecord(
                    delivery_id=u.delivery_id,
                    status=u.status,
                    timestamp=u.timestamp,
                    location=u.location,
                    note=u.note,
                )
                for u in result.scalars().all()
            ]

    # ==================== Writes ====================

    async def update_delivery_coordinate(
        self, delivery_id: uuid.UUID, coordinate: Coordinate
    ) -> bool:
        async with self._session() as db:
            result = await db.execute(
                update(DeliveryRequest)
                .where(DeliveryRequest.id == delivery_id)
                .where(DeliveryRequest.status == DeliveryStatus.IN_PROGRESS)
                .values(current_lat=coordinate.lat, current_lng=coordinate.lng)
            )
            if result.rowcount > 0:
                return True
            if await db.get(DeliveryRequest, delivery_id) is None:
                raise DeliveryNotFoundError(delivery_id)

        logger.debug(f"Ignored stale position for delivery {delivery_id} (not in progress)")
        return False

    async def update_delivery_status(
        self,
        delivery_id: uuid.UUID,
        status: DeliveryStatus,
        coordinate: Optional[Coordinate] = None,
    ) -> None:
        values = {"status": status}
        if coordinate is not None:
            values.update(current_lat=coordinate.lat, current_lng=coordinate.lng)

        async with self._session() as db:
            result = await db.execute(
                update(DeliveryRequest)
                .where(DeliveryRequest.id == delivery_id)
                .values(**values)
            )
            if result.rowcount == 0:
                raise DeliveryNotFoundError(delivery_id)

    async def append_tracking_update(self, record: TrackingUpdateRecord) -> None:
        async with self._session() as db:
            db.add(TrackingUpdate(
                delivery_id=record.delivery_id,
                status=record.status,
                timestamp=record.timestamp,
                location=record.location,
                note=record.note,
            ))

    async def clear_driver_current_delivery(
        self, driver_id: uuid.UUID, delivery_id: Optional[uuid.UUID] = None
    ) -> bool:
        stmt = (
            update(Driver)
            .where(Driver.id == driver_id)
            .where(Driver.current_delivery_id.is_not(None))
        )
        if delivery_id is not None:
            stmt = stmt.where(Driver.current_delivery_id == delivery_id)

        async with self._session() as db:
            result = await db.execute(
                stmt.values(current_delivery_id=None, status=DriverStatus.AVAILABLE)
            )
            return result.rowcount > 0

    async def assign_driver(self, delivery_id: uuid.UUID, driver_id: uuid.UUID) -> None:
        async with self._session() as db:
            driver = await db.get(Driver, driver_id)
            if driver is None:
                raise DriverNotFoundError(driver_id)
            delivery = await db.get(DeliveryRequest, delivery_id)
            if delivery is None:
                raise DeliveryNotFoundError(delivery_id)

            driver.current_delivery_id = delivery_id
            driver.status = DriverStatus.ON_DELIVERY
            delivery.assigned_driver_id = driver_id
            delivery.status = DeliveryStatus.IN_PROGRESS

    # ==================== Creation ====================

    async def create_delivery(
        self,
        pickup_location: str,
        delivery_location: str,
        pickup: Optional[Coordinate] = None,
        destination: Optional[Coordinate] = None,
    ) -> DeliverySnapshot:
        """Create a pending delivery; the courier starts at the pickup point."""
        row = DeliveryRequest(
            id=uuid.uuid4(),
            tracking_id=new_tracking_id(),
            status=DeliveryStatus.PENDING,
            pickup_location=pickup_location,
            delivery_location=delivery_location,
            pickup_lat=pickup.lat if pickup else None,
            pickup_lng=pickup.lng if pickup else None,
            delivery_lat=destination.lat if destination else None,
            delivery_lng=destination.lng if destination else None,
            current_lat=pickup.lat if pickup else None,
            current_lng=pickup.lng if pickup else None,
        )
        async with self._session() as db:
            db.add(row)
        logger.info(f"Created delivery {row.tracking_id} ({row.id})")
        return delivery_to_snapshot(row)

    async def create_driver(
        self,
        name: str,
        phone: Optional[str] = None,
        vehicle_type: VehicleType = VehicleType.CAR,
    ) -> DriverSnapshot:
        row = Driver(
            id=uuid.uuid4(),
            name=name,
            phone=phone,
            vehicle_type=vehicle_type,
            status=DriverStatus.AVAILABLE,
        )
        async with self._session() as db:
            db.add(row)
        return driver_to_snapshot(row)
