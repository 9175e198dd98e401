"""
In-memory TrackingStore for unit tests, with failure injection and
write counters.
"""

import uuid
from dataclasses import replace
from typing import Dict, List, Optional

from medcourier.core.exceptions import (
    DeliveryNotFoundError,
    DriverNotFoundError,
    PersistenceError,
)
from medcourier.models import DeliveryStatus, DriverStatus
from medcourier.services.geo import Coordinate
from medcourier.services.store import (
    DeliverySnapshot,
    DriverSnapshot,
    TrackingStore,
    TrackingUpdateRecord,
    new_tracking_id,
)


class InMemoryTrackingStore(TrackingStore):

    def __init__(self):
        self.deliveries: Dict[uuid.UUID, DeliverySnapshot] = {}
        self.drivers: Dict[uuid.UUID, DriverSnapshot] = {}
        self.updates: List[TrackingUpdateRecord] = []

        self.coordinate_writes: List[Coordinate] = []
        self.status_writes: List[DeliveryStatus] = []
        self.driver_releases = 0

        self.fail_coordinate_writes = False
        self.fail_status_writes = False
        self.fail_reads = False
        self.fail_appends = False
        self.fail_releases = False

    # Seeding

    def add_delivery(
        self,
        pickup: Optional[Coordinate],
        destination: Optional[Coordinate],
        status: DeliveryStatus = DeliveryStatus.PENDING,
        current: Optional[Coordinate] = None,
        driver_id: Optional[uuid.UUID] = None,
    ) -> DeliverySnapshot:
        delivery = DeliverySnapshot(
            id=uuid.uuid4(),
            tracking_id=new_tracking_id(),
            status=status,
            pickup_location="Pickup Clinic",
            delivery_location="Destination Hospital",
            pickup=pickup,
            destination=destination,
            current=current if current is not None else pickup,
            assigned_driver_id=driver_id,
        )
        self.deliveries[delivery.id] = delivery
        return delivery

    def add_driver(self, name: str = "Test Driver", on_delivery: Optional[uuid.UUID] = None) -> DriverSnapshot:
        driver = DriverSnapshot(
            id=uuid.uuid4(),
            name=name,
            status=DriverStatus.ON_DELIVERY if on_delivery else DriverStatus.AVAILABLE,
            current_delivery_id=on_delivery,
        )
        self.drivers[driver.id] = driver
        return driver

    # TrackingStore

    async def get_delivery(self, delivery_id):
        if self.fail_reads:
            raise PersistenceError("read failed")
        return self.deliveries.get(delivery_id)

    async def get_driver(self, driver_id):
        return self.drivers.get(driver_id)

    async def update_delivery_coordinate(self, delivery_id, coordinate):
        if self.fail_coordinate_writes:
            raise PersistenceError("coordinate write failed")
        if delivery_id not in self.deliveries:
            raise DeliveryNotFoundError(delivery_id)
        if self.deliveries[delivery_id].status != DeliveryStatus.IN_PROGRESS:
            return False
        self.coordinate_writes.append(coordinate)
        self.deliveries[delivery_id] = replace(self.deliveries[delivery_id], current=coordinate)
        return True

    async def update_delivery_status(self, delivery_id, status, coordinate=None):
        if self.fail_status_writes:
            raise PersistenceError("status write failed")
        if delivery_id not in self.deliveries:
            raise DeliveryNotFoundError(delivery_id)
        self.status_writes.append(status)
        delivery = replace(self.deliveries[delivery_id], status=status)
        if coordinate is not None:
            delivery = replace(delivery, current=coordinate)
        self.deliveries[delivery_id] = delivery

    async def append_tracking_update(self, record):
        if self.fail_appends:
            raise PersistenceError("tracking log append failed")
        self.updates.append(record)

    async def clear_driver_current_delivery(self, driver_id, delivery_id=None):
        if self.fail_releases:
            raise PersistenceError("driver release failed")
        driver = self.drivers.get(driver_id)
        if driver is None or driver.current_delivery_id is None:
            return False
        if delivery_id is not None and driver.current_delivery_id != delivery_id:
            return False
        self.drivers[driver_id] = replace(
            driver, current_delivery_id=None, status=DriverStatus.AVAILABLE
        )
        self.driver_releases += 1
        return True

    async def assign_driver(self, delivery_id, driver_id):
        if driver_id not in self.drivers:
            raise DriverNotFoundError(driver_id)
        if delivery_id not in self.deliveries:
            raise DeliveryNotFoundError(delivery_id)
        self.drivers[driver_id] = replace(
            self.drivers[driver_id],
            current_delivery_id=delivery_id,
            status=DriverStatus.ON_DELIVERY,
        )
        self.deliveries[delivery_id] = replace(
            self.deliveries[delivery_id],
            assigned_driver_id=driver_id,
            status=DeliveryStatus.IN_PROGRESS,
        )

    async def list_tracking_updates(self, delivery_id):
        return [u for u in self.updates if u.delivery_id == delivery_id]
