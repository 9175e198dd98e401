"""
Exception hierarchy for the tracking subsystem.
API routers translate these into HTTP errors.
"""


class TrackingError(Exception):
    """Base class for tracking-engine errors."""
    pass


class DeliveryNotFoundError(TrackingError):
    """Raised when a delivery id is unknown to the store."""

    def __init__(self, delivery_id) -> None:
        super().__init__(f"Delivery {delivery_id} not found")
        self.delivery_id = delivery_id


class DriverNotFoundError(TrackingError):
    """Raised when a driver id is unknown to the store."""

    def __init__(self, driver_id) -> None:
        super().__init__(f"Driver {driver_id} not found")
        self.driver_id = driver_id


class DriverUnavailableError(TrackingError):
    """Raised when a driver already holds a current delivery."""
    pass


class InvalidTransitionError(TrackingError):
    """Raised when an illegal delivery status transition is attempted."""

    def __init__(self, delivery_id, current, requested) -> None:
        super().__init__(
            f"Cannot move delivery {delivery_id} from {current} to {requested}"
        )
        self.delivery_id = delivery_id
        self.current = current
        self.requested = requested


class PersistenceError(TrackingError):
    """Raised when a write to the backing store fails."""
    pass


class ResetError(TrackingError):
    """Raised when a simulation reset could not be persisted."""
    pass
