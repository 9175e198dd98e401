"""
DeliveryRequest database model.
A courier job from a pickup address to a delivery address, plus the
simulated courier position while it is in progress.
"""

import enum
import uuid
from datetime import datetime
from typing import Optional, List, TYPE_CHECKING

from sqlalchemy import String, Float, Text, DateTime, ForeignKey, Enum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from medcourier.database import Base, GUID

if TYPE_CHECKING:
    from medcourier.models.driver import Driver
    from medcourier.models.tracking_update import TrackingUpdate


class DeliveryStatus(str, enum.Enum):
    """Authoritative lifecycle state of a delivery."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    DECLINED = "declined"

    @property
    def is_terminal(self) -> bool:
        return self in (DeliveryStatus.COMPLETED, DeliveryStatus.DECLINED)


class DeliveryRequest(Base):
    """
    DeliveryRequest model.
    Pickup and delivery coordinates are fixed at creation; the current
    coordinate is owned by the tracking simulator while in progress.
    """
    __tablename__ = "delivery_requests"

    id: Mapped[uuid.UUID] = mapped_column(
        GUID(),
        primary_key=True,
        default=uuid.uuid4,
    )
    tracking_id: Mapped[str] = mapped_column(
        String(32),
        unique=True,
        nullable=False,
        index=True,
    )
    status: Mapped[DeliveryStatus] = mapped_column(
        Enum(
            DeliveryStatus,
            name="deliverystatus",
            values_callable=lambda members: [m.value for m in members],
        ),
        nullable=False,
        default=DeliveryStatus.PENDING,
    )
    pickup_location: Mapped[str] = mapped_column(Text, nullable=False)
    delivery_location: Mapped[str] = mapped_column(Text, nullable=False)

    pickup_lat: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    pickup_lng: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    delivery_lat: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    delivery_lng: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    current_lat: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    current_lng: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    assigned_driver_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        GUID(),
        ForeignKey("drivers.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
    )

    # Relationships
    assigned_driver: Mapped[Optional["Driver"]] = relationship(
        "Driver",
        foreign_keys=[assigned_driver_id],
    )
    tracking_updates: Mapped[List["TrackingUpdate"]] = relationship(
        "TrackingUpdate",
        back_populates="delivery",
        cascade="all, delete-orphan",
        order_by="TrackingUpdate.timestamp",
    )

    def __repr__(self) -> str:
        return f"<DeliveryRequest(id={self.id}, tracking_id={self.tracking_id}, status={self.status})>"
