"""
Driver database model.
"""

import enum
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import String, DateTime, Enum
from sqlalchemy.orm import Mapped, mapped_column

from medcourier.database import Base, GUID


class VehicleType(str, enum.Enum):
    """Types of vehicles used for courier runs."""
    CAR = "car"
    VAN = "van"
    MOTORBIKE = "motorbike"
    BICYCLE = "bicycle"


class DriverStatus(str, enum.Enum):
    """Driver availability."""
    AVAILABLE = "available"
    ON_DELIVERY = "on_delivery"
    OFFLINE = "offline"


class Driver(Base):
    """
    Driver model representing courier personnel.
    A driver holds at most one current delivery at a time.
    """
    __tablename__ = "drivers"

    id: Mapped[uuid.UUID] = mapped_column(
        GUID(),
        primary_key=True,
        default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    vehicle_type: Mapped[VehicleType] = mapped_column(
        Enum(
            VehicleType,
            name="vehicletype",
            values_callable=lambda members: [m.value for m in members],
        ),
        default=VehicleType.CAR,
    )
    status: Mapped[DriverStatus] = mapped_column(
        Enum(
            DriverStatus,
            name="driverstatus",
            values_callable=lambda members: [m.value for m in members],
        ),
        default=DriverStatus.AVAILABLE,
    )
    # Plain reference (no FK) to avoid a drivers <-> delivery_requests cycle
    current_delivery_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        GUID(),
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

    def __repr__(self) -> str:
        return f"<Driver(id={self.id}, name={self.name}, status={self.status})>"
