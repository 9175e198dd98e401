"""
TrackingUpdate database model.
Append-only log of status transitions and position reports for a delivery.
"""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import String, Text, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from medcourier.database import Base, GUID

if TYPE_CHECKING:
    from medcourier.models.delivery import DeliveryRequest


class TrackingUpdate(Base):
    """
    TrackingUpdate model. Rows are inserted, never updated or deleted.
    """
    __tablename__ = "tracking_updates"

    id: Mapped[uuid.UUID] = mapped_column(
        GUID(),
        primary_key=True,
        default=uuid.uuid4,
    )
    delivery_id: Mapped[uuid.UUID] = mapped_column(
        GUID(),
        ForeignKey("delivery_requests.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    status: Mapped[str] = mapped_column(String(100), nullable=False)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        nullable=False,
    )
    location: Mapped[str] = mapped_column(Text, nullable=False)
    note: Mapped[str] = mapped_column(Text, nullable=False, default="")

    # Relationships
    delivery: Mapped["DeliveryRequest"] = relationship(
        "DeliveryRequest",
        back_populates="tracking_updates",
    )

    def __repr__(self) -> str:
        return f"<TrackingUpdate(delivery_id={self.delivery_id}, status={self.status})>"
