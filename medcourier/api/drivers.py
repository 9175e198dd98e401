"""
Drivers API endpoints.
Handles driver registration and GET /api/v1/drivers/{id}.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from medcourier.api.dependencies import get_store
from medcourier.database import get_db
from medcourier.models import Driver, VehicleType
from medcourier.schemas.driver import DriverCreateRequest, DriverResponse
from medcourier.services.store import DriverSnapshot, SqlTrackingStore

router = APIRouter(prefix="/drivers", tags=["Drivers"])


def _driver_response(driver: Driver) -> DriverResponse:
    return DriverResponse(
        id=driver.id,
        name=driver.name,
        phone=driver.phone,
        vehicle_type=driver.vehicle_type.value,
        status=driver.status.value,
        current_delivery_id=driver.current_delivery_id,
        created_at=driver.created_at,
        updated_at=driver.updated_at,
    )


@router.post(
    "",
    response_model=DriverResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register driver",
)
async def create_driver(
    request: DriverCreateRequest,
    store: SqlTrackingStore = Depends(get_store),
) -> DriverResponse:
    created: DriverSnapshot = await store.create_driver(
        name=request.name,
        phone=request.phone,
        vehicle_type=VehicleType(request.vehicle_type),
    )
    return DriverResponse(
        id=created.id,
        name=created.name,
        phone=created.phone,
        vehicle_type=created.vehicle_type.value,
        status=created.status.value,
        current_delivery_id=created.current_delivery_id,
    )


@router.get(
    "/{driver_id}",
    response_model=DriverResponse,
    summary="Get driver details",
    description="Returns driver details including the current delivery, if any.",
)
async def get_driver(
    driver_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> DriverResponse:
    """Get driver details by ID."""
    result = await db.execute(select(Driver).where(Driver.id == driver_id))
    driver = result.scalar_one_or_none()
    if not driver:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Driver with ID {driver_id} not found",
        )
    return _driver_response(driver)
