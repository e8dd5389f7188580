"""
Hall and price scheme endpoints.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from boxoffice.db.session import get_db
from boxoffice.schemas.venue import HallCreate, HallResponse, PriceSchemeCreate, PriceSchemeResponse
from boxoffice.services.venue_service import create_hall, create_price_scheme, get_hall

router = APIRouter(tags=["Venues"])


@router.post("/halls/", response_model=HallResponse, status_code=status.HTTP_201_CREATED)
async def create_hall_endpoint(hall_data: HallCreate, db: AsyncSession = Depends(get_db)):
    """Register a hall with its pre-extracted seat layout."""
    return await create_hall(db, hall_data)


@router.get("/halls/{hall_id}", response_model=HallResponse)
async def get_hall_endpoint(hall_id: int, db: AsyncSession = Depends(get_db)):
    return await get_hall(db, hall_id)


@router.post("/price-schemes/", response_model=PriceSchemeResponse, status_code=status.HTTP_201_CREATED)
async def create_price_scheme_endpoint(scheme_data: PriceSchemeCreate, db: AsyncSession = Depends(get_db)):
    return await create_price_scheme(db, scheme_data)
